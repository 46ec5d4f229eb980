"""
Search entry points: running queries, ranking and highlighting results,
and resolving saved searches.
"""

from __future__ import annotations

import html
import re
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from ..core.utils import ROOT_NOTE_ID, normalize
from .context import (
    ExecutionContext,
    SearchContext,
    SearchOptions,
    SearchQueryError,
    SearchTimeoutError,
)
from .lexer import lex
from .parens import handle_parens
from .parser import parse
from .result import SearchResult

if TYPE_CHECKING:
    from ..core.attribute.attribute import BaseAttribute
    from ..core.note.note import Note
    from ..core.session import Session
    from .expressions import Expression
    from .parens import TokenTree

__all__ = [
    "SearchResponse",
    "AutocompleteResult",
    "find_results_with_expression",
    "parse_query_to_expression",
    "find_results_with_query",
    "find_first_note_with_query",
    "search_notes",
    "search_with_response",
    "search_notes_for_autocomplete",
    "search_from_note",
    "highlight_search_results",
    "format_attribute",
]

AUTOCOMPLETE_LIMIT = 200

# placeholders for markup while highlighting, substituted at the end so
# that tokens don't match the markup itself
_BOLD_START, _BOLD_END = "{", "}"
_SMALL_START, _SMALL_END = "\x02", "\x03"


class SearchResponse(BaseModel):
    """
    Outcome of a search as exposed to callers.
    """

    search_result_note_ids: list[str]
    highlighted_tokens: list[str] = []

    error: str | None = None
    """
    First query error, if any.
    """


class AutocompleteResult(BaseModel):
    note_path: str
    note_title: str
    note_path_title: str
    highlighted_note_path_title: str | None = None


def _get_context(
    session: Session, options: SearchOptions | dict[str, Any] | None = None
) -> SearchContext:
    if isinstance(options, dict):
        options = SearchOptions(**options)

    return SearchContext(session, options)


def find_results_with_expression(
    expression: Expression, search_context: SearchContext
) -> list[SearchResult]:
    """
    Evaluate expression against all notes and get results, ranked by score
    unless the expression determined the order.
    """
    session = search_context.session
    logger = session._logger

    execution_context = ExecutionContext()

    try:
        note_set = expression.execute(
            session._cache.get_all_note_set(), execution_context, search_context
        )
    except SearchTimeoutError as e:
        logger.warning(f"{e}: {search_context}")
        search_context.add_error(str(e))
        return []

    results: list[SearchResult] = []

    for note in note_set:
        note_path = execution_context.note_id_to_note_path.get(
            note.note_id
        ) or note.get_best_note_path(session.hoisted_note_id)

        if not note_path:
            logger.warning(f"Can't find note path for note {note.note_id}")
            continue

        results.append(SearchResult(session, note_path))

    for result in results:
        result.compute_score(
            search_context.fulltext_query, search_context.highlighted_tokens
        )

    if not note_set.sorted:
        # on equal score, notes closer to root are assumed more relevant
        results.sort(
            key=lambda r: (-r.score, len(r.note_path_array), r.note_path_title)
        )

    return results


def parse_query_to_expression(
    query: str, search_context: SearchContext
) -> Expression | None:
    lexed = lex(query)
    search_context.fulltext_query = lexed.fulltext_query

    structured_tokens: TokenTree

    try:
        structured_tokens = handle_parens(list(lexed.expression_tokens))
    except SearchQueryError as e:
        structured_tokens = []
        search_context.add_error(str(e))

    expression = parse(lexed.fulltext_tokens, structured_tokens, search_context)

    if search_context.debug:
        search_context.debug_info = {
            "fulltext_tokens": lexed.fulltext_tokens,
            "structured_expression_tokens": structured_tokens,
            "expression": expression,
        }

        search_context.session._logger.info(
            f"Search debug: {search_context.debug_info}"
        )

    return expression


def find_results_with_query(
    query: str | None, search_context: SearchContext
) -> list[SearchResult]:
    query = query or ""
    search_context.original_query = query

    expression = parse_query_to_expression(query, search_context)

    if expression is None:
        return []

    return find_results_with_expression(expression, search_context)


def find_first_note_with_query(
    query: str, search_context: SearchContext
) -> Note | None:
    results = find_results_with_query(query, search_context)
    return results[0].note if results else None


def search_notes(session: Session, query: str, **options) -> list[Note]:
    """
    Get notes matching query, in rank order.

    :param options: Fields of {obj}`SearchOptions`
    """
    search_context = _get_context(session, options)
    results = find_results_with_query(query, search_context)

    if search_context.has_error():
        session._logger.debug(
            f"Search '{query}' failed: {search_context.get_error()}"
        )
        return []

    return [result.note for result in results]


def search_with_response(session: Session, query: str, **options) -> SearchResponse:
    search_context = _get_context(session, options)
    results = find_results_with_query(query, search_context)

    return SearchResponse(
        search_result_note_ids=[result.note_id for result in results],
        highlighted_tokens=search_context.highlighted_tokens,
        error=search_context.get_error(),
    )


def search_notes_for_autocomplete(
    session: Session, query: str
) -> list[AutocompleteResult]:
    """
    Quick title search as used when linking notes. Results carry path titles
    with matched tokens highlighted.
    """
    cache = session._cache
    hoisted_note = cache.get_note(session.hoisted_note_id)

    # hoisting in the hidden subtree shouldn't limit autocomplete, as links
    # usually target regular notes
    hoisted_in_hidden = (
        hoisted_note is not None and hoisted_note.is_in_hidden_subtree()
    )

    search_context = SearchContext(
        session,
        SearchOptions(
            fast_search=True,
            include_archived_notes=False,
            include_hidden_notes=True,
            fuzzy_attribute_search=True,
            ancestor_note_id=(
                ROOT_NOTE_ID if hoisted_in_hidden else session.hoisted_note_id
            ),
        ),
    )

    results = find_results_with_query(query, search_context)[:AUTOCOMPLETE_LIMIT]

    highlight_search_results(results, search_context.highlighted_tokens)

    return [
        AutocompleteResult(
            note_path=result.note_path,
            note_title=cache.get_note_title(result.note_id),
            note_path_title=result.note_path_title,
            highlighted_note_path_title=result.highlighted_note_path_title,
        )
        for result in results
    ]


def search_from_note(note: Note) -> SearchResponse:
    """
    Run saved search note, configured by its labels (`searchString`,
    `fastSearch`, `ancestorDepth`, `orderBy`, ...) and `~ancestor`
    relation, or by a `~searchScript` relation to a backend script which
    returns notes or note ids. The search note itself and root are never
    included.
    """
    session = note._session
    error: str | None = None
    highlighted_tokens: list[str] = []

    if note.get_relation_value("searchScript"):
        note_ids = _search_from_relation(note, "searchScript")
    else:
        search_context = SearchContext(
            session,
            SearchOptions(
                fast_search=note.has_label("fastSearch"),
                ancestor_note_id=note.get_relation_value("ancestor"),
                ancestor_depth=note.get_label_value("ancestorDepth"),
                include_archived_notes=note.has_label("includeArchivedNotes"),
                order_by=note.get_label_value("orderBy"),
                order_direction=(
                    "desc"
                    if note.get_label_value("orderDirection") == "desc"
                    else "asc"
                ),
                limit=_parse_limit(note.get_label_value("limit")),
                debug=note.has_label("debug"),
                fuzzy_attribute_search=False,
            ),
        )

        results = find_results_with_query(
            note.get_label_value("searchString"), search_context
        )

        note_ids = [result.note_id for result in results]
        highlighted_tokens = search_context.highlighted_tokens
        error = search_context.get_error()

    # including root would make the search note its own ancestor
    excluded = (ROOT_NOTE_ID, note.note_id)

    return SearchResponse(
        search_result_note_ids=[
            note_id for note_id in note_ids if note_id not in excluded
        ],
        highlighted_tokens=highlighted_tokens,
        error=error,
    )


def _parse_limit(value: str | None) -> int | None:
    if value is None:
        return None

    try:
        limit = int(value)
    except ValueError:
        return None

    return limit if limit > 0 else None


def _search_from_relation(note: Note, relation_name: str) -> list[str]:
    session = note._session
    logger = session._logger

    script_note = note.get_relation_target(relation_name)

    if script_note is None:
        logger.info(f"Search note's relation {relation_name} has not been found.")
        return []

    if not script_note.is_javascript or script_note.get_script_env() != "backend":
        logger.info(f"Note {script_note.note_id} is not executable.")
        return []

    if not note.is_content_available:
        logger.info(
            f"Note {script_note.note_id} is not available outside of protected session."
        )
        return []

    if session.script_runner is None:
        logger.info(f"No script runner to execute note {script_note.note_id}.")
        return []

    result = session.script_runner(script_note, note)

    if not isinstance(result, list):
        logger.info(f"Result from {script_note.note_id} is not a list.")
        return []

    # accept note ids or notes
    return [item if isinstance(item, str) else item.note_id for item in result]


def _fold(text: str) -> str:
    """
    Normalize text character by character, keeping its length so match
    positions map back to the original.
    """
    return "".join((normalize(char) or char)[0] for char in text)


def highlight_search_results(
    results: list[SearchResult], highlighted_tokens: list[str]
):
    """
    Set `highlighted_note_path_title` on each result: the path title with
    matched tokens in `<b>`, followed by matching type, mime and attributes
    in `<small>`.
    """
    tokens = [
        re.sub(r"[<{}]", "", token) for token in dict.fromkeys(highlighted_tokens)
    ]
    tokens = [token for token in tokens if token.strip()]

    # highlight longest matches first
    tokens.sort(key=len, reverse=True)

    for result in results:
        note = result.note
        text = re.sub(r"[<{}\x02\x03]", "", result.note_path_title)

        def annotate(annotation: str):
            nonlocal text
            text += f" {_SMALL_START}{annotation}{_SMALL_END}"

        if any(token in note.note_type for token in tokens):
            annotate(f"type: {note.note_type}")

        if any(token in note.mime for token in tokens):
            annotate(f"mime: {note.mime}")

        for attribute in note.get_attributes():
            name, value = normalize(attribute.name), normalize(attribute.value)

            if any(token in name or token in value for token in tokens):
                annotate(format_attribute(attribute))

        result.highlighted_note_path_title = text

    for token in tokens:
        regex = re.compile(re.escape(token), re.IGNORECASE)

        for result in results:
            text = result.highlighted_note_path_title or ""
            pos = 0

            while match := regex.search(_fold(text), pos):
                start, end = match.start(), match.start() + len(token)
                text = f"{text[:start]}{_BOLD_START}{text[start:end]}{_BOLD_END}{text[end:]}"

                # skip past the inserted markers
                pos = end + 2

            result.highlighted_note_path_title = text

    for result in results:
        result.highlighted_note_path_title = (
            (result.highlighted_note_path_title or "")
            .replace(_SMALL_START, "<small>")
            .replace(_SMALL_END, "</small>")
            .replace(_BOLD_START, "<b>")
            .replace(_BOLD_END, "</b>")
        )


def format_attribute(attribute: BaseAttribute) -> str:
    """
    Format attribute as shown in highlighted results.
    """
    if attribute.attribute_type == "relation":
        return f"~{html.escape(attribute.name)}=…"

    label = f"#{html.escape(attribute.name)}"

    if attribute.value:
        value = attribute.value

        if re.search(r"[^\w-]", value):
            value = f'"{value}"'

        label += f"={html.escape(value)}"

    return label
