"""
Full-text expressions: matching against titles and attributes along note
paths, and against note content.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from ...core.utils import ROOT_NOTE_ID, normalize
from ..context import SearchQueryError
from ..note_set import NoteSet
from .expression import Expression

if TYPE_CHECKING:
    from ...core.note.note import Note
    from ..context import ExecutionContext, SearchContext

__all__ = [
    "NoteFlatTextExp",
    "NoteContentFulltextExp",
    "strip_tags",
]

CONTENT_NOTE_TYPES = ("text", "code", "mermaid")
"""
Note types whose content is searched.
"""

# tags which imply text separation are replaced by a space, inline
# formatting tags are removed so as not to split words
INLINE_TAGS = frozenset(
    ["b", "strong", "em", "i", "span", "big", "small", "font", "sub", "sup"]
)

# beyond this size, tags are left in place
STRIP_TAGS_MAX_LEN = 20000

TAG_REGEX = re.compile(r"<\s*(/?)\s*([a-zA-Z][a-zA-Z0-9]*)[^>]*>")


def strip_tags(content: str) -> str:
    """
    Remove HTML tags, keeping link targets (`<a href=...>`) searchable.
    """

    def replace(match: re.Match) -> str:
        closing, name = match.group(1), match.group(2).lower()

        if name == "a":
            # keep opening link tag for its href, drop the closing one
            return "" if closing else match.group(0)
        elif name in INLINE_TAGS:
            return ""

        return " "

    return TAG_REGEX.sub(replace, content)


class NoteFlatTextExp(Expression):
    """
    Matches notes where each token is found in the note's title, type, mime
    or owned attributes, or those of an ancestor along some path. The path
    is recorded in the execution context so results are presented through
    it.
    """

    tokens: list[str]

    def __init__(self, tokens: list[str]):
        self.tokens = tokens

    def execute(self, input_note_set, execution_context, search_context):
        result = NoteSet()

        for note in self._get_candidate_notes(input_note_set):
            search_context.check_deadline()

            # allow finding a note by its id
            if len(self.tokens) == 1 and note.note_id.lower() == self.tokens[0]:
                self._add_result(
                    note, [note.note_id], result, execution_context, search_context
                )
                continue

            found_attr_tokens = self._find_attr_tokens(note, self.tokens)

            for parent in note.parents:
                found_tokens = found_attr_tokens + self._find_title_tokens(
                    note, parent, self.tokens, search_context
                )

                if found_tokens:
                    remaining_tokens = [
                        token for token in self.tokens if token not in found_tokens
                    ]

                    self._search_path_towards_root(
                        parent,
                        remaining_tokens,
                        [note.note_id],
                        result,
                        execution_context,
                        search_context,
                    )

        return result

    def _search_path_towards_root(
        self,
        note: Note,
        remaining_tokens: list[str],
        taken_path: list[str],
        result: NoteSet,
        execution_context: ExecutionContext,
        search_context: SearchContext,
    ):
        """
        Walk from note towards root, consuming tokens found along the way.

        :param remaining_tokens: Tokens not yet found on the path so far
        :param taken_path: Note ids from the current note's child down to the candidate note
        """
        if not remaining_tokens:
            self._add_result(
                note, taken_path, result, execution_context, search_context
            )
            return

        if note.note_id == ROOT_NOTE_ID or not note.parents:
            # reached root with tokens still remaining
            return

        found_attr_tokens = self._find_attr_tokens(note, remaining_tokens)

        for parent in note.parents:
            if parent.note_id == note.note_id or parent.note_id in taken_path:
                continue

            found_tokens = found_attr_tokens + self._find_title_tokens(
                note, parent, remaining_tokens, search_context
            )

            self._search_path_towards_root(
                parent,
                [token for token in remaining_tokens if token not in found_tokens],
                [note.note_id, *taken_path],
                result,
                execution_context,
                search_context,
            )

    def _add_result(
        self,
        note: Note,
        taken_path: list[str],
        result: NoteSet,
        execution_context: ExecutionContext,
        search_context: SearchContext,
    ):
        note_path = self._get_note_path(note, taken_path, search_context)

        if note_path is None:
            return

        note_id = note_path[-1]

        # paths are explored in order of preference, so the first one wins
        if not result.has_note_id(note_id):
            execution_context.note_id_to_note_path[note_id] = note_path
            result.add(search_context.session._cache.notes[note_id])

    def _get_note_path(
        self, note: Note, taken_path: list[str], search_context: SearchContext
    ) -> list[str] | None:
        cache = search_context.session._cache
        hoisted_note_id = search_context.session.hoisted_note_id

        if len(taken_path) == 1 and taken_path[0] == note.note_id:
            return note.get_best_note_path(hoisted_note_id)

        # the topmost matching note completes the path; whatever is above
        # it doesn't matter, so take its best path
        top_note = cache.notes[taken_path[0]]
        top_path = top_note.get_best_note_path(hoisted_note_id)

        if top_path is None:
            return None

        return top_path + taken_path[1:]

    def _find_attr_tokens(self, note: Note, tokens: list[str]) -> list[str]:
        found: list[str] = []

        for token in tokens:
            if token in note.note_type or token in note.mime:
                found.append(token)

        for attribute in note.get_owned_attributes():
            name = normalize(attribute.name)
            value = normalize(attribute.value)

            for token in tokens:
                if token in name or token in value:
                    found.append(token)

        return found

    def _find_title_tokens(
        self,
        note: Note,
        parent: Note,
        tokens: list[str],
        search_context: SearchContext,
    ) -> list[str]:
        title = normalize(
            search_context.session._cache.get_note_title(
                note.note_id, parent.note_id
            )
        )
        return [token for token in tokens if token in title]

    def _get_candidate_notes(self, note_set: NoteSet) -> list[Note]:
        """
        Get notes whose flat text contains at least one token.
        """
        return [
            note
            for note in note_set
            if any(token in note.get_flat_text() for token in self.tokens)
        ]


class NoteContentFulltextExp(Expression):
    """
    Matches notes by their content. With a single token the operator is
    applied to the whole content; with multiple tokens each one must be
    contained in the content or, with `flat_text`, in the note's flat
    text.
    """

    ALLOWED_OPERATORS = ["=", "!=", "*=*", "*=", "=*", "%="]

    operator: str
    tokens: list[str]

    raw: bool
    """
    Search raw HTML instead of text with tags stripped.
    """

    flat_text: bool

    _regexes: list[re.Pattern]

    def __init__(
        self,
        operator: str,
        tokens: list[str],
        raw: bool = False,
        flat_text: bool = False,
    ):
        """
        :raises SearchQueryError: If operator is not supported for content
        :raises re.error: If operator is `%=` and token is not a valid regex
        """
        if operator not in self.ALLOWED_OPERATORS:
            raise SearchQueryError(
                f"Note content can be searched only with operators: {', '.join(self.ALLOWED_OPERATORS)}, operator {operator} given."
            )

        self.operator = operator
        self.tokens = tokens
        self.raw = raw
        self.flat_text = flat_text

        self._regexes = (
            [re.compile(token, re.MULTILINE | re.DOTALL) for token in tokens]
            if operator == "%="
            else []
        )

    def execute(self, input_note_set, execution_context, search_context):
        result = NoteSet()
        protected = search_context.session._protected
        logger = search_context.session._logger

        for note in input_note_set:
            search_context.check_deadline()

            if note.note_type not in CONTENT_NOTE_TYPES or note.is_deleted:
                continue

            if note.is_protected and not protected.is_available():
                continue

            try:
                raw_content = note.get_content()
            except Exception as e:
                logger.info(f"Cannot get content of note {note.note_id}: {e}")
                continue

            if isinstance(raw_content, bytes):
                raw_content = raw_content.decode(errors="replace")

            content = self._preprocess(raw_content, note.note_type, note.mime)

            if self._matches(note, content):
                result.add(note)

        return result

    def _matches(self, note: Note, content: str) -> bool:
        if len(self.tokens) == 1:
            token = self.tokens[0]

            match self.operator:
                case "=":
                    return token == content
                case "!=":
                    return token != content
                case "*=":
                    return content.endswith(token)
                case "=*":
                    return content.startswith(token)
                case "*=*":
                    return token in content
                case _:
                    return self._regexes[0].search(content) is not None

        # e.g. "hello world" matches with "hello" in title and "world" in
        # content
        return all(
            token in content
            or (self.flat_text and token in note.get_flat_text())
            for token in self.tokens
        )

    def _preprocess(self, content: str, note_type: str, mime: str) -> str:
        content = normalize(content)

        if note_type == "text" and mime == "text/html":
            if not self.raw and len(content) < STRIP_TAGS_MAX_LEN:
                content = strip_tags(content)

            content = content.replace("&nbsp;", " ")

        return content.strip()
