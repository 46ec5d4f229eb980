"""
Builds an expression tree from lexed query tokens.
"""

from __future__ import annotations

import datetime
import re
from typing import TYPE_CHECKING

from ..core.utils import HIDDEN_NOTE_ID, ROOT_NOTE_ID, normalize
from .comparators import OPERATORS, build_comparator
from .context import SearchQueryError
from .expressions import (
    AncestorExp,
    AndExp,
    AttributeExistsExp,
    ChildOfExp,
    DescendantOfExp,
    Expression,
    LabelComparisonExp,
    NoteContentFulltextExp,
    NoteFlatTextExp,
    NotExp,
    OrderByAndLimitExp,
    OrderDefinition,
    OrExp,
    ParentOfExp,
    PropertyComparisonExp,
    RelationWhereExp,
    TrueExp,
)
from .lexer import Token
from .value_extractor import ValueExtractor

if TYPE_CHECKING:
    from .context import SearchContext
    from .parens import TokenTree

__all__ = [
    "parse",
]

DATE_KEYWORDS = ["now", "today", "month", "year"]

# context shown around a token in error messages
ERROR_CONTEXT_LEN = 20


def _add_months(date: datetime.date, months: int) -> datetime.date:
    month_index = date.month - 1 + months
    return datetime.date(date.year + month_index // 12, month_index % 12 + 1, 1)


def resolve_date_keyword(keyword: str, delta: int = 0) -> str:
    """
    Get the current date/time with an offset, formatted at the keyword's
    granularity: `now` in seconds, `today` in days, `month` and `year`.
    """
    now = datetime.datetime.now()

    match keyword:
        case "now":
            return (now + datetime.timedelta(seconds=delta)).strftime(
                "%Y-%m-%d %H:%M:%S"
            )
        case "today":
            return (now.date() + datetime.timedelta(days=delta)).strftime(
                "%Y-%m-%d"
            )
        case "month":
            return _add_months(now.date(), delta).strftime("%Y-%m")
        case "year":
            return str(now.year + delta)

    raise SearchQueryError(f"Unrecognized keyword: {keyword}")


def get_fulltext(
    tokens: list[Token], search_context: SearchContext
) -> Expression | None:
    """
    Get expression matching full-text tokens in titles and attributes and,
    unless fast search is enabled, content.
    """
    words = [normalize(token.token) for token in tokens]
    search_context.highlighted_tokens.extend(words)

    if not words:
        return None

    if search_context.fast_search:
        return NoteFlatTextExp(words)

    return OrExp(
        [
            NoteFlatTextExp(words),
            NoteContentFulltextExp("*=*", words, flat_text=True),
        ]
    )


def _is_operator(token: Token | TokenTree) -> bool:
    return (
        isinstance(token, Token)
        and not token.in_quotes
        and token.token in OPERATORS
    )


class _ExpressionParser:
    """
    Parses one level of (possibly nested) expression tokens.
    """

    tokens: TokenTree
    search_context: SearchContext
    level: int
    i: int

    def __init__(
        self, tokens: TokenTree, search_context: SearchContext, level: int = 0
    ):
        self.tokens = tokens
        self.search_context = search_context
        self.level = level
        self.i = 0

    def parse(self) -> Expression | None:
        tokens = self.tokens
        search_context = self.search_context

        expressions: list[Expression] = []
        op: str | None = None

        def aggregate() -> Expression | None:
            if op == "or":
                return OrExp.of(expressions)
            return AndExp.of(expressions)

        while self.i < len(tokens):
            item = tokens[self.i]

            if isinstance(item, list):
                if (exp := self._parse_nested(item)) is not None:
                    expressions.append(exp)

                self.i += 1
                continue

            token = item.token

            if token.startswith("#") or token.startswith("~"):
                if (exp := self._parse_attribute(token)) is not None:
                    expressions.append(exp)

            elif token in ("orderby", "limit"):
                if self.level != 0:
                    search_context.add_error(
                        "orderBy can appear only on the top expression level"
                    )
                    self.i += 1
                    continue

                order_by_exp = self._parse_order_by_and_limit()
                order_by_exp.sub_expression = aggregate() or TrueExp()
                return order_by_exp

            elif token == "not":
                self.i += 1

                if self.i >= len(tokens) or not isinstance(tokens[self.i], list):
                    found = (
                        self._token(self.i).token if self.i < len(tokens) else ""
                    )
                    search_context.add_error(
                        f"not keyword should be followed by sub-expression in parenthesis, got {found} instead"
                    )
                    self.i += 1
                    continue

                nested = self._parse_nested(tokens[self.i])  # type: ignore[arg-type]

                if nested is not None:
                    expressions.append(NotExp(nested))

            elif token == "note":
                self.i += 1

                if (exp := self._parse_note_property()) is not None:
                    expressions.append(exp)

                self.i += 1
                continue

            elif token in ("and", "or"):
                if op is None:
                    op = token
                elif op != token:
                    search_context.add_error(
                        "Mixed usage of AND/OR - always use parenthesis to group AND/OR expressions."
                    )

            elif _is_operator(item):
                search_context.add_error(
                    f'Misplaced or incomplete expression "{token}"'
                )

            else:
                search_context.add_error(f'Unrecognized expression "{token}"')

            if op is None and len(expressions) > 1:
                op = "and"

            self.i += 1

        return aggregate()

    def _parse_nested(self, tokens: TokenTree) -> Expression | None:
        return _ExpressionParser(
            tokens, self.search_context, self.level + 1
        ).parse()

    def _token(self, index: int) -> Token:
        """
        :raises SearchQueryError: If there's no plain token at index
        """
        if index >= len(self.tokens):
            raise SearchQueryError("Unexpected end of query")

        token = self.tokens[index]

        if not isinstance(token, Token):
            raise SearchQueryError(
                f"Unexpected parenthesis in {self._context(index - 1)}"
            )

        return token

    def _is_token(self, index: int, value: str) -> bool:
        return (
            index < len(self.tokens)
            and isinstance(token := self.tokens[index], Token)
            and token.token == value
        )

    def _context(self, index: int) -> str:
        """
        Get snippet of the query around the token at index.
        """
        query = self.search_context.original_query
        token = self.tokens[index] if 0 <= index < len(self.tokens) else None

        if not isinstance(token, Token):
            return f'"{query}"'

        start = max(0, token.start_index - ERROR_CONTEXT_LEN)
        end = min(len(query), token.end_index + ERROR_CONTEXT_LEN)

        prefix = "..." if start != 0 else ""
        suffix = "..." if end != len(query) else ""

        return f'"{prefix}{query[start:end]}{suffix}"'

    def _resolve_constant_operand(self) -> str | None:
        """
        Get value at current token, resolving date keywords optionally
        followed by `+ N` or `- N`.
        """
        operand = self._token(self.i)

        if not operand.in_quotes and (
            operand.token.startswith("#")
            or operand.token.startswith("~")
            or operand.token == "note"
        ):
            self.search_context.add_error(
                f'Error near token "{operand.token}" in {self._context(self.i)}, it\'s possible to compare with constant only.'
            )
            return None

        if operand.in_quotes or operand.token not in DATE_KEYWORDS:
            return operand.token

        delta = 0

        if self.i + 2 < len(self.tokens):
            if self._is_token(self.i + 1, "+"):
                self.i += 2
                delta = int(self._token(self.i).token)
            elif self._is_token(self.i + 1, "-"):
                self.i += 2
                delta = -int(self._token(self.i).token)

        return resolve_date_keyword(operand.token, delta)

    def _parse_note_property(self) -> Expression | None:
        search_context = self.search_context

        if not self._is_token(self.i, "."):
            search_context.add_error('Expected "." to separate field path')
            return None

        self.i += 1
        name = self._token(self.i).token

        if name in ("content", "rawcontent"):
            self.i += 1
            operator = self._token(self.i)

            if not _is_operator(operator):
                search_context.add_error(
                    f'After content expected operator, but got "{operator.token}" in {self._context(self.i)}'
                )
                return None

            self.i += 1

            return NoteContentFulltextExp(
                operator.token,
                [self._token(self.i).token],
                raw=name == "rawcontent",
            )

        if name in ("parents", "children", "ancestors"):
            self.i += 1
            sub_expression = self._parse_note_property()

            if sub_expression is None:
                return None

            match name:
                case "parents":
                    return ChildOfExp(sub_expression)
                case "children":
                    return ParentOfExp(sub_expression)
                case _:
                    return DescendantOfExp(sub_expression)

        if name in ("labels", "relations"):
            if not self._is_token(self.i + 1, "."):
                search_context.add_error(
                    f'Expected "." to separate field path, got "{self._token(self.i + 1).token}" in {self._context(self.i)}'
                )
                return None

            self.i += 2
            attribute_name = self._token(self.i).token

            if name == "labels":
                return self._parse_label(attribute_name)

            return self._parse_relation(attribute_name)

        if name == "text":
            if not self._is_token(self.i + 1, "*=*"):
                search_context.add_error(
                    f'Virtual attribute "note.text" supports only *=* operator, instead given "{self._token(self.i + 1).token}" in {self._context(self.i)}'
                )
                return None

            self.i += 2
            value = self._token(self.i).token

            return OrExp(
                [
                    PropertyComparisonExp("title", "*=*", value),
                    NoteContentFulltextExp("*=*", [value]),
                ]
            )

        if PropertyComparisonExp.is_property(name):
            operator = self._token(self.i + 1).token
            self.i += 2

            compared_value = self._resolve_constant_operand()

            if compared_value is None:
                return None

            return PropertyComparisonExp(name, operator, compared_value)

        search_context.add_error(
            f'Unrecognized note property "{name}" in {self._context(self.i)}'
        )
        return None

    def _parse_attribute(self, token: str) -> Expression | None:
        is_label = token.startswith("#")
        name = token[1:]

        is_negated = name.startswith("!")
        if is_negated:
            name = name[1:]

        sub_expression = (
            self._parse_label(name) if is_label else self._parse_relation(name)
        )

        if sub_expression is not None and is_negated:
            return NotExp(sub_expression)

        return sub_expression

    def _parse_label(self, label_name: str) -> Expression | None:
        search_context = self.search_context
        search_context.highlighted_tokens.append(label_name)

        if label_name == "archived":
            # query explicitly concerns archived notes
            search_context.include_archived_notes = True

        if self.i < len(self.tokens) - 2 and _is_operator(self.tokens[self.i + 1]):
            operator = self._token(self.i + 1).token
            self.i += 2

            compared_value = self._resolve_constant_operand()

            if compared_value is None:
                return None

            search_context.highlighted_tokens.append(compared_value)

            if search_context.fuzzy_attribute_search and operator == "=":
                operator = "*=*"

            comparator = build_comparator(operator, compared_value)

            if comparator is None:
                search_context.add_error(
                    f"Can't find operator '{operator}' in {self._context(self.i - 1)}"
                )
                return None

            return LabelComparisonExp("label", label_name, comparator)

        return AttributeExistsExp(
            "label", label_name, search_context.fuzzy_attribute_search
        )

    def _parse_relation(self, relation_name: str) -> Expression | None:
        search_context = self.search_context
        search_context.highlighted_tokens.append(relation_name)

        if self.i < len(self.tokens) - 2 and self._is_token(self.i + 1, "."):
            self.i += 1
            sub_expression = self._parse_note_property()

            if sub_expression is None:
                return None

            return RelationWhereExp(relation_name, sub_expression)

        if self.i < len(self.tokens) - 2 and _is_operator(self.tokens[self.i + 1]):
            search_context.add_error(
                f"Relation can be compared only with property, e.g. ~relation.title=hello in {self._context(self.i)}"
            )
            return None

        return AttributeExistsExp(
            "relation", relation_name, search_context.fuzzy_attribute_search
        )

    def _parse_order_by_and_limit(self) -> OrderByAndLimitExp:
        order_definitions: list[OrderDefinition] = []
        limit: int | None = None

        if self._is_token(self.i, "orderby"):
            while True:
                property_path: list[str] = []
                direction = "asc"

                while True:
                    self.i += 1
                    property_path.append(self._token(self.i).token)
                    self.i += 1

                    if not self._is_token(self.i, "."):
                        break

                if self._is_token(self.i, "asc") or self._is_token(self.i, "desc"):
                    direction = self._token(self.i).token
                    self.i += 1

                value_extractor = ValueExtractor(property_path)

                if (error := value_extractor.validate()) is not None:
                    self.search_context.add_error(error)

                order_definitions.append(
                    OrderDefinition(value_extractor, direction)
                )

                if not self._is_token(self.i, ","):
                    break

        if self._is_token(self.i, "limit"):
            limit = int(self._token(self.i + 1).token)

        return OrderByAndLimitExp(order_definitions, limit)


def get_ancestor_exp(search_context: SearchContext) -> Expression | None:
    """
    Get expression scoping results to the ancestor, or excluding the hidden
    subtree if there's no ancestor.
    """
    ancestor_note_id = search_context.ancestor_note_id or ROOT_NOTE_ID

    if ancestor_note_id != ROOT_NOTE_ID or search_context.ancestor_depth:
        return AncestorExp(ancestor_note_id, search_context.ancestor_depth)
    elif not search_context.include_hidden_notes:
        return NotExp(AncestorExp(HIDDEN_NOTE_ID))

    return None


def parse(
    fulltext_tokens: list[Token],
    expression_tokens: TokenTree,
    search_context: SearchContext,
) -> Expression | None:
    """
    Build expression for the whole query: the expression part combined with
    archived/ancestor scoping and full-text matching, and ordered if the
    search context specifies ordering.

    Errors are recorded on `search_context`; a malformed expression part
    matches everything.
    """
    expression: Expression | None

    try:
        expression = _ExpressionParser(expression_tokens, search_context).parse()
    except (SearchQueryError, IndexError, ValueError, re.error) as e:
        search_context.add_error(str(e))
        expression = TrueExp()

    archived_exp = None

    if not search_context.include_archived_notes:
        archived_exp = PropertyComparisonExp("isarchived", "=", "false")

    exp = AndExp.of(
        [
            archived_exp,
            get_ancestor_exp(search_context),
            get_fulltext(fulltext_tokens, search_context),
            expression,
        ]
    )

    order_by = search_context.order_by

    if order_by and order_by != "relevancy":
        property_path = (
            [order_by] if order_by[0] in "#~" else ["note", order_by]
        )
        value_extractor = ValueExtractor(property_path)

        if (error := value_extractor.validate()) is not None:
            search_context.add_error(error)

        exp = OrderByAndLimitExp(
            [OrderDefinition(value_extractor, search_context.order_direction)],
            search_context.limit,
            sub_expression=exp,
        )

    return exp
