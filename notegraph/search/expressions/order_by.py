"""
Expression ordering and limiting results of its sub-expression.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cmp_to_key
from typing import TYPE_CHECKING, Any

from ..comparators import to_number
from ..note_set import NoteSet
from .expression import Expression, TrueExp

if TYPE_CHECKING:
    from ...core.note.note import Note
    from ..value_extractor import ValueExtractor

__all__ = [
    "OrderDefinition",
    "OrderByAndLimitExp",
]


@dataclass
class OrderDefinition:
    value_extractor: ValueExtractor
    direction: str = "asc"

    @property
    def smaller(self) -> int:
        return -1 if self.direction == "asc" else 1

    @property
    def larger(self) -> int:
        return -self.smaller


def _to_comparable(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"

    return value


class OrderByAndLimitExp(Expression):
    """
    Orders notes by a list of property paths, then keeps the first `limit`
    of them. Notes lacking a value sort after those having one.
    """

    order_definitions: list[OrderDefinition]

    limit: int
    """
    Max number of results, or 0 for no limit.
    """

    sub_expression: Expression

    def __init__(
        self,
        order_definitions: list[OrderDefinition],
        limit: int | None = None,
        sub_expression: Expression | None = None,
    ):
        self.order_definitions = order_definitions
        self.limit = limit or 0
        self.sub_expression = sub_expression or TrueExp()

    def execute(self, input_note_set, execution_context, search_context):
        notes = list(
            self.sub_expression.execute(
                input_note_set, execution_context, search_context
            )
        )

        notes.sort(key=cmp_to_key(self._compare))

        if self.limit > 0:
            notes = notes[: self.limit]

        result = NoteSet(notes)
        result.sorted = True

        return result

    def _compare(self, a: Note, b: Note) -> int:
        for definition in self.order_definitions:
            value_a = _to_comparable(definition.value_extractor.extract(a))
            value_b = _to_comparable(definition.value_extractor.extract(b))

            if value_a is None and value_b is None:
                continue
            elif value_b is None:
                return definition.smaller
            elif value_a is None:
                return definition.larger

            number_a, number_b = to_number(str(value_a)), to_number(str(value_b))

            if number_a is not None and number_b is not None:
                value_a, value_b = number_a, number_b
            else:
                value_a, value_b = str(value_a), str(value_b)

            if not value_a and not value_b:
                # empty or zero in both, try next definition
                continue
            elif not value_b or value_a < value_b:
                return definition.smaller
            elif not value_a or value_a > value_b:
                return definition.larger

        return 0
