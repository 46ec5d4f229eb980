"""
Base expression and logical combinators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable

from ..note_set import NoteSet

if TYPE_CHECKING:
    from ..context import ExecutionContext, SearchContext

__all__ = [
    "Expression",
    "AndExp",
    "OrExp",
    "NotExp",
    "TrueExp",
]


class Expression(ABC):
    """
    Node of a parsed query. Evaluating it filters an input set of notes.
    """

    @abstractmethod
    def execute(
        self,
        input_note_set: NoteSet,
        execution_context: ExecutionContext,
        search_context: SearchContext,
    ) -> NoteSet:
        """
        Get the notes of `input_note_set` matching this expression. Some
        expressions may return a new ordering.
        """
        ...

    def __repr__(self):
        fields = ", ".join(
            f"{key}={value!r}"
            for key, value in vars(self).items()
            if not key.startswith("_")
        )
        return f"{type(self).__name__}({fields})"


class AndExp(Expression):
    """
    Applies each sub-expression to the result of the previous one.
    """

    sub_expressions: list[Expression]

    def __init__(self, sub_expressions: list[Expression]):
        self.sub_expressions = sub_expressions

    @classmethod
    def of(cls, sub_expressions: Iterable[Expression | None]) -> Expression | None:
        """
        Combine expressions, skipping `None`. A single expression is returned
        as is; no expressions yields `None`.
        """
        expressions = [exp for exp in sub_expressions if exp is not None]

        if len(expressions) == 1:
            return expressions[0]
        elif expressions:
            return cls(expressions)

        return None

    def execute(self, input_note_set, execution_context, search_context):
        for exp in self.sub_expressions:
            search_context.check_deadline()
            input_note_set = exp.execute(
                input_note_set, execution_context, search_context
            )

        return input_note_set


class OrExp(Expression):
    """
    Union of sub-expression results, each evaluated on the full input.
    """

    sub_expressions: list[Expression]

    def __init__(self, sub_expressions: list[Expression]):
        self.sub_expressions = sub_expressions

    @classmethod
    def of(cls, sub_expressions: Iterable[Expression | None]) -> Expression | None:
        expressions = [exp for exp in sub_expressions if exp is not None]

        if len(expressions) == 1:
            return expressions[0]
        elif expressions:
            return cls(expressions)

        return None

    def execute(self, input_note_set, execution_context, search_context):
        result = NoteSet()

        for exp in self.sub_expressions:
            search_context.check_deadline()
            result.merge_in(
                exp.execute(input_note_set, execution_context, search_context)
            )

        return result


class NotExp(Expression):
    sub_expression: Expression

    def __init__(self, sub_expression: Expression):
        self.sub_expression = sub_expression

    def execute(self, input_note_set, execution_context, search_context):
        matched = self.sub_expression.execute(
            input_note_set, execution_context, search_context
        )
        return input_note_set.minus(matched)


class TrueExp(Expression):
    """
    Matches everything; stands in for a query which failed to parse.
    """

    def execute(self, input_note_set, execution_context, search_context):
        return input_note_set
