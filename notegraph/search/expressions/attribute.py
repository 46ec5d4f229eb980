"""
Expressions matching notes by their attributes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from ..note_set import NoteSet
from .expression import Expression

if TYPE_CHECKING:
    from ...core.attribute.attribute import BaseAttribute
    from ...core.attribute.relation import Relation
    from ..comparators import Comparator

__all__ = [
    "AttributeExistsExp",
    "LabelComparisonExp",
    "RelationWhereExp",
]


def _add_affected_notes(result: NoteSet, attribute: BaseAttribute):
    """
    Add notes on which attribute is effective: the whole subtree for an
    inheritable attribute, otherwise the owner and notes inheriting from it.
    """
    note = attribute.note

    if attribute.is_inheritable:
        result.add_all(note.get_subtree_notes_including_templated())
    elif note.is_inherited():
        result.add_all(note.get_inheriting_notes())
    else:
        result.add(note)


class AttributeExistsExp(Expression):
    """
    Matches notes having an attribute of the given type and name. With
    `prefix_match`, names starting with `attribute_name` also match.
    """

    attribute_type: str
    attribute_name: str
    prefix_match: bool

    def __init__(
        self, attribute_type: str, attribute_name: str, prefix_match: bool = False
    ):
        self.attribute_type = attribute_type
        self.attribute_name = attribute_name
        self.prefix_match = prefix_match

    def execute(self, input_note_set, execution_context, search_context):
        cache = search_context.session._cache

        attributes = (
            cache.find_attributes_with_prefix(
                self.attribute_type, self.attribute_name
            )
            if self.prefix_match
            else cache.find_attributes(self.attribute_type, self.attribute_name)
        )

        result = NoteSet()

        for attribute in attributes:
            _add_affected_notes(result, attribute)

        return result.intersection(input_note_set)


class LabelComparisonExp(Expression):
    """
    Matches notes having a label whose lowercased value satisfies the
    comparator.
    """

    attribute_type: str
    attribute_name: str
    comparator: Comparator

    def __init__(
        self, attribute_type: str, attribute_name: str, comparator: Comparator
    ):
        self.attribute_type = attribute_type
        self.attribute_name = attribute_name
        self.comparator = comparator

    def execute(self, input_note_set, execution_context, search_context):
        cache = search_context.session._cache
        result = NoteSet()

        for attribute in cache.find_attributes(
            self.attribute_type, self.attribute_name
        ):
            value = attribute.value.lower() if attribute.value else attribute.value

            if input_note_set.has_note_id(attribute.note_id) and self.comparator(
                value
            ):
                _add_affected_notes(result, attribute)

        return result.intersection(input_note_set)


class RelationWhereExp(Expression):
    """
    Matches notes having a relation whose target matches the sub-expression.
    """

    relation_name: str
    sub_expression: Expression

    def __init__(self, relation_name: str, sub_expression: Expression):
        self.relation_name = relation_name
        self.sub_expression = sub_expression

    def execute(self, input_note_set, execution_context, search_context):
        cache = search_context.session._cache
        result = NoteSet()

        relations = cast(
            list["Relation"], cache.find_attributes("relation", self.relation_name)
        )

        for relation in relations:
            if not input_note_set.has_note_id(relation.note_id):
                continue

            target_note = relation.target_note

            if target_note is None:
                continue

            matched = self.sub_expression.execute(
                NoteSet([target_note]), execution_context, search_context
            )

            if matched.has_note(target_note):
                _add_affected_notes(result, relation)

        return result.intersection(input_note_set)
