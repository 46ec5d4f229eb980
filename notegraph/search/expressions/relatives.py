"""
Expressions matching notes by their position in the tree.
"""

from __future__ import annotations

from typing import Callable

from ..comparators import build_depth_comparator
from ..note_set import NoteSet
from .expression import Expression

__all__ = [
    "ChildOfExp",
    "ParentOfExp",
    "DescendantOfExp",
    "AncestorExp",
]


class ChildOfExp(Expression):
    """
    Matches notes having a parent which matches the sub-expression
    (`note.parents.<...>`).
    """

    sub_expression: Expression

    def __init__(self, sub_expression: Expression):
        self.sub_expression = sub_expression

    def execute(self, input_note_set, execution_context, search_context):
        parents = NoteSet()

        for note in input_note_set:
            parents.add_all(note.parents)

        matched = self.sub_expression.execute(
            parents, execution_context, search_context
        )

        result = NoteSet()

        for parent in matched:
            for child in parent.children:
                if input_note_set.has_note(child):
                    result.add(child)

        return result


class ParentOfExp(Expression):
    """
    Matches notes having a child which matches the sub-expression
    (`note.children.<...>`).
    """

    sub_expression: Expression

    def __init__(self, sub_expression: Expression):
        self.sub_expression = sub_expression

    def execute(self, input_note_set, execution_context, search_context):
        children = NoteSet()

        for note in input_note_set:
            children.add_all(note.children)

        matched = self.sub_expression.execute(
            children, execution_context, search_context
        )

        result = NoteSet()

        for child in matched:
            for parent in child.parents:
                if input_note_set.has_note(parent):
                    result.add(parent)

        return result


class DescendantOfExp(Expression):
    """
    Matches notes having an ancestor which matches the sub-expression
    (`note.ancestors.<...>`).
    """

    sub_expression: Expression

    def __init__(self, sub_expression: Expression):
        self.sub_expression = sub_expression

    def execute(self, input_note_set, execution_context, search_context):
        all_notes = search_context.session._cache.get_all_note_set()

        matched = self.sub_expression.execute(
            all_notes, execution_context, search_context
        )

        subtree_notes = NoteSet()

        for note in matched:
            subtree_notes.add_all(note.get_subtree_notes())

        return input_note_set.intersection(subtree_notes)


class AncestorExp(Expression):
    """
    Matches notes in the subtree of the given note, optionally at a given
    distance from it.
    """

    ancestor_note_id: str
    ancestor_depth: str | None

    depth_comparator: Callable[[int], bool] | None
    """
    Predicate on distance to ancestor, or `None` to not filter by depth.
    """

    depth_error: str | None

    def __init__(self, ancestor_note_id: str, ancestor_depth: str | None = None):
        self.ancestor_note_id = ancestor_note_id
        self.ancestor_depth = ancestor_depth
        self.depth_comparator = None
        self.depth_error = None

        if ancestor_depth:
            try:
                self.depth_comparator = build_depth_comparator(ancestor_depth)
            except ValueError as e:
                self.depth_error = str(e)

    def execute(self, input_note_set, execution_context, search_context):
        logger = search_context.session._logger

        if self.depth_error is not None:
            # degrade to no depth filtering
            logger.error(self.depth_error)
            search_context.add_error(self.depth_error)

        ancestor_note = search_context.session._cache.get_note(
            self.ancestor_note_id
        )

        if ancestor_note is None or ancestor_note.is_deleted:
            logger.error(f"Ancestor note '{self.ancestor_note_id}' was not found")
            return NoteSet()

        # searching within the hidden subtree must not skip it
        include_hidden = (
            search_context.include_hidden_notes
            or ancestor_note.is_in_hidden_subtree()
        )

        subtree_notes = NoteSet(
            ancestor_note.get_subtree_notes(include_hidden=include_hidden)
        ).intersection(input_note_set)

        if self.depth_comparator is None:
            return subtree_notes

        return NoteSet(
            note
            for note in subtree_notes
            if self.depth_comparator(
                note.get_distance_to_ancestor(ancestor_note.note_id)
            )
        )
