"""
Subtree traversal, ordering and cache invalidation of a note.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generator, cast

from ..memo import MemoCell
from ..utils import HIDDEN_NOTE_ID, INHERIT_RELATIONS, ROOT_NOTE_ID

if TYPE_CHECKING:
    from ..attribute.attribute import BaseAttribute
    from ..attribute.relation import Relation
    from ..branch.branch import Branch
    from ..session import Session
    from .note import Note

__all__ = [
    "NoteSubtree",
    "Subtree",
]


@dataclass(kw_only=True)
class Subtree:
    """
    Notes reachable from a note, plus every parent-child edge encountered,
    including edges to notes already visited through a clone.
    """

    notes: list[Note] = field(default_factory=list)
    relationships: list[tuple[str, str]] = field(default_factory=list)
    """
    Tuples of (parent note id, child note id).
    """

    @property
    def note_ids(self) -> list[str]:
        return [note.note_id for note in self.notes]


class NoteSubtree:
    """
    Mixin implementing subtree traversal and invalidation of derived caches.
    """

    note_id: str
    _session: Session
    _parents: list[Note]
    _children: list[Note]
    _parent_branches: list[Branch]
    _target_relations: list[Relation]

    _attribute_cache: MemoCell[list[BaseAttribute]]
    _inheritable_attribute_cache: MemoCell[list[BaseAttribute]]
    _ancestor_cache: MemoCell[list[Note]]
    _flat_text_cache: MemoCell[str]

    def get_subtree(
        self,
        include_archived: bool = True,
        include_hidden: bool = False,
        resolve_search: bool = False,
    ) -> Subtree:
        """
        Collect this note and its descendants.

        :param include_archived: Descend into archived notes
        :param include_hidden: Descend into the hidden subtree
        :param resolve_search: Treat results of saved searches as their children
        """
        subtree = Subtree()
        seen: set[str] = set()
        logger = self._session._logger

        def add(note: Note, parent_note: Note | None = None):
            if note.note_id == HIDDEN_NOTE_ID and not include_hidden:
                return

            if parent_note is not None:
                # record before the visited check to include clone edges
                subtree.relationships.append((parent_note.note_id, note.note_id))

            if note.note_id in seen:
                return

            if not include_archived and note.is_archived:
                return

            seen.add(note.note_id)
            subtree.notes.append(note)

            if note.note_type == "search":
                if resolve_search:
                    try:
                        results = note.get_search_result_notes()
                    except Exception as e:
                        logger.error(
                            f"Could not resolve search note {note.note_id}: {e}"
                        )
                    else:
                        for result_note in results:
                            add(result_note, note)
            else:
                for child in note._children:
                    add(child, note)

        add(cast("Note", self))

        return subtree

    def get_subtree_notes(self, **kwargs) -> list[Note]:
        return self.get_subtree(**kwargs).notes

    def get_subtree_note_ids(self, **kwargs) -> list[str]:
        return self.get_subtree(**kwargs).note_ids

    def get_subtree_notes_including_templated(self) -> list[Note]:
        """
        Get notes whose effective attributes may depend on this note: its
        subtree plus notes having template/inherit relations to any of them,
        transitively. The hidden subtree is not followed.
        """
        notes: list[Note] = []
        seen: set[str] = set()

        def add(note: Note):
            if note.note_id in seen or note.note_id == HIDDEN_NOTE_ID:
                return

            seen.add(note.note_id)
            notes.append(note)

            for child in note._children:
                add(child)

            for relation in note._target_relations:
                if relation.name in INHERIT_RELATIONS:
                    add(relation.note)

        add(cast("Note", self))

        return notes

    def walk(self) -> Generator[Note, None, None]:
        """
        Yield this note and all children recursively. Each note will only
        occur once (clones are skipped).
        """
        yield from self._walk(set())

    def _walk(self, seen: set[str]) -> Generator[Note, None, None]:
        seen.add(self.note_id)
        yield cast("Note", self)

        for child in self._children:
            if child.note_id not in seen:
                yield from child._walk(seen)

    def get_search_result_notes(self) -> list[Note]:
        """
        Run this saved search and get resulting notes. Returns an empty list
        for other note types, or if the search failed.
        """
        from ...search.service import search_from_note

        note = cast("Note", self)

        if note.note_type != "search":
            return []

        try:
            response = search_from_note(note)
        except Exception as e:
            self._session._logger.error(
                f"Could not resolve search note {self.note_id}: {e}"
            )
            return []

        return self._session._cache.get_notes(
            response.search_result_note_ids, ignore_missing=True
        )

    def invalidate_this_cache(self):
        """
        Drop derived state of this note only.
        """
        self._flat_text_cache.invalidate()
        self._attribute_cache.invalidate()
        self._inheritable_attribute_cache.invalidate()
        self._ancestor_cache.invalidate()

    def invalidate_subtree(self):
        """
        Drop derived state of this note, its descendants and notes inheriting
        from any of them.
        """
        self._invalidate_subtree(set())

    def _invalidate_subtree(self, visited: set[str]):
        if self.note_id in visited:
            return

        visited.add(self.note_id)
        self.invalidate_this_cache()

        for child in self._children:
            child._invalidate_subtree(visited)

        for relation in self._target_relations:
            if relation.name in INHERIT_RELATIONS:
                relation.note._invalidate_subtree(visited)

    def sort_parents(self):
        """
        Order parents so regular ones come before hidden-subtree ones, and
        non-archived before archived.
        """
        if self.note_id == ROOT_NOTE_ID:
            # parent of root is virtual
            return

        def key(branch: Branch) -> tuple[bool, bool]:
            parent = branch.parent_note
            return (parent.is_in_hidden_subtree(), parent.is_archived)

        self._parent_branches.sort(key=key)
        self._parents = [branch.parent_note for branch in self._parent_branches]

    def sort_children(self):
        """
        Order children by position of their branch under this note.
        """
        cache = self._session._cache

        def key(child: Note) -> int:
            branch = cache.get_branch_from_child_and_parent(
                child.note_id, self.note_id
            )
            return (branch.note_position or 0) if branch else 0

        self._children.sort(key=key)

    def get_parent_branches(self) -> list[Branch]:
        return list(self._parent_branches)

    def get_strong_parent_branches(self) -> list[Branch]:
        return [branch for branch in self._parent_branches if not branch.is_weak]

    def get_child_branches(self) -> list[Branch]:
        cache = self._session._cache
        branches = [
            cache.get_branch_from_child_and_parent(child.note_id, self.note_id)
            for child in self._children
        ]
        return [branch for branch in branches if branch is not None]

    def get_parent_notes(self) -> list[Note]:
        return list(self._parents)

    def get_children(self) -> list[Note]:
        return list(self._children)

    def has_children(self) -> bool:
        return bool(self._children)

    @property
    def parents(self) -> list[Note]:
        """
        Parent notes, regular before hidden and archived.
        """
        return list(self._parents)

    @property
    def children(self) -> list[Note]:
        """
        Child notes in branch position order.
        """
        return list(self._children)

    @property
    def parent_count(self) -> int:
        return len(self._parents)

    @property
    def children_count(self) -> int:
        return len(self._children)
