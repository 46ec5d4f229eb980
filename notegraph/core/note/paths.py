"""
Path and ancestry queries of a note.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple, cast

from ..memo import MemoCell
from ..utils import HIDDEN_NOTE_ID, ROOT_NOTE_ID, UNREACHABLE_DISTANCE

if TYPE_CHECKING:
    from ..session import Session
    from .note import Note

__all__ = [
    "NotePaths",
    "NotePathRecord",
]


class NotePathRecord(NamedTuple):
    """
    A path from root to a note, annotated with the properties it's ranked by.
    """

    note_path: list[str]
    is_in_hoisted_subtree: bool
    is_archived: bool
    is_hidden: bool


class NotePaths:
    """
    Mixin implementing enumeration of root-to-note paths and ancestor queries.
    """

    note_id: str
    _session: Session
    _parents: list[Note]
    _ancestor_cache: MemoCell[list[Note]]

    def get_all_note_paths(self) -> list[list[str]]:
        """
        Get every path from root to this note, each a list of note ids
        starting with `root`. Parents which are saved searches don't
        contribute paths.
        """
        return self._get_all_note_paths(frozenset())

    def _get_all_note_paths(self, visited: frozenset[str]) -> list[list[str]]:
        if self.note_id == ROOT_NOTE_ID:
            return [[ROOT_NOTE_ID]]

        if self.note_id in visited:
            return []

        visited = visited | {self.note_id}
        note_paths: list[list[str]] = []

        for parent in self._parents:
            if parent.note_type == "search":
                continue

            for path in parent._get_all_note_paths(visited):
                note_paths.append(path + [self.note_id])

        return note_paths

    def get_sorted_note_path_records(
        self, hoisted_note_id: str = ROOT_NOTE_ID
    ) -> list[NotePathRecord]:
        """
        Get all paths ordered by preference: inside the hoisted subtree
        first, then non-archived, then not hidden, then shortest.
        """
        notes = self._session._cache.notes
        is_hoisted_root = hoisted_note_id == ROOT_NOTE_ID

        records = [
            NotePathRecord(
                note_path=path,
                is_in_hoisted_subtree=is_hoisted_root or hoisted_note_id in path,
                is_archived=any(
                    notes[note_id].is_archived
                    for note_id in path
                    if note_id in notes
                ),
                is_hidden=HIDDEN_NOTE_ID in path,
            )
            for path in self.get_all_note_paths()
        ]

        records.sort(
            key=lambda r: (
                not r.is_in_hoisted_subtree,
                r.is_archived,
                r.is_hidden,
                len(r.note_path),
            )
        )

        return records

    def get_best_note_path(
        self, hoisted_note_id: str = ROOT_NOTE_ID
    ) -> list[str] | None:
        records = self.get_sorted_note_path_records(hoisted_note_id)
        return records[0].note_path if records else None

    def get_best_note_path_string(
        self, hoisted_note_id: str = ROOT_NOTE_ID
    ) -> str | None:
        note_path = self.get_best_note_path(hoisted_note_id)
        return "/".join(note_path) if note_path else None

    def are_all_note_paths_archived(self) -> bool:
        """
        Whether even the best path passes through an archived note. Differs
        from {obj}`Note.is_archived`, which only considers labels effective on
        this note.

        :raises ValueError: If note has no path to root
        """
        records = self.get_sorted_note_path_records()

        if not records:
            raise ValueError(f"No note path available for note '{self.note_id}'")

        return records[0].is_archived

    def get_ancestors(self) -> list[Note]:
        """
        Get all distinct ancestors, depth-first over parents in order.
        """
        return self._ancestor_cache.get(lambda: self._get_ancestors(frozenset()))

    def _get_ancestors(self, visited: frozenset[str]) -> list[Note]:
        visited = visited | {self.note_id}
        ancestors: list[Note] = []
        seen: set[str] = set()

        for parent in self._parents:
            if parent.note_id in seen or parent.note_id in visited:
                continue

            ancestors.append(parent)
            seen.add(parent.note_id)

            parent_ancestors = (
                parent._ancestor_cache.peek()
                if parent._ancestor_cache.is_set
                else parent._get_ancestors(visited)
            )

            for ancestor in cast(list["Note"], parent_ancestors):
                if ancestor.note_id not in seen:
                    ancestors.append(ancestor)
                    seen.add(ancestor.note_id)

        return ancestors

    def get_ancestor_note_ids(self) -> list[str]:
        return [note.note_id for note in self.get_ancestors()]

    def has_ancestor(self, ancestor_note_id: str) -> bool:
        return any(note.note_id == ancestor_note_id for note in self.get_ancestors())

    def is_descendant_of_note(self, ancestor_note_id: str) -> bool:
        return self.note_id == ancestor_note_id or self.has_ancestor(
            ancestor_note_id
        )

    def is_in_hidden_subtree(self) -> bool:
        return self.note_id == HIDDEN_NOTE_ID or self.has_ancestor(HIDDEN_NOTE_ID)

    def is_hidden_completely(self) -> bool:
        """
        Whether every path to root passes through the hidden subtree.
        """
        return self._is_hidden_completely(frozenset())

    def _is_hidden_completely(self, visited: frozenset[str]) -> bool:
        if self.note_id == ROOT_NOTE_ID:
            return False

        visited = visited | {self.note_id}

        for parent in self._parents:
            if parent.note_id == ROOT_NOTE_ID:
                return False
            elif parent.note_id == HIDDEN_NOTE_ID or parent.note_id in visited:
                continue
            elif not parent._is_hidden_completely(visited):
                return False

        return True

    def get_distance_to_ancestor(self, ancestor_note_id: str) -> int:
        """
        Get length of the shortest parent chain to the given ancestor, or a
        large sentinel if it's not an ancestor.
        """
        return self._get_distance_to_ancestor(ancestor_note_id, frozenset())

    def _get_distance_to_ancestor(
        self, ancestor_note_id: str, visited: frozenset[str]
    ) -> int:
        if self.note_id == ancestor_note_id:
            return 0

        visited = visited | {self.note_id}
        min_distance = UNREACHABLE_DISTANCE

        for parent in self._parents:
            if parent.note_id in visited:
                continue

            min_distance = min(
                min_distance,
                parent._get_distance_to_ancestor(ancestor_note_id, visited) + 1,
            )

        return min_distance
