"""
Ordered set of notes, the unit expressions operate on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Iterator

if TYPE_CHECKING:
    from ..core.note.note import Note

__all__ = [
    "NoteSet",
]


class NoteSet:
    """
    Notes in insertion order, unique by note id.
    """

    notes: list[Note]
    sorted: bool
    """
    Whether the order was set by the query and must be kept.
    """

    _note_ids: set[str]

    def __init__(self, notes: Iterable[Note] = ()):
        self.notes = []
        self._note_ids = set()
        self.sorted = False

        self.add_all(notes)

    def __repr__(self):
        return f"NoteSet({[note.note_id for note in self.notes]})"

    def __len__(self) -> int:
        return len(self.notes)

    def __iter__(self) -> Iterator[Note]:
        return iter(self.notes)

    def __contains__(self, note: Note) -> bool:
        return self.has_note(note)

    @property
    def note_ids(self) -> list[str]:
        return [note.note_id for note in self.notes]

    def add(self, note: Note):
        if note.note_id not in self._note_ids:
            self.notes.append(note)
            self._note_ids.add(note.note_id)

    def add_all(self, notes: Iterable[Note]):
        for note in notes:
            self.add(note)

    def has_note(self, note: Note) -> bool:
        return note.note_id in self._note_ids

    def has_note_id(self, note_id: str) -> bool:
        return note_id in self._note_ids

    def merge_in(self, other: NoteSet):
        self.add_all(other.notes)

    def minus(self, other: NoteSet) -> NoteSet:
        return NoteSet(note for note in self.notes if not other.has_note(note))

    def intersection(self, other: NoteSet) -> NoteSet:
        return NoteSet(note for note in self.notes if other.has_note(note))
