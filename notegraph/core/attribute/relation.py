from __future__ import annotations

from typing import TYPE_CHECKING

from ..entity.types import AttributeType
from ..exceptions import _assert_validate
from .attribute import BaseAttribute

if TYPE_CHECKING:
    from ..note.note import Note

__all__ = [
    "Relation",
]


class Relation(BaseAttribute):
    """
    Named edge from owning note to a target note; value is the target's note
    id.
    """

    attribute_type = AttributeType.RELATION

    @property
    def value(self) -> str:
        return self._row.value

    @value.setter
    def value(self, value: str):
        # reject before touching the current target's wiring
        self._validate_target(value)

        # move registration to new target
        self._detach_target()
        self._row.value = value
        self._init_target()
        self._check_state()

    @property
    def target_note(self) -> Note | None:
        """
        Note this relation points to, if it exists.
        """
        return self._session._cache.notes.get(self.value)

    def validate(self):
        super().validate()
        self._validate_target(self.value)

    def _validate_target(self, target_note_id: str):
        _assert_validate(
            target_note_id in self._session._cache.notes,
            f"Cannot save relation '{self.name}' since it targets not existing note '{target_note_id}'",
        )

    def _init_target(self):
        target_note = self.target_note

        if target_note is None:
            # wired up once the target note is cached
            pending = self._session._cache.pending_target_relations.setdefault(
                self.value, []
            )
            if self not in pending:
                pending.append(self)

        elif self not in target_note._target_relations:
            target_note._target_relations.append(self)

    def _detach_target(self):
        target_note = self.target_note
        if target_note is not None:
            target_note._target_relations = [
                r for r in target_note._target_relations if r is not self
            ]

    def _target_note_or_none(self) -> Note | None:
        return self.target_note
