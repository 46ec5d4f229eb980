from __future__ import annotations

from typing import TYPE_CHECKING

from ..entity.entity import BaseEntity
from ..entity.model import BranchRow, FieldDescriptor, ReadOnlyDescriptor
from ..entity.types import BranchStrength
from ..exceptions import ValidationError, _assert_validate
from ..utils import (
    HIDDEN_NOTE_ID,
    ROOT_NOTE_ID,
    WEAK_PARENT_NOTE_IDS,
    new_entity_id,
    utc_now_datetime,
)

if TYPE_CHECKING:
    from ..note.note import Note
    from ..session import Session

__all__ = [
    "Branch",
]


class Branch(BaseEntity[BranchRow]):
    """
    Placement of a child note under a parent note. A note placed under
    several parents (cloned) has one branch per parent.
    """

    entity_name = "branches"
    hashed_properties = ["branch_id", "note_id", "parent_note_id", "prefix"]

    branch_id: str | None = ReadOnlyDescriptor("branch_id")  # type: ignore[assignment]
    note_id: str = ReadOnlyDescriptor("note_id")  # type: ignore[assignment]
    parent_note_id: str = ReadOnlyDescriptor("parent_note_id")  # type: ignore[assignment]
    prefix: str | None = FieldDescriptor("prefix")  # type: ignore[assignment]
    note_position: int | None = FieldDescriptor("note_position")  # type: ignore[assignment]
    is_expanded: bool = FieldDescriptor("is_expanded")  # type: ignore[assignment]
    utc_date_modified: str | None = ReadOnlyDescriptor("utc_date_modified")  # type: ignore[assignment]

    def __init__(self, row: BranchRow, *, session: Session, create: bool = True):
        if row.branch_id is None:
            row.branch_id = f"{row.parent_note_id}_{row.note_id}"
        super().__init__(row, session=session, create=create)

    @property
    def _str_short(self) -> str:
        return f"Branch(parent={self.parent_note_id}, child={self.note_id}, prefix={self.prefix}, note_position={self.note_position}, branch_id={self.branch_id})"

    @property
    def strength(self) -> BranchStrength:
        """
        Weak branches don't count as real parentage, e.g. when deciding
        whether a note lost its last parent.
        """
        return (
            BranchStrength.WEAK
            if self.parent_note_id in WEAK_PARENT_NOTE_IDS
            else BranchStrength.STRONG
        )

    @property
    def is_weak(self) -> bool:
        return self.strength is BranchStrength.WEAK

    @property
    def child_note(self) -> Note:
        """
        Child note, created as skeleton if not loaded yet.
        """
        return self._get_or_create_note(self.note_id)

    @property
    def parent_note(self) -> Note:
        """
        Parent note, created as skeleton if not loaded yet.
        """
        return self._get_or_create_note(self.parent_note_id)

    @property
    def is_deleted(self) -> bool:
        return (
            self.branch_id is None
            or self._session._cache.branches.get(self.branch_id) is not self
        )

    def delete_branch(
        self, delete_id: str | None = None, *, run_hooks: bool = True
    ) -> bool:
        """
        Soft-delete this branch. If the child note has no remaining strong
        branch, the note and its subtree are deleted too.

        Returns whether the child note was deleted.

        :raises ValidationError: If this is the branch of root or the hoisted note
        """
        session = self._session
        delete_id = delete_id or new_entity_id()
        note = self.child_note

        _assert_validate(
            self.note_id not in (ROOT_NOTE_ID, session.hoisted_note_id),
            "Can't delete root or hoisted branch/note",
        )

        with session.transaction():
            parent_branches = note.get_parent_branches()
            if (
                run_hooks
                and len(parent_branches) == 1
                and parent_branches[0] is self
            ):
                # run before attributes and branches disappear
                session.run_attached_relations(note, "runOnNoteDeletion", note)

            self.mark_as_deleted(delete_id)

            if note.get_strong_parent_branches():
                return False

            for weak_branch in note.get_parent_branches():
                weak_branch.mark_as_deleted(delete_id)

            for child_branch in note.get_child_branches():
                child_branch.delete_branch(delete_id)

            session._logger.info(f"Deleting note {note.note_id}")

            note.is_being_deleted = True

            for attribute in list(note.get_owned_attributes()):
                attribute.mark_as_deleted(delete_id)

            for relation in list(note.get_target_relations()):
                relation.mark_as_deleted(delete_id)

            note.mark_as_deleted(delete_id)

        return True

    def _init(self):
        cache = self._session._cache

        if self.branch_id is not None:
            cache.branches[self.branch_id] = self

        cache.child_parent_to_branch[f"{self.note_id}-{self.parent_note_id}"] = self

        child_note = self.child_note

        if self not in child_note._parent_branches:
            child_note._parent_branches.append(self)

        if self.note_id == ROOT_NOTE_ID:
            return

        parent_note = self.parent_note

        if parent_note not in child_note._parents:
            child_note._parents.append(parent_note)

        if child_note not in parent_note._children:
            parent_note._children.append(child_note)

    def _before_saving(self):
        if not self.note_id or not self.parent_note_id:
            raise ValidationError(
                f"note_id and parent_note_id are mandatory properties for {self}"
            )

        self._row.branch_id = f"{self.parent_note_id}_{self.note_id}"

        if self._row.note_position is None:
            positions = [
                b.note_position or 0
                for b in self.parent_note.get_child_branches()
                if b.note_id != HIDDEN_NOTE_ID and b is not self
            ]
            self._row.note_position = max(positions, default=0) + 10

        if self._row.prefix is not None and not self._row.prefix.strip():
            self._row.prefix = None

        self._row.utc_date_modified = utc_now_datetime()

        super()._before_saving()

    def _get_or_create_note(self, note_id: str) -> Note:
        from ..note.note import Note

        note = self._session._cache.notes.get(note_id)
        if note is None:
            # entities can arrive out of order, fill in later
            note = Note._skeleton(note_id, self._session)
        return note
