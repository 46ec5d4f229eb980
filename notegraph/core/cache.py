"""
Implements the graph cache: an indexed registry of all loaded notes, branches
and attributes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .exceptions import EntityDeletedError, NotFoundError
from .utils import ROOT_NOTE_ID

if TYPE_CHECKING:
    from ..search.note_set import NoteSet
    from .attribute.attribute import BaseAttribute
    from .attribute.relation import Relation
    from .branch.branch import Branch
    from .entity.entity import BaseEntity
    from .note.note import Note
    from .session import Session

__all__ = ["GraphCache"]


class GraphCache:
    """
    Single authoritative in-memory index of notes, branches and attributes.

    Entities wire themselves into the cache and into each other's
    cross-reference lists when constructed; the cache keeps those lists
    consistent as entities are saved and deleted.
    """

    notes: dict[str, Note]
    """Mapping of note id to live note"""

    branches: dict[str, Branch]
    """Mapping of branch id to live branch"""

    child_parent_to_branch: dict[str, Branch]
    """Mapping of `<noteId>-<parentNoteId>` to branch"""

    attributes: dict[str, BaseAttribute]
    """Mapping of attribute id to live attribute"""

    attribute_index: dict[str, list[BaseAttribute]]
    """Mapping of `<type>-<lowercase name>` to attributes"""

    pending_target_relations: dict[str, list[Relation]]
    """Mapping of note id to relations which target it before it is cached"""

    loaded: bool
    """Whether bulk load completed"""

    _tombstones: dict[str, Note]
    """Notes soft-deleted while this cache was live"""

    _all_note_set: NoteSet | None

    _session: Session

    def __init__(self, session: Session):
        self._session = session
        self.reset()

    def __str__(self):
        return f"GraphCache(notes={len(self.notes)}, branches={len(self.branches)}, attributes={len(self.attributes)})"

    def reset(self):
        """
        Clear all indices.
        """
        self.notes = dict()
        self.branches = dict()
        self.child_parent_to_branch = dict()
        self.attributes = dict()
        self.attribute_index = dict()
        self.pending_target_relations = dict()
        self._tombstones = dict()
        self._all_note_set = None
        self.loaded = False

    def load(self):
        """
        Reset and bulk load all non-deleted entities from the store.
        """
        from .attribute.attribute import BaseAttribute
        from .branch.branch import Branch
        from .note.note import Note

        session = self._session

        self.reset()
        rows = session._store.load_rows()

        for note_row in rows.notes:
            Note._from_row(note_row, session)

        for branch_row in rows.branches:
            Branch(branch_row, session=session, create=False)

        for attribute_row in rows.attributes:
            BaseAttribute._from_row(attribute_row, session=session, create=False)

        for note in self.notes.values():
            note.sort_parents()
            note.sort_children()

        self.loaded = True

        session._logger.info(
            f"Loaded {len(self.notes)} notes, {len(self.branches)} branches, {len(self.attributes)} attributes from {session._store}"
        )

    def add_note(self, note_id: str, note: Note):
        """
        Insert or replace note in the id map.
        """
        self.notes[note_id] = note
        self._tombstones.pop(note_id, None)
        self.dirty_note_set_cache()

    def get_note(self, note_id: str) -> Note | None:
        """
        Get note by id, including notes soft-deleted during this session.
        """
        return self.notes.get(note_id) or self._tombstones.get(note_id)

    def get_note_or_throw(self, note_id: str) -> Note:
        """
        Get live note by id.

        :raises NotFoundError: If note is unknown
        :raises EntityDeletedError: If note was soft-deleted
        """
        note = self.notes.get(note_id)

        if note is None:
            if note_id in self._tombstones:
                raise EntityDeletedError("Note", note_id)
            raise NotFoundError("Note", note_id)

        return note

    def get_notes(
        self, note_ids: list[str], ignore_missing: bool = False
    ) -> list[Note]:
        notes: list[Note] = []

        for note_id in note_ids:
            note = self.notes.get(note_id)

            if note is None:
                if ignore_missing:
                    continue
                raise NotFoundError("Note", note_id)

            notes.append(note)

        return notes

    def get_branch(self, branch_id: str) -> Branch | None:
        return self.branches.get(branch_id)

    def get_branch_or_throw(self, branch_id: str) -> Branch:
        branch = self.branches.get(branch_id)
        if branch is None:
            raise NotFoundError("Branch", branch_id)
        return branch

    def get_attribute(self, attribute_id: str) -> BaseAttribute | None:
        return self.attributes.get(attribute_id)

    def get_attribute_or_throw(self, attribute_id: str) -> BaseAttribute:
        attribute = self.attributes.get(attribute_id)
        if attribute is None:
            raise NotFoundError("Attribute", attribute_id)
        return attribute

    def get_branch_from_child_and_parent(
        self, child_note_id: str, parent_note_id: str
    ) -> Branch | None:
        return self.child_parent_to_branch.get(
            f"{child_note_id}-{parent_note_id}"
        )

    def find_attributes(
        self, attribute_type: str, attribute_name: str
    ) -> list[BaseAttribute]:
        """
        Get all live attributes with the given type and name, case-insensitive.
        """
        return list(
            self.attribute_index.get(
                _index_key(attribute_type, attribute_name), []
            )
        )

    def find_attributes_with_prefix(
        self, attribute_type: str, prefix: str
    ) -> list[BaseAttribute]:
        key_prefix = _index_key(attribute_type, prefix)

        return [
            attr
            for key, attrs in self.attribute_index.items()
            if key.startswith(key_prefix)
            for attr in attrs
        ]

    def get_all_note_set(self) -> NoteSet:
        """
        Get set of all live notes, memoized until a note is added or removed.
        """
        from ..search.note_set import NoteSet

        if self._all_note_set is None:
            self._all_note_set = NoteSet(self.notes.values())

        return self._all_note_set

    def dirty_note_set_cache(self):
        self._all_note_set = None

    def get_note_title(
        self, child_note_id: str, parent_note_id: str | None = None
    ) -> str:
        """
        Get title of note as shown under the given parent, including branch
        prefix.
        """
        child_note = self.notes.get(child_note_id)

        if child_note is None:
            return "[error fetching title]"

        title = child_note.get_title_or_protected()

        branch = (
            self.get_branch_from_child_and_parent(child_note_id, parent_note_id)
            if parent_note_id
            else None
        )

        return f"{branch.prefix} - {title}" if branch and branch.prefix else title

    def get_note_title_array_for_path(
        self, note_path: list[str], hoisted_note_id: str = ROOT_NOTE_ID
    ) -> list[str]:
        """
        Get titles of path segments below the hoisted note; a path outside
        the hoisted subtree gets titles for its whole length below root.
        """
        if len(note_path) == 1 and note_path[0] == hoisted_note_id:
            return [self.get_note_title(note_path[0])]

        titles: list[str] = []
        parent_note_id = ROOT_NOTE_ID
        hoisted_note_passed = False
        outside_of_hoisted = hoisted_note_id not in note_path

        for note_id in note_path:
            if hoisted_note_passed:
                titles.append(self.get_note_title(note_id, parent_note_id))

            if not hoisted_note_passed and (
                note_id == hoisted_note_id or outside_of_hoisted
            ):
                hoisted_note_passed = True

            parent_note_id = note_id

        return titles

    def get_note_title_for_path(
        self, note_path: list[str], hoisted_note_id: str = ROOT_NOTE_ID
    ) -> str:
        return " / ".join(
            self.get_note_title_array_for_path(note_path, hoisted_note_id)
        )

    def decrypt_all(self):
        """
        Refresh decrypted titles after entering or leaving protected session.
        """
        for note in self.notes.values():
            if note.is_protected:
                note.decrypt()

    def apply_row(
        self,
        entity_name: str,
        row: dict[str, Any],
        *,
        is_deleted: bool = False,
    ):
        """
        Apply a row received from another replica. The row is written to the
        store and reflected in the cache; notes referenced before their own row
        arrives are created as skeletons and filled in later.
        """
        from .attribute.attribute import BaseAttribute
        from .branch.branch import Branch
        from .entity.model import AttributeRow, BranchRow, NoteRow
        from .note.note import Note

        session = self._session
        entity: BaseEntity | None

        match entity_name:
            case "notes":
                note_row = NoteRow.model_validate(row)
                entity = self.notes.get(note_row.note_id)

                if is_deleted:
                    if entity is not None:
                        entity.mark_as_deleted()
                    return

                session._store.upsert(entity_name, note_row)

                if entity is None:
                    Note._from_row(note_row, session)
                else:
                    entity._update_from_row(note_row)
                    self._entity_saved(entity, False)

            case "branches":
                branch_row = BranchRow.model_validate(row)
                entity = self.branches.get(branch_row.branch_id or "")

                if is_deleted:
                    if entity is not None:
                        entity.mark_as_deleted()
                    return

                session._store.upsert(entity_name, branch_row)

                if entity is None:
                    entity = Branch(branch_row, session=session, create=False)
                else:
                    entity._update_from_row(branch_row)

                self._entity_saved(entity, False)

            case "attributes":
                attribute_row = AttributeRow.model_validate(row)
                entity = self.attributes.get(attribute_row.attribute_id or "")

                if is_deleted:
                    if entity is not None:
                        entity.mark_as_deleted()
                    return

                session._store.upsert(entity_name, attribute_row)

                if entity is not None:
                    # identity fields may change; re-wire from scratch
                    self._attribute_deleted(entity)

                entity = BaseAttribute._from_row(
                    attribute_row, session=session, create=False
                )
                self._entity_saved(entity, False)

            case _:
                raise ValueError(f"Unknown entity name: {entity_name}")

    def _entity_saved(self, entity: BaseEntity, is_new: bool):
        """
        Update indices after an entity was persisted.
        """
        from .attribute.attribute import BaseAttribute
        from .branch.branch import Branch
        from .note.note import Note

        match entity:
            case Note():
                self.add_note(entity.note_id, entity)
                entity._flat_text_cache.invalidate()

            case Branch():
                assert entity.branch_id is not None
                self.branches[entity.branch_id] = entity
                self._branch_updated(entity)

            case BaseAttribute():
                assert entity.attribute_id is not None
                self.attributes[entity.attribute_id] = entity
                self._attribute_updated(entity)

    def _entity_deleted(self, entity: BaseEntity):
        """
        Remove a soft-deleted entity from indices.
        """
        from .attribute.attribute import BaseAttribute
        from .branch.branch import Branch
        from .note.note import Note

        match entity:
            case Note():
                if self.notes.get(entity.note_id) is entity:
                    del self.notes[entity.note_id]
                self._tombstones[entity.note_id] = entity
                self.dirty_note_set_cache()

            case Branch():
                self._branch_deleted(entity)

            case BaseAttribute():
                self._attribute_deleted(entity)

    def _branch_updated(self, branch: Branch):
        child_note = self.notes.get(branch.note_id)
        if child_note is not None:
            child_note.sort_parents()
            child_note.invalidate_subtree()

        parent_note = self.notes.get(branch.parent_note_id)
        if parent_note is not None:
            parent_note.sort_children()

    def _branch_deleted(self, branch: Branch):
        child_note = self.notes.get(branch.note_id)

        if child_note is not None:
            child_note._parents = [
                p for p in child_note._parents if p.note_id != branch.parent_note_id
            ]
            child_note._parent_branches = [
                b for b in child_note._parent_branches if b is not branch
            ]

            if child_note._parents:
                child_note.invalidate_subtree()
            else:
                child_note.invalidate_this_cache()

        parent_note = self.notes.get(branch.parent_note_id)
        if parent_note is not None:
            parent_note._children = [
                c for c in parent_note._children if c.note_id != branch.note_id
            ]

        key = f"{branch.note_id}-{branch.parent_note_id}"
        if self.child_parent_to_branch.get(key) is branch:
            del self.child_parent_to_branch[key]

        if branch.branch_id and self.branches.get(branch.branch_id) is branch:
            del self.branches[branch.branch_id]

    def _attribute_updated(self, attribute: BaseAttribute):
        note = self.notes.get(attribute.note_id)

        if note is not None:
            if attribute.is_affecting_subtree or note.is_inherited():
                note.invalidate_subtree()
            else:
                note.invalidate_this_cache()

    def _attribute_deleted(self, attribute: BaseAttribute):
        note = self.notes.get(attribute.note_id)

        if note is not None:
            # invalidate first so inheriting notes are still reachable
            if attribute.is_affecting_subtree or note.is_inherited():
                note.invalidate_subtree()
            else:
                note.invalidate_this_cache()

            note._owned_attributes = [
                a for a in note._owned_attributes if a is not attribute
            ]

        target_note = attribute._target_note_or_none()
        if target_note is not None:
            target_note._target_relations = [
                r for r in target_note._target_relations if r is not attribute
            ]

        if (
            attribute.attribute_id
            and self.attributes.get(attribute.attribute_id) is attribute
        ):
            del self.attributes[attribute.attribute_id]

        key = _index_key(attribute.attribute_type, attribute.name)
        if key in self.attribute_index:
            self.attribute_index[key] = [
                a for a in self.attribute_index[key] if a is not attribute
            ]


def _index_key(attribute_type: str, attribute_name: str) -> str:
    return f"{attribute_type}-{attribute_name.lower()}"
