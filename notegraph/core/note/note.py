from __future__ import annotations

from typing import TYPE_CHECKING, Self

from ..entity.entity import BaseEntity
from ..entity.model import FieldDescriptor, NoteRow, ReadOnlyDescriptor
from ..events import EventType
from ..exceptions import ProtectedSessionError, _assert_validate
from ..memo import MemoCell
from ..utils import (
    PROTECTED_PLACEHOLDER,
    ROOT_NOTE_ID,
    local_now_datetime,
    new_entity_id,
    utc_now_datetime,
)
from .attributes import NoteAttributes
from .content import NOTE_TYPES, NoteContent
from .paths import NotePaths
from .subtree import NoteSubtree

if TYPE_CHECKING:
    from ..attribute.attribute import BaseAttribute
    from ..attribute.relation import Relation
    from ..branch.branch import Branch
    from ..session import Session

__all__ = [
    "Note",
]

LAUNCH_BAR_NOTE_IDS = ["_lbRoot", "_lbAvailableLaunchers", "_lbVisibleLaunchers"]

JAVASCRIPT_MIMES = ["application/x-javascript", "text/javascript"]


class Note(
    NoteAttributes, NotePaths, NoteSubtree, NoteContent, BaseEntity[NoteRow]
):
    """
    Node of the note graph. Holds cross-references to its parent branches,
    parents, children, owned attributes and relations targeting it, all
    maintained by the graph cache.

    Derived state (effective attributes, ancestors, flat text) is memoized
    and explicitly invalidated upon mutations which affect it.

    Label values can be accessed by indexing:

    ```
    note = session.get_note_or_throw("abc123")

    if "book" in note:
        print(note["author"])
    ```
    """

    entity_name = "notes"
    hashed_properties = [
        "note_id",
        "title",
        "is_protected",
        "type",
        "mime",
        "blob_id",
    ]

    note_id: str = ReadOnlyDescriptor("note_id")  # type: ignore[assignment]
    mime: str = FieldDescriptor("mime")  # type: ignore[assignment]
    blob_id: str | None = ReadOnlyDescriptor("blob_id")  # type: ignore[assignment]
    date_created: str | None = ReadOnlyDescriptor("date_created")  # type: ignore[assignment]
    date_modified: str | None = ReadOnlyDescriptor("date_modified")  # type: ignore[assignment]
    utc_date_created: str | None = ReadOnlyDescriptor("utc_date_created")  # type: ignore[assignment]
    utc_date_modified: str | None = ReadOnlyDescriptor("utc_date_modified")  # type: ignore[assignment]

    is_being_deleted: bool
    """
    Set while the note's subtree is being deleted.
    """

    _owned_attributes: list[BaseAttribute]
    _parent_branches: list[Branch]
    _parents: list[Note]
    _children: list[Note]
    _target_relations: list[Relation]

    _attribute_cache: MemoCell[list[BaseAttribute]]
    _inheritable_attribute_cache: MemoCell[list[BaseAttribute]]
    _ancestor_cache: MemoCell[list[Note]]
    _flat_text_cache: MemoCell[str]

    # plaintext title of protected note, if protected session is active
    _decrypted_title: str | None

    # whether title was changed while protected
    _title_dirty: bool

    # referenced by a branch or attribute before its own row arrived
    _is_skeleton: bool

    def __init__(self, row: NoteRow, *, session: Session, create: bool = True):
        self._owned_attributes = []
        self._parent_branches = []
        self._parents = []
        self._children = []
        self._target_relations = []

        self._attribute_cache = MemoCell()
        self._inheritable_attribute_cache = MemoCell()
        self._ancestor_cache = MemoCell()
        self._flat_text_cache = MemoCell()

        self._decrypted_title = None
        self._title_dirty = False
        self._is_skeleton = False
        self.is_being_deleted = False

        super().__init__(row, session=session, create=create)

    def __getitem__(self, name: str) -> str:
        """
        Return value of first effective label with provided name.

        :raises KeyError: No such label
        """
        label = self.get_label(name)

        if label is None:
            raise KeyError(f"Label does not exist: {name}, note {self}")

        return label.value

    def __setitem__(self, name: str, value: str):
        """
        Create or update owned label with provided name.
        """
        self.set_label(name, value)

    def __contains__(self, label: str) -> bool:
        return self.has_label(label)

    @classmethod
    def _from_row(cls, row: NoteRow, session: Session) -> Note:
        """
        Instantiate a loaded note, filling in a skeleton if one exists.
        """
        existing = session._cache.notes.get(row.note_id)

        if existing is not None and existing._is_skeleton:
            existing._update_from_row(row)
            return existing

        return cls(row, session=session, create=False)

    @classmethod
    def _skeleton(cls, note_id: str, session: Session) -> Note:
        """
        Create placeholder for a note which is referenced but not loaded.
        """
        session._logger.debug(f"Creating skeleton note {note_id}")

        note = cls(NoteRow(note_id=note_id), session=session, create=False)
        note._is_skeleton = True
        return note

    @property
    def _str_short(self) -> str:
        title = self.title.replace("'", "\\'")
        return f"Note('{title}', note_id='{self.note_id}')"

    @property
    def title(self) -> str:
        """
        Getter/setter for note title. Protected notes show a placeholder
        outside a protected session.
        """
        if self._row.is_protected:
            if self._decrypted_title is None:
                return PROTECTED_PLACEHOLDER
            return self._decrypted_title

        return self._row.title

    @title.setter
    def title(self, val: str):
        if self._row.is_protected:
            if not self._session._protected.is_available():
                raise ProtectedSessionError(
                    f"Cannot set title of protected note {self.note_id} outside protected session"
                )

            self._decrypted_title = val
            self._title_dirty = True
            self._check_state()
        else:
            self._row.title = val
            self._check_state()

    def get_title_or_protected(self) -> str:
        return self.title

    @property
    def note_type(self) -> str:
        """
        Getter/setter for note type, e.g. `text`.
        """
        return self._row.type

    @note_type.setter
    def note_type(self, val: str):
        if val not in NOTE_TYPES:
            self._session._logger.warning(f"Unknown note_type: {val}")
        self._row.type = val
        self._check_state()

    @property
    def is_protected(self) -> bool:
        return self._row.is_protected

    @property
    def is_changed(self) -> bool:
        return super().is_changed or self._title_dirty

    @property
    def is_decrypted(self) -> bool:
        return not self._row.is_protected or self._decrypted_title is not None

    @property
    def is_deleted(self) -> bool:
        return (
            self.is_being_deleted
            or self._session._cache.notes.get(self.note_id) is not self
        )

    @property
    def is_root(self) -> bool:
        return self.note_id == ROOT_NOTE_ID

    @property
    def is_json(self) -> bool:
        return self.mime == "application/json"

    @property
    def is_javascript(self) -> bool:
        return self.note_type in ("code", "file", "launcher") and (
            self.mime.startswith("application/javascript")
            or self.mime in JAVASCRIPT_MIMES
        )

    @property
    def is_html(self) -> bool:
        return self.note_type in ("code", "file", "render") and self.mime == "text/html"

    @property
    def is_image(self) -> bool:
        return self.note_type == "image" or (
            self.note_type == "file" and self.mime.startswith("image/")
        )

    @property
    def is_launch_bar_config(self) -> bool:
        return self.note_type == "launcher" or self.note_id in LAUNCH_BAR_NOTE_IDS

    @property
    def is_options(self) -> bool:
        return self.note_id.startswith("_options")

    def get_script_env(self) -> str | None:
        """
        Get environment a script note runs in: `frontend`, `backend` or `None`
        if not a script.
        """
        if self.is_html or (self.is_javascript and self.has_label("frontend")):
            return "frontend"

        if self.note_type == "render":
            return "frontend"

        if self.is_javascript and self.has_label("backend"):
            return "backend"

        return None

    @property
    def paths(self) -> list[list[Note]]:
        """
        Get list of paths to this note, where each path is a list of notes
        starting at root.
        """
        notes = self._session._cache.notes
        return [
            [notes[note_id] for note_id in path if note_id in notes]
            for path in self.get_all_note_paths()
        ]

    @property
    def paths_str(self) -> list[str]:
        """
        Get list of paths to this note, where each path is a string
        like `A > B > C`.
        """
        return [" > ".join([note.title for note in path]) for path in self.paths]

    def get(self, name: str, default: str | None = None) -> str | None:
        """
        Get value of first effective label with provided name, or `default`
        if no such label exists.
        """
        label = self.get_label(name)
        return default if label is None else label.value

    def decrypt(self):
        """
        Refresh the plaintext title from the protected session.
        """
        if self._row.is_protected and not self._is_skeleton:
            self._decrypted_title = self._session._protected.decrypt_string(
                self._row.title
            )
        else:
            self._decrypted_title = None

        self._title_dirty = False
        self._flat_text_cache.invalidate()

    def set_protected(self, is_protected: bool):
        """
        Protect or unprotect this note, re-encrypting title and content.

        :raises ProtectedSessionError: If no protected session is active
        """
        if is_protected == self._row.is_protected:
            return

        protected = self._session._protected

        if not protected.is_available():
            raise ProtectedSessionError(
                f"Cannot change protection of note {self.note_id} outside protected session"
            )

        content = self.get_content()

        with self._session.transaction():
            if is_protected:
                self._decrypted_title = self._row.title
                self._title_dirty = True
            else:
                self._row.title = self.title
                self._decrypted_title = None

            self._row.is_protected = is_protected
            self._check_state()
            self.save()

            self.set_content(content)

    def save(self) -> Self:
        title_changed = (
            self._backing is None
            or self._title_dirty
            or self._backing["title"] != self._row.title
        )

        super().save()

        self._title_dirty = False

        if title_changed:
            self._session._emit(EventType.NOTE_TITLE_CHANGED, self._event())

        return self

    def delete_note(self, delete_id: str | None = None):
        """
        Delete this note by deleting each of its parent branches, after
        running its deletion hooks.
        """
        if self.is_deleted:
            return

        session = self._session
        delete_id = delete_id or new_entity_id()

        with session.transaction():
            session.run_attached_relations(self, "runOnNoteDeletion", self)

            for branch in self.get_parent_branches():
                branch.delete_branch(delete_id, run_hooks=False)

    def clone_to(self, parent_note_id: str, prefix: str | None = None) -> Branch:
        """
        Place this note under another parent as well.
        """
        return self._session.clone_note_to_parent(
            self.note_id, parent_note_id, prefix
        )

    def search_notes_in_subtree(self, query: str, **options) -> list[Note]:
        return self._session.search(query, ancestor_note_id=self.note_id, **options)

    def search_note_in_subtree(self, query: str, **options) -> Note | None:
        """
        Get the best ranked note in this subtree matching the query, if any.
        """
        return next(iter(self.search_notes_in_subtree(query, **options)), None)

    def _init(self):
        cache = self._session._cache

        existing = cache.notes.get(self.note_id)
        _assert_validate(
            existing is None or not self._is_create,
            f"Note {self.note_id} already exists",
        )

        cache.add_note(self.note_id, self)

        # relations which arrived before this note
        for relation in cache.pending_target_relations.pop(self.note_id, []):
            if relation.value == self.note_id and not relation.is_deleted:
                relation._init_target()

        if self._is_create and self._row.is_protected:
            # given in plaintext, encrypted upon save
            self._decrypted_title = self._row.title
            self._title_dirty = True
        else:
            self.decrypt()

    def _update_from_row(self, row: NoteRow):
        super()._update_from_row(row)

        self._is_skeleton = False
        self.is_being_deleted = False

        self.decrypt()
        self.invalidate_this_cache()

    def _before_saving(self):
        _assert_validate(
            self._row.type in NOTE_TYPES,
            f"Invalid note type '{self._row.type}' of note {self.note_id}",
        )

        now_local = local_now_datetime()
        now_utc = utc_now_datetime()

        if self._row.date_created is None:
            self._row.date_created = now_local
        if self._row.utc_date_created is None:
            self._row.utc_date_created = now_utc

        self._row.date_modified = now_local
        self._row.utc_date_modified = now_utc

        if self._row.is_protected and self._title_dirty:
            assert self._decrypted_title is not None
            self._row.title = self._session._protected.encrypt(
                self._decrypted_title
            )

        super()._before_saving()

    def _before_deleting(self):
        self._row.date_modified = local_now_datetime()
