from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Self

from ..events import EntityEvent, EventType
from ..exceptions import ValidationError
from ..session import SessionContainer
from ..utils import hash_values, new_entity_id, utc_now_datetime
from .model import BaseRow
from .types import State

if TYPE_CHECKING:
    from ..session import Session

__all__ = [
    "BaseEntity",
    "State",
]

__rollup__ = [
    "BaseEntity",
    "State",
]


class BaseEntity[RowT: BaseRow](ABC, SessionContainer):
    """
    Base class for entities held in the graph cache.

    Should not be instantiated by user, but published for reference.
    """

    entity_name: ClassVar[str]
    """
    Name of table/collection entities of this type are stored in.
    """

    hashed_properties: ClassVar[list[str]]
    """
    Row fields contributing to the change hash.
    """

    # current row, including unsaved changes
    _row: RowT

    # row as last persisted, or None if never saved
    _backing: dict[str, Any] | None

    # current state
    _state: State

    def __init__(self, row: RowT, *, session: Session, create: bool = True):
        """
        Wire entity into the cache from the given row.

        :param row: Typed record holding the entity's fields
        :param session: Session owning the graph cache
        :param create: Whether this is a new entity, otherwise it was loaded from the store
        """
        SessionContainer.__init__(self, session)

        self._row = row

        if create:
            self._state = State.CREATE
            self._backing = None
        else:
            self._state = State.CLEAN
            self._backing = row.model_dump()

        self._init()

    def __str__(self):
        return self.str_short

    def __repr__(self):
        return str(self)

    @property
    def entity_id(self) -> str | None:
        """
        Unique id of this entity, or `None` if not yet assigned.
        """
        return self._row.entity_id

    @property
    def state(self) -> State:
        """
        Current state.
        """
        return self._state

    @property
    def session(self) -> Session:
        """
        Session to which this entity belongs.
        """
        return self._session

    @property
    def row(self) -> RowT:
        """
        Copy of this entity's current row.
        """
        return self._row.model_copy()

    @property
    def str_short(self) -> str:
        """
        Get a short description of this entity.
        """
        return self._str_short

    @property
    def str_summary(self) -> str:
        """
        Get a summary of this entity, including its current state and row
        values.
        """
        indent = f"\n{' '*4}"
        return indent.join(
            [self.str_short, str(self._state), str(self._row.model_dump())]
        )

    @property
    @abstractmethod
    def _str_short(self) -> str:
        ...

    @property
    @abstractmethod
    def is_deleted(self) -> bool:
        """
        Whether this entity was soft-deleted. Derived from the cache's id
        maps rather than stored.
        """
        ...

    @property
    def is_changed(self) -> bool:
        """
        Whether the row differs from the persisted one.
        """
        return self._backing is None or self._row.model_dump() != self._backing

    @property
    def _is_clean(self) -> bool:
        return self._state is State.CLEAN

    @property
    def _is_dirty(self) -> bool:
        return self._state is not State.CLEAN

    @property
    def _is_create(self) -> bool:
        return self._state is State.CREATE

    @property
    def _is_update(self) -> bool:
        return self._state is State.UPDATE

    @property
    def _is_delete(self) -> bool:
        return self._state is State.DELETE

    def generate_hash(self, is_deleted: bool = False) -> str:
        """
        Hash of the hashed properties, used to detect changes between replicas.
        """
        return hash_values(
            *(getattr(self._row, prop) for prop in self.hashed_properties),
            is_deleted,
        )

    def save(self) -> Self:
        """
        Validate, persist and index this entity. Emits change events, deferred
        until commit if a transaction is open.
        """
        is_new = self._state is State.CREATE or self._backing is None

        self._before_saving()
        row = self._get_row_to_save()

        session = self._session

        with session.transaction():
            session._store.upsert(self.entity_name, row)

            self._backing = self._row.model_dump()
            self._state = State.CLEAN

            session._cache._entity_saved(self, is_new)

            if is_new:
                session._emit(EventType.ENTITY_CREATED, self._event())
            session._emit(EventType.ENTITY_CHANGED, self._event())

        session._logger.debug(f"Saved: {self.str_summary}")

        return self

    def mark_as_deleted(self, delete_id: str | None = None):
        """
        Soft-delete this entity in the store and remove it from the cache's
        id maps.
        """
        session = self._session

        self._row.utc_date_modified = utc_now_datetime()
        self._before_deleting()

        with session.transaction():
            session._store.mark_deleted(
                self.entity_name,
                self.entity_id,
                delete_id=delete_id or new_entity_id(),
                utc_date_modified=self._row.utc_date_modified,
            )

            self._backing = self._row.model_dump()
            self._state = State.DELETE

            session._logger.info(
                f"Marking {self.entity_name} {self.entity_id} as deleted"
            )

            session._cache._entity_deleted(self)
            session._emit(
                EventType.ENTITY_DELETED, self._event(is_deleted=True)
            )

    def _check_state(self):
        """
        Invoked upon field update by user.
        """
        if self._state is State.CLEAN:
            if self.is_changed:
                self._state = State.UPDATE

        elif self._state is State.UPDATE:
            if not self.is_changed:
                self._state = State.CLEAN

        elif self._state is State.DELETE:
            raise ValidationError(f"Attempt to modify deleted entity {self}")

    def _update_from_row(self, row: RowT):
        """
        Replace row with one received from the store or another replica.
        """
        self._row = row
        self._backing = row.model_dump()
        self._state = State.CLEAN

    def _event(self, is_deleted: bool = False) -> EntityEvent:
        return EntityEvent(
            entity_name=self.entity_name,
            entity_id=self.entity_id,
            entity=self,
            hash=self.generate_hash(is_deleted),
        )

    # --------------------------------------------------------------------------
    # To be implemented by subclass
    # --------------------------------------------------------------------------

    @abstractmethod
    def _init(self):
        """
        Register this entity into the cache's id maps and cross-reference
        lists.
        """
        ...

    def _before_saving(self):
        """
        Validate and populate derived fields before persisting.
        """
        if self.entity_id is None:
            setattr(self._row, self._row.primary_key, new_entity_id())

    def _before_deleting(self):
        """
        Populate fields before soft-delete.
        """
        ...

    def _get_row_to_save(self) -> BaseRow:
        """
        Get row as written to the store.
        """
        return self._row
