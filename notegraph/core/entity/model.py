from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..exceptions import ReadOnlyError

if TYPE_CHECKING:
    from .entity import BaseEntity

__all__ = [
    "BaseRow",
    "NoteRow",
    "BranchRow",
    "AttributeRow",
    "FieldDescriptor",
    "ReadOnlyDescriptor",
]


class BaseRow(BaseModel):
    """
    Typed record of an entity as persisted. Field names are snake_case with
    camelCase aliases matching the storage columns.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    primary_key: ClassVar[str]
    """
    Name of field holding the entity id.
    """

    utc_date_modified: str | None = None

    @property
    def entity_id(self) -> str | None:
        return getattr(self, self.primary_key)

    def to_storage(self) -> dict[str, Any]:
        """
        Get dict keyed by storage column names.
        """
        return self.model_dump(by_alias=True)


class NoteRow(BaseRow):
    primary_key: ClassVar[str] = "note_id"

    note_id: str
    title: str = ""
    type: str = "text"
    mime: str = "text/html"
    is_protected: bool = False
    blob_id: str | None = None
    date_created: str | None = None
    date_modified: str | None = None
    utc_date_created: str | None = None


class BranchRow(BaseRow):
    primary_key: ClassVar[str] = "branch_id"

    branch_id: str | None = None
    note_id: str
    parent_note_id: str
    note_position: int | None = None
    prefix: str | None = None
    is_expanded: bool = False


class AttributeRow(BaseRow):
    primary_key: ClassVar[str] = "attribute_id"

    attribute_id: str | None = None
    note_id: str
    type: str
    name: str
    value: str = ""
    position: int | None = None
    is_inheritable: bool = False


class FieldDescriptor:
    """
    Accessor for a row field, e.g. a {obj}`Note`'s `title` field.

    When written, updates the row and the entity's state; the change is
    committed to the store upon {obj}`BaseEntity.save`.
    """

    _field: str

    def __init__(self, field: str):
        self._field = field

    def __get__(self, ent: BaseEntity | None, objtype=None) -> Any:
        if ent is None:
            return self
        return getattr(ent._row, self._field)

    def __set__(self, ent: BaseEntity, val: Any):
        setattr(ent._row, self._field, val)
        ent._check_state()


class ReadOnlyDescriptor(FieldDescriptor):
    """
    Accessor for a row field which is maintained internally.

    :raises ReadOnlyError: Upon write attempt
    """

    def __set__(self, ent: BaseEntity, val: Any):
        raise ReadOnlyError(self._field, ent)

