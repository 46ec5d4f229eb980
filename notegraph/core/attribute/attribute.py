from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from ..entity.entity import BaseEntity
from ..entity.model import (
    AttributeRow,
    FieldDescriptor,
    ReadOnlyDescriptor,
)
from ..entity.types import AttributeType
from ..exceptions import _assert_validate
from ..utils import (
    AUTO_LINK_RELATIONS,
    INHERIT_RELATIONS,
    sanitize_attribute_name,
    utc_now_datetime,
)

if TYPE_CHECKING:
    from ..note.note import Note
    from ..session import Session

__all__ = [
    "BaseAttribute",
]

DEFINITION_PREFIXES = ("label:", "relation:")


class BaseAttribute(BaseEntity[AttributeRow]):
    """
    Base class for {obj}`Label` and {obj}`Relation`.

    On construction, an attribute registers itself into its owning note's
    owned attributes, the cache's `type-name` index and, for relations,
    the target note's inbound relations.
    """

    entity_name = "attributes"
    hashed_properties = [
        "attribute_id",
        "note_id",
        "type",
        "name",
        "value",
        "is_inheritable",
    ]

    attribute_type: ClassVar[AttributeType]
    """
    Type of attribute, set by subclass.
    """

    attribute_id: str | None = ReadOnlyDescriptor("attribute_id")  # type: ignore[assignment]
    note_id: str = ReadOnlyDescriptor("note_id")  # type: ignore[assignment]
    name: str = ReadOnlyDescriptor("name")  # type: ignore[assignment]
    value: str = FieldDescriptor("value")  # type: ignore[assignment]
    position: int | None = FieldDescriptor("position")  # type: ignore[assignment]
    is_inheritable: bool = FieldDescriptor("is_inheritable")  # type: ignore[assignment]
    utc_date_modified: str | None = ReadOnlyDescriptor("utc_date_modified")  # type: ignore[assignment]

    @classmethod
    def _from_row(
        cls, row: AttributeRow, *, session: Session, create: bool = True
    ) -> BaseAttribute:
        """
        Instantiate label or relation based on row type.

        :raises ValidationError: If type is neither label nor relation
        """
        from .label import Label
        from .relation import Relation

        attribute_cls: dict[str, type[BaseAttribute]] = {
            AttributeType.LABEL: Label,
            AttributeType.RELATION: Relation,
        }

        _assert_validate(
            row.type in attribute_cls,
            f"Attribute type '{row.type}' is invalid, must be label or relation",
        )

        return attribute_cls[row.type](row, session=session, create=create)

    def __init__(self, row: AttributeRow, *, session: Session, create: bool = True):
        if create:
            row.name = sanitize_attribute_name(row.name)
            if row.value is None:
                row.value = ""
        super().__init__(row, session=session, create=create)

    @property
    def _str_short(self) -> str:
        sigil = "#" if self.attribute_type is AttributeType.LABEL else "~"
        value = f"={self.value}" if self.value else ""
        return f"{type(self).__name__}({sigil}{self.name}{value}, attribute_id={self.attribute_id}, note_id={self.note_id})"

    @property
    def note(self) -> Note:
        """
        Note owning this attribute.
        """
        note = self._session._cache.get_note(self.note_id)
        assert note is not None
        return note

    @property
    def is_deleted(self) -> bool:
        return (
            self.attribute_id is None
            or self.attribute_id not in self._session._cache.attributes
        )

    @property
    def is_affecting_subtree(self) -> bool:
        """
        Whether changes to this attribute affect other notes' effective
        attributes.
        """
        return self.is_inheritable or (
            self.attribute_type is AttributeType.RELATION
            and self.name in INHERIT_RELATIONS
        )

    @property
    def is_auto_link(self) -> bool:
        return (
            self.attribute_type is AttributeType.RELATION
            and self.name in AUTO_LINK_RELATIONS
        )

    @property
    def is_definition(self) -> bool:
        """
        Whether this is a promoted attribute definition, e.g.
        `#label:author=promoted,single,text`.
        """
        return self.attribute_type is AttributeType.LABEL and self.name.startswith(
            DEFINITION_PREFIXES
        )

    def get_defined_name(self) -> str:
        """
        Name of the attribute defined by this definition, or this attribute's
        own name if it's not a definition.
        """
        for prefix in DEFINITION_PREFIXES:
            if self.attribute_type is AttributeType.LABEL and self.name.startswith(prefix):
                return self.name[len(prefix) :]
        return self.name

    def validate(self):
        """
        :raises ValidationError: If attribute is invalid
        """
        _assert_validate(
            self._row.type == self.attribute_type,
            f"Attribute type '{self._row.type}' doesn't match {type(self).__name__}",
        )
        _assert_validate(
            bool(self.name and self.name.strip()),
            f"Invalid empty name in attribute '{self.attribute_id}' of note '{self.note_id}'",
        )

    def _init(self):
        from ..note.note import Note

        if self._is_create:
            # reject before wiring into cache
            self.validate()

        cache = self._session._cache

        if self.attribute_id is not None:
            cache.attributes[self.attribute_id] = self

        note = cache.notes.get(self.note_id)
        if note is None:
            # entities can arrive out of order, fill in later
            note = Note._skeleton(self.note_id, self._session)

        if self not in note._owned_attributes:
            note._owned_attributes.append(self)

        cache.attribute_index.setdefault(
            f"{self.attribute_type}-{self.name.lower()}", []
        ).append(self)

        self._init_target()

    def _init_target(self):
        ...

    def _target_note_or_none(self) -> Note | None:
        return None

    def _before_saving(self):
        self._row.name = sanitize_attribute_name(self._row.name)

        if self._row.value is None:
            self._row.value = ""

        self.validate()

        if self._row.position is None:
            self._row.position = (
                max(
                    (attr.position or 0 for attr in self.note._owned_attributes),
                    default=0,
                )
                + 10
            )

        self._row.utc_date_modified = utc_now_datetime()

        super()._before_saving()

        # no longer inherited by descendants
        if (
            self._backing is not None
            and self._backing["is_inheritable"]
            and not self.is_inheritable
        ):
            self.note.invalidate_subtree()
