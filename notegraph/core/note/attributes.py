"""
Attribute resolution, queries and mutation primitives of a note.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from ..attribute.attribute import BaseAttribute
from ..entity.model import AttributeRow
from ..entity.types import AttributeType
from ..exceptions import ValidationError
from ..memo import MemoCell
from ..utils import (
    HIDDEN_NOTE_ID,
    INHERIT_RELATIONS,
    ROOT_NOTE_ID,
    TEMPLATE_LABELS,
    normalize,
    sanitize_attribute_name,
)

if TYPE_CHECKING:
    from ..attribute.label import Label
    from ..attribute.relation import Relation
    from ..branch.branch import Branch
    from ..session import Session
    from .note import Note

__all__ = [
    "NoteAttributes",
]

type AttributeTypeLike = AttributeType | str


class NoteAttributes:
    """
    Mixin implementing a note's owned, inherited and templated attributes.
    """

    note_id: str
    title: str
    _session: Session
    _parents: list[Note]
    _parent_branches: list[Branch]

    _owned_attributes: list[BaseAttribute]
    """
    Attributes owned by this note, in registration order.
    """

    _target_relations: list[Relation]
    """
    Relations owned by other notes which target this note.
    """

    _attribute_cache: MemoCell[list[BaseAttribute]]
    _inheritable_attribute_cache: MemoCell[list[BaseAttribute]]
    _flat_text_cache: MemoCell[str]

    # --------------------------------------------------------------------------
    # Resolution
    # --------------------------------------------------------------------------

    def _get_attributes(
        self, path: frozenset[str] = frozenset()
    ) -> list[BaseAttribute]:
        """
        Get effective attributes: owned, then inherited from parents, then
        those of template/inherit targets.

        :param path: Ids of notes already being resolved up the call stack
        """
        if self.note_id in path:
            return []

        if not self._attribute_cache.is_set:
            self._resolve_attributes(path | {self.note_id})

        return cast(list[BaseAttribute], self._attribute_cache.peek())

    def _get_inheritable_attributes(
        self, path: frozenset[str] = frozenset()
    ) -> list[BaseAttribute]:
        if self.note_id in path:
            return []

        if not self._inheritable_attribute_cache.is_set:
            self._get_attributes(path)

        return cast(list[BaseAttribute], self._inheritable_attribute_cache.peek())

    def _resolve_attributes(self, path: frozenset[str]):
        cache = self._session._cache
        attributes = self._get_owned_sorted()

        # inheritable attributes of root aren't applied to the hidden subtree
        if self.note_id not in (ROOT_NOTE_ID, HIDDEN_NOTE_ID):
            for parent in self._parents:
                attributes += parent._get_inheritable_attributes(path)

        template_attributes: list[BaseAttribute] = []

        # includes inherited template relations
        for attr in attributes:
            if (
                attr.attribute_type is AttributeType.RELATION
                and attr.name in INHERIT_RELATIONS
            ):
                template_note = cache.notes.get(attr.value)

                if template_note is not None:
                    template_attributes += [
                        a
                        for a in template_note._get_attributes(path)
                        if not (
                            a.attribute_type is AttributeType.LABEL
                            and a.name.lower() in TEMPLATE_LABELS
                        )
                    ]

        resolved: list[BaseAttribute] = []
        seen: set[int] = set()

        for attr in attributes + template_attributes:
            if id(attr) not in seen:
                seen.add(id(attr))
                resolved.append(attr)

        self._attribute_cache.set(resolved)
        self._inheritable_attribute_cache.set(
            [attr for attr in resolved if attr.is_inheritable]
        )

    def _get_owned_sorted(self) -> list[BaseAttribute]:
        return sorted(self._owned_attributes, key=lambda a: a.position or 0)

    # --------------------------------------------------------------------------
    # Queries
    # --------------------------------------------------------------------------

    def get_attributes(
        self,
        attribute_type: AttributeTypeLike | None = None,
        name: str | None = None,
    ) -> list[BaseAttribute]:
        """
        Get effective attributes, optionally filtered by type and name.

        :raises ValidationError: If type is invalid or name has a `#`/`~` prefix
        """
        _validate_type_name(attribute_type, name)
        return _filter(self._get_attributes(), attribute_type, name)

    def get_owned_attributes(
        self,
        attribute_type: AttributeTypeLike | None = None,
        name: str | None = None,
        value: str | None = None,
    ) -> list[BaseAttribute]:
        """
        Get attributes owned by this note, optionally filtered.

        :raises ValidationError: If type is invalid or name has a `#`/`~` prefix
        """
        _validate_type_name(attribute_type, name)
        return _filter(self._get_owned_sorted(), attribute_type, name, value)

    def get_inheritable_attributes(self) -> list[BaseAttribute]:
        return list(self._get_inheritable_attributes())

    def get_attribute(
        self, attribute_type: AttributeTypeLike, name: str
    ) -> BaseAttribute | None:
        return next(iter(self.get_attributes(attribute_type, name)), None)

    def get_owned_attribute(
        self,
        attribute_type: AttributeTypeLike,
        name: str,
        value: str | None = None,
    ) -> BaseAttribute | None:
        return next(
            iter(self.get_owned_attributes(attribute_type, name, value)), None
        )

    def get_attribute_case_insensitive(
        self,
        attribute_type: AttributeTypeLike,
        name: str,
        value: str | None = None,
    ) -> BaseAttribute | None:
        name = name.lower()
        value = value.lower() if value else None

        return next(
            (
                attr
                for attr in self._get_attributes()
                if attr.attribute_type == attribute_type
                and attr.name.lower() == name
                and (not value or attr.value.lower() == value)
            ),
            None,
        )

    def get_labels(self, name: str | None = None) -> list[Label]:
        return cast(list["Label"], self.get_attributes(AttributeType.LABEL, name))

    def get_owned_labels(self, name: str | None = None) -> list[Label]:
        return cast(
            list["Label"], self.get_owned_attributes(AttributeType.LABEL, name)
        )

    def get_relations(self, name: str | None = None) -> list[Relation]:
        return cast(
            list["Relation"], self.get_attributes(AttributeType.RELATION, name)
        )

    def get_owned_relations(self, name: str | None = None) -> list[Relation]:
        return cast(
            list["Relation"],
            self.get_owned_attributes(AttributeType.RELATION, name),
        )

    def get_label(self, name: str) -> Label | None:
        return cast("Label | None", self.get_attribute(AttributeType.LABEL, name))

    def get_owned_label(self, name: str) -> Label | None:
        return cast(
            "Label | None", self.get_owned_attribute(AttributeType.LABEL, name)
        )

    def get_relation(self, name: str) -> Relation | None:
        return cast(
            "Relation | None", self.get_attribute(AttributeType.RELATION, name)
        )

    def get_owned_relation(self, name: str) -> Relation | None:
        return cast(
            "Relation | None",
            self.get_owned_attribute(AttributeType.RELATION, name),
        )

    def has_attribute(
        self,
        attribute_type: AttributeTypeLike,
        name: str,
        value: str | None = None,
    ) -> bool:
        return any(
            value is None or attr.value == value
            for attr in self.get_attributes(attribute_type, name)
        )

    def has_owned_attribute(
        self,
        attribute_type: AttributeTypeLike,
        name: str,
        value: str | None = None,
    ) -> bool:
        return bool(self.get_owned_attributes(attribute_type, name, value))

    def has_label(self, name: str, value: str | None = None) -> bool:
        return self.has_attribute(AttributeType.LABEL, name, value)

    def has_owned_label(self, name: str, value: str | None = None) -> bool:
        return self.has_owned_attribute(AttributeType.LABEL, name, value)

    def has_relation(self, name: str, value: str | None = None) -> bool:
        return self.has_attribute(AttributeType.RELATION, name, value)

    def has_owned_relation(self, name: str, value: str | None = None) -> bool:
        return self.has_owned_attribute(AttributeType.RELATION, name, value)

    def get_attribute_value(
        self, attribute_type: AttributeTypeLike, name: str
    ) -> str | None:
        attribute = self.get_attribute(attribute_type, name)
        return attribute.value if attribute else None

    def get_owned_attribute_value(
        self, attribute_type: AttributeTypeLike, name: str
    ) -> str | None:
        attribute = self.get_owned_attribute(attribute_type, name)
        return attribute.value if attribute else None

    def get_label_value(self, name: str) -> str | None:
        return self.get_attribute_value(AttributeType.LABEL, name)

    def get_owned_label_value(self, name: str) -> str | None:
        return self.get_owned_attribute_value(AttributeType.LABEL, name)

    def get_label_values(self, name: str) -> list[str]:
        """
        Get values of all effective labels with this name, owned ones first.
        """
        return [label.value for label in self.get_labels(name)]

    def get_owned_label_values(self, name: str) -> list[str]:
        return [label.value for label in self.get_owned_labels(name)]

    def get_relation_value(self, name: str) -> str | None:
        return self.get_attribute_value(AttributeType.RELATION, name)

    def get_owned_relation_value(self, name: str) -> str | None:
        return self.get_owned_attribute_value(AttributeType.RELATION, name)

    def get_relation_target(self, name: str) -> Note | None:
        relation = self.get_relation(name)
        return relation.target_note if relation else None

    def get_relation_targets(self, name: str) -> list[Note]:
        return [
            r.target_note
            for r in self.get_relations(name)
            if r.target_note is not None
        ]

    def is_label_truthy(self, name: str) -> bool:
        """
        Whether label is present with any value other than `false`.
        """
        label = self.get_label(name)
        return label is not None and label.value != "false"

    def get_target_relations(self) -> list[Relation]:
        return list(self._target_relations)

    def get_label_definitions(self) -> list[Label]:
        """
        Get definitions of promoted labels.

        Filters on the `relation:` prefix, returning the same set as
        {obj}`get_relation_definitions`; kept for compatibility with existing
        consumers.
        """
        return [
            label
            for label in self.get_labels()
            if label.name.startswith("relation:")
        ]

    def get_relation_definitions(self) -> list[Label]:
        """
        Get definitions of promoted relations.
        """
        return [
            label
            for label in self.get_labels()
            if label.name.startswith("relation:")
        ]

    @property
    def is_archived(self) -> bool:
        """
        Whether note has the `archived` label, owned or inherited.
        """
        return self.has_label("archived")

    def has_inheritable_archived_label(self) -> bool:
        return any(
            attr.attribute_type is AttributeType.LABEL and attr.name == "archived"
            for attr in self._get_inheritable_attributes()
        )

    def is_inherited(self) -> bool:
        """
        Whether another note takes on this note's attributes through a
        template/inherit relation.
        """
        return any(rel.name in INHERIT_RELATIONS for rel in self._target_relations)

    def get_inheriting_notes(self) -> list[Note]:
        """
        Get this note and notes having a template/inherit relation to it.
        """
        notes: list[Note] = [cast("Note", self)]

        for relation in self._target_relations:
            if relation.name in INHERIT_RELATIONS:
                notes.append(relation.note)

        return notes

    def get_flat_text(self) -> str:
        """
        Normalized searchable surface of this note: id, type, mime, branch
        prefixes, title and effective attributes.
        """
        return self._flat_text_cache.get(self._compute_flat_text)

    def _compute_flat_text(self) -> str:
        note = cast("Note", self)
        parts = [note.note_id, note.note_type, note.mime]

        for branch in self._parent_branches:
            if branch.prefix:
                parts.append(branch.prefix)

        parts.append(note.title)

        for attr in self._get_attributes():
            sigil = "#" if attr.attribute_type is AttributeType.LABEL else "~"
            value = f"={attr.value}" if attr.value else ""
            parts.append(f"{sigil}{attr.name}{value}")

        # trailing space keeps the last token delimited
        return normalize(" ".join(parts) + " ")

    # --------------------------------------------------------------------------
    # Counts, exposed as search properties
    # --------------------------------------------------------------------------

    @property
    def attribute_count(self) -> int:
        return len(self._get_attributes())

    @property
    def owned_attribute_count(self) -> int:
        return len(self._owned_attributes)

    @property
    def label_count(self) -> int:
        return len(self.get_labels())

    @property
    def owned_label_count(self) -> int:
        return len(self.get_owned_labels())

    @property
    def relation_count(self) -> int:
        return len([r for r in self.get_relations() if not r.is_auto_link])

    @property
    def relation_count_including_links(self) -> int:
        return len(self.get_relations())

    @property
    def owned_relation_count(self) -> int:
        return len([r for r in self.get_owned_relations() if not r.is_auto_link])

    @property
    def owned_relation_count_including_links(self) -> int:
        return len(self.get_owned_relations())

    @property
    def target_relation_count(self) -> int:
        return len([r for r in self._target_relations if not r.is_auto_link])

    @property
    def target_relation_count_including_links(self) -> int:
        return len(self._target_relations)

    # --------------------------------------------------------------------------
    # Mutation
    # --------------------------------------------------------------------------

    def add_attribute(
        self,
        attribute_type: AttributeTypeLike,
        name: str,
        value: str = "",
        is_inheritable: bool = False,
        position: int | None = None,
    ) -> BaseAttribute:
        """
        Create and save a new owned attribute.

        :raises ValidationError: If type or name is invalid, or a relation targets a missing note
        """
        row = AttributeRow(
            note_id=self.note_id,
            type=attribute_type,
            name=name,
            value=value or "",
            is_inheritable=is_inheritable,
            position=position,
        )

        attribute = BaseAttribute._from_row(row, session=self._session)
        return attribute.save()

    def add_label(
        self, name: str, value: str = "", is_inheritable: bool = False
    ) -> Label:
        return cast(
            "Label",
            self.add_attribute(AttributeType.LABEL, name, value, is_inheritable),
        )

    def add_relation(
        self, name: str, target_note_id: str, is_inheritable: bool = False
    ) -> Relation:
        return cast(
            "Relation",
            self.add_attribute(
                AttributeType.RELATION, name, target_note_id, is_inheritable
            ),
        )

    def set_attribute(
        self,
        attribute_type: AttributeTypeLike,
        name: str,
        value: str | None = None,
    ) -> BaseAttribute:
        """
        Update value of the first owned attribute with this type and name, or
        create it. No-op if the value is unchanged.
        """
        name = sanitize_attribute_name(name)
        value = "" if value is None else str(value)

        attribute = self.get_owned_attribute(attribute_type, name)

        if attribute is None:
            return self.add_attribute(attribute_type, name, value)

        if attribute.value != value:
            attribute.value = value
            attribute.save()

        return attribute

    def set_label(self, name: str, value: str | None = None) -> Label:
        return cast("Label", self.set_attribute(AttributeType.LABEL, name, value))

    def set_relation(self, name: str, target_note_id: str) -> Relation:
        return cast(
            "Relation",
            self.set_attribute(AttributeType.RELATION, name, target_note_id),
        )

    def remove_attribute(
        self,
        attribute_type: AttributeTypeLike,
        name: str,
        value: str | None = None,
    ):
        """
        Soft-delete owned attributes matching type and name, and value if
        given.
        """
        name = sanitize_attribute_name(name)

        for attribute in self.get_owned_attributes(attribute_type, name, value):
            attribute.mark_as_deleted()

    def remove_label(self, name: str, value: str | None = None):
        self.remove_attribute(AttributeType.LABEL, name, value)

    def remove_relation(self, name: str, value: str | None = None):
        self.remove_attribute(AttributeType.RELATION, name, value)

    def toggle_attribute(
        self,
        attribute_type: AttributeTypeLike,
        enabled: bool,
        name: str,
        value: str | None = None,
    ):
        if enabled:
            self.set_attribute(attribute_type, name, value)
        else:
            self.remove_attribute(attribute_type, name, value)

    def toggle_label(self, enabled: bool, name: str, value: str | None = None):
        self.toggle_attribute(AttributeType.LABEL, enabled, name, value)

    def toggle_relation(
        self, enabled: bool, name: str, value: str | None = None
    ):
        self.toggle_attribute(AttributeType.RELATION, enabled, name, value)


def _validate_type_name(attribute_type: AttributeTypeLike | None, name: str | None):
    if attribute_type is not None and attribute_type not in (
        AttributeType.LABEL,
        AttributeType.RELATION,
    ):
        raise ValidationError(f"Unrecognized attribute type '{attribute_type}'")

    if name and name[0] in ("#", "~"):
        raise ValidationError(
            f"Attribute name '{name}' must be given without '#' or '~' prefix"
        )


def _filter(
    attributes: list[BaseAttribute],
    attribute_type: AttributeTypeLike | None,
    name: str | None,
    value: str | None = None,
) -> list[BaseAttribute]:
    return [
        attr
        for attr in attributes
        if (attribute_type is None or attr.attribute_type == attribute_type)
        and (name is None or attr.name == name)
        and (value is None or attr.value == value)
    ]
