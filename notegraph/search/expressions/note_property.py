"""
Expression comparing a property of notes against a constant.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..comparators import build_comparator
from ..context import SearchQueryError
from ..note_set import NoteSet
from .expression import Expression

if TYPE_CHECKING:
    from ...core.note.note import Note
    from ..comparators import Comparator

__all__ = [
    "PROP_MAPPING",
    "PropertyComparisonExp",
    "get_note_property",
    "format_value",
]

PROP_MAPPING: dict[str, str] = {
    "noteid": "note_id",
    "title": "title",
    "type": "note_type",
    "mime": "mime",
    "isprotected": "is_protected",
    "isarchived": "is_archived",
    "datecreated": "date_created",
    "datemodified": "date_modified",
    "utcdatecreated": "utc_date_created",
    "utcdatemodified": "utc_date_modified",
    "parentcount": "parent_count",
    "childrencount": "children_count",
    "attributecount": "attribute_count",
    "labelcount": "label_count",
    "ownedlabelcount": "owned_label_count",
    "relationcount": "relation_count",
    "ownedrelationcount": "owned_relation_count",
    "relationcountincludinglinks": "relation_count_including_links",
    "ownedrelationcountincludinglinks": "owned_relation_count_including_links",
    "targetrelationcount": "target_relation_count",
    "targetrelationcountincludinglinks": "target_relation_count_including_links",
    "contentsize": "content_size",
}
"""
Mapping of property names usable in queries (`note.<name>`) to attributes
of {obj}`Note`.
"""


def get_note_property(note: Note, property_name: str) -> Any:
    """
    Get property of note by its query name.
    """
    return getattr(note, PROP_MAPPING[property_name])


def format_value(value: Any) -> str | None:
    """
    Convert property value to the lowercased string form used by
    comparators.
    """
    if value is None:
        return None
    elif isinstance(value, bool):
        return "true" if value else "false"

    return str(value).lower()


class PropertyComparisonExp(Expression):
    property_name: str
    operator: str
    compared_value: str
    comparator: Comparator

    @staticmethod
    def is_property(name: str) -> bool:
        return name in PROP_MAPPING

    def __init__(self, property_name: str, operator: str, compared_value: str):
        """
        :raises SearchQueryError: If operator is not recognized
        :raises re.error: If operator is `%=` and value is not a valid regex
        """
        comparator = build_comparator(operator, compared_value)

        if comparator is None:
            raise SearchQueryError(
                f"Can't find operator '{operator}' for property '{property_name}'"
            )

        self.property_name = property_name
        self.operator = operator
        self.compared_value = compared_value
        self.comparator = comparator

    def execute(self, input_note_set, execution_context, search_context):
        result = NoteSet()

        for note in input_note_set:
            value = format_value(get_note_property(note, self.property_name))

            if self.comparator(value):
                result.add(note)

        return result
