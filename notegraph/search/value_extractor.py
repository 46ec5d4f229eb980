"""
Extracts values from notes by property path, for ordering results.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from .expressions.note_property import PROP_MAPPING, get_note_property

if TYPE_CHECKING:
    from ..core.note.note import Note

__all__ = [
    "ValueExtractor",
]


class ValueExtractor:
    """
    Follows a property path like `note.parents.title` or
    `note.relations.author.labels.born` from a note to a value. A path
    starting with `#name` or `~name` is shorthand for
    `note.labels.name` or `note.relations.name`.
    """

    property_path: list[str]

    def __init__(self, property_path: list[str]):
        path = [element.lower() for element in property_path]

        if path and path[0].startswith("#"):
            path = ["note", "labels", path[0][1:], *path[1:]]
        elif path and path[0].startswith("~"):
            path = ["note", "relations", path[0][1:], *path[1:]]

        self.property_path = path

    def __repr__(self):
        return f"ValueExtractor({'.'.join(self.property_path)})"

    def validate(self) -> str | None:
        """
        Get error message if the path is invalid, otherwise `None`.
        """
        path = self.property_path

        if not path or path[0] != "note":
            first = path[0] if path else ""
            return f"property specifier must start with 'note', but starts with '{first}'"

        i = 1
        while i < len(path):
            element = path[i]

            if element in ("labels", "relations"):
                if i != len(path) - 2:
                    return f"{element} is a terminal property specifier and must be at the end"

                i += 1
            elif element not in ("parents", "children", "random") and (
                element not in PROP_MAPPING
            ):
                return f"Unrecognized property specifier {element}"

            i += 1

        return None

    def extract(self, note: Note) -> str | int | bool | None:
        """
        Get value at the end of the path, or `None` if the path leads
        nowhere.
        """
        cursor: Note | None = note
        path = self.property_path
        i = 0

        while i < len(path):
            if cursor is None:
                return None

            element = path[i]

            if element == "labels":
                i += 1
                label = cursor.get_attribute_case_insensitive("label", path[i])
                return label.value if label else None
            elif element == "relations":
                i += 1
                relation = cursor.get_attribute_case_insensitive(
                    "relation", path[i]
                )
                cursor = relation._target_note_or_none() if relation else None
            elif element == "parents":
                cursor = cursor.parents[0] if cursor.parents else None
            elif element == "children":
                cursor = cursor.children[0] if cursor.children else None
            elif element == "random":
                return str(random.random())
            elif element in PROP_MAPPING:
                return get_note_property(cursor, element)

            i += 1

        return None
