from __future__ import annotations

from ..entity.types import AttributeType
from .attribute import BaseAttribute
from .definition import AttributeDefinition

__all__ = [
    "Label",
]


class Label(BaseAttribute):
    """
    Key/value tag attached to a note; value is free text.
    """

    attribute_type = AttributeType.LABEL

    def get_definition(self) -> AttributeDefinition:
        """
        Parse value of a definition label.

        :raises ValidationError: If value is malformed
        """
        return AttributeDefinition.parse(self.value, logger=self._session._logger)
