"""
Parsing of promoted attribute definitions, e.g.
`#label:isbn=promoted,single,text`.
"""

from __future__ import annotations

import logging
import re
from logging import Logger
from typing import Literal, Self

from pydantic import BaseModel

from ..exceptions import ValidationError

__all__ = [
    "AttributeDefinition",
]

LABEL_TYPES = ["text", "number", "boolean", "date", "datetime", "url"]


class AttributeDefinition(BaseModel):
    """
    Definition of a promoted label or relation.
    """

    is_promoted: bool = False
    label_type: Literal["text", "number", "boolean", "date", "datetime", "url"] | None = None
    multiplicity: Literal["single", "multi"] | None = None
    number_precision: int | None = None
    promoted_alias: str | None = None
    inverse_relation: str | None = None

    @classmethod
    def parse(cls, value: str, logger: Logger | None = None) -> Self:
        """
        Parse comma-separated definition tokens. Unrecognized tokens are
        logged and skipped.

        :raises ValidationError: If a token's argument is malformed
        """
        logger = logger or logging.getLogger()
        fields: dict[str, object] = {}

        for token in (t.strip() for t in value.split(",")):
            if not token:
                continue

            if token == "promoted":
                fields["is_promoted"] = True
            elif token in LABEL_TYPES:
                fields["label_type"] = token
            elif token in ("single", "multi"):
                fields["multiplicity"] = token
            elif token.startswith("precision"):
                arg = _get_arg(token)
                if not arg.isdigit():
                    raise ValidationError(
                        f"Malformed precision in attribute definition: '{token}'"
                    )
                fields["number_precision"] = int(arg)
            elif token.startswith("alias"):
                fields["promoted_alias"] = _get_arg(token)
            elif token.startswith("inverse"):
                fields["inverse_relation"] = re.sub(r"[^\w:]", "", _get_arg(token))
            else:
                logger.warning(f"Unrecognized attribute definition token: {token}")

        return cls.model_validate(fields)

    def to_value(self) -> str:
        """
        Serialize back to label value.
        """
        tokens: list[str] = []

        if self.is_promoted:
            tokens.append("promoted")
        if self.multiplicity:
            tokens.append(self.multiplicity)
        if self.label_type:
            tokens.append(self.label_type)
        if self.number_precision is not None:
            tokens.append(f"precision={self.number_precision}")
        if self.promoted_alias:
            tokens.append(f"alias={self.promoted_alias}")
        if self.inverse_relation:
            tokens.append(f"inverse={self.inverse_relation}")

        return ",".join(tokens)


def _get_arg(token: str) -> str:
    _, _, arg = token.partition("=")
    return arg.strip()
