"""
Interface to configuration as persisted in .yaml file.
"""

from __future__ import annotations

import logging
from logging import Logger
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import BaseModel, field_validator

from .core import ProtectedSessionService, Session
from .core.utils import ROOT_NOTE_ID

__all__ = [
    "Config",
    "get_database_url",
]

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Config(BaseModel):
    """
    Encapsulates configuration for use in the CLI, stored as a .yaml
    mapping of field names to values.
    """

    database: str | None = None
    """
    Database file or SQLAlchemy URL; in-memory database if not given.
    """

    hoisted_note_id: str = ROOT_NOTE_ID
    """
    Note treated as the effective root for display and search.
    """

    log_level: str = "INFO"

    protected_session_timeout: float | None = None
    """
    Seconds of inactivity after which the protected session expires.
    """

    @field_validator("log_level", mode="before")
    def validate_log_level(cls, value: Any) -> Any:
        if not isinstance(value, str):
            # let pydantic handle type error
            return value

        level = value.upper()

        if level not in LOG_LEVELS:
            raise ValueError(
                f"log level must be one of {', '.join(LOG_LEVELS)}, got '{value}'"
            )

        return level

    @classmethod
    def load_yaml(cls, file: Path) -> Self:
        """
        Load config from .yaml file; an empty file yields defaults.

        :raises ValueError: If file doesn't contain a mapping
        """
        assert file.is_file()

        model = yaml.safe_load(file.read_text()) or {}

        if not isinstance(model, dict):
            raise ValueError(f"Invalid yaml contents: {model}")

        return cls(**model)

    def dump_yaml(self, file: Path):
        file.write_text(
            yaml.safe_dump(
                self.model_dump(mode="json"),
                default_flow_style=False,
                sort_keys=False,
            )
        )

    @property
    def log_level_value(self) -> int:
        return logging.getLevelNamesMapping()[self.log_level]

    def create_session(self, *, logger: Logger | None = None) -> Session:
        """
        Get session from this config's fields, loading the graph from the
        configured database.
        """
        return Session(
            get_database_url(self.database),
            protected=ProtectedSessionService(
                timeout=self.protected_session_timeout
            ),
            hoisted_note_id=self.hoisted_note_id,
            logger=logger,
        )


def get_database_url(database: str | None) -> str:
    """
    Get SQLAlchemy URL from a database file path or URL.
    """
    if database is None:
        return "sqlite://"

    if "://" in database:
        return database

    return f"sqlite:///{database}"
