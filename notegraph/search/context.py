"""
Options and per-query state of a search.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..core.utils import ROOT_NOTE_ID

if TYPE_CHECKING:
    from ..core.session import Session

__all__ = [
    "SearchOptions",
    "SearchContext",
    "SearchTimeoutError",
    "SearchQueryError",
    "ExecutionContext",
]


class SearchQueryError(Exception):
    """
    Raised while parsing a malformed query. Never escapes a search entry
    point; it's recorded on the {obj}`SearchContext` instead.
    """


class SearchTimeoutError(Exception):
    """
    Raised within expression evaluation when the search deadline passed.
    """


class SearchOptions(BaseModel):
    """
    Options bag accepted by search entry points. Accepts snake_case or
    camelCase keys.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    fast_search: bool = False
    """
    Match against titles and attributes only, skipping note content.
    """

    include_archived_notes: bool = False
    include_hidden_notes: bool = False

    ignore_hoisted_note: bool = False
    """
    Don't default the ancestor scope to the session's hoisted note.
    """

    ancestor_note_id: str | None = None
    ancestor_depth: str | None = None
    """
    Depth condition relative to ancestor: `eq<N>`, `gt<N>` or `lt<N>`.
    """

    order_by: str | None = None
    order_direction: Literal["asc", "desc"] = "asc"
    limit: int | None = None
    fuzzy_attribute_search: bool = False
    debug: bool = False

    timeout: float | None = Field(default=None, gt=0)
    """
    Seconds after which evaluation stops with a query error.
    """


@dataclass(kw_only=True)
class ExecutionContext:
    """
    State shared by expressions while evaluating one query.
    """

    note_id_to_note_path: dict[str, list[str]] = field(default_factory=dict)
    """
    Paths of notes found by walking up from a full-text match, preferred
    over the note's best path when building results.
    """


class SearchContext:
    """
    Per-query state: effective options plus everything accumulated while
    parsing, such as highlighted tokens and the query error.
    """

    session: Session
    fast_search: bool
    include_archived_notes: bool
    include_hidden_notes: bool
    ignore_hoisted_note: bool
    ancestor_note_id: str | None
    ancestor_depth: str | None
    order_by: str | None
    order_direction: str
    limit: int | None
    fuzzy_attribute_search: bool
    debug: bool
    debug_info: dict[str, Any] | None

    highlighted_tokens: list[str]
    """
    Tokens to emphasize in displayed results.
    """

    original_query: str
    fulltext_query: str

    error: str | None
    """
    First error encountered; later errors are usually its consequence.
    """

    deadline: float | None

    def __init__(self, session: Session, options: SearchOptions | None = None):
        options = options or SearchOptions()

        self.session = session
        self.fast_search = options.fast_search
        self.include_archived_notes = options.include_archived_notes
        self.include_hidden_notes = options.include_hidden_notes
        self.ignore_hoisted_note = options.ignore_hoisted_note
        self.ancestor_note_id = options.ancestor_note_id

        if not self.ancestor_note_id and not self.ignore_hoisted_note:
            self.ancestor_note_id = session.hoisted_note_id

        self.ancestor_depth = options.ancestor_depth
        self.order_by = options.order_by
        self.order_direction = options.order_direction
        self.limit = options.limit
        self.fuzzy_attribute_search = options.fuzzy_attribute_search
        self.debug = options.debug
        self.debug_info = None

        self.highlighted_tokens = []
        self.original_query = ""
        self.fulltext_query = ""
        self.error = None

        self.deadline = (
            time.monotonic() + options.timeout if options.timeout else None
        )

    def __str__(self):
        return f"SearchContext(query='{self.original_query}', ancestor_note_id={self.ancestor_note_id}, error={self.error})"

    @property
    def is_ancestor_root(self) -> bool:
        return self.ancestor_note_id in (None, ROOT_NOTE_ID)

    def add_error(self, error: str):
        # later errors are usually consequential, keep the first
        if self.error is None:
            self.error = error

    def has_error(self) -> bool:
        return self.error is not None

    def get_error(self) -> str | None:
        return self.error

    def check_deadline(self):
        """
        :raises SearchTimeoutError: If the search ran past its timeout
        """
        if self.deadline is not None and time.monotonic() > self.deadline:
            raise SearchTimeoutError("Search timed out")
