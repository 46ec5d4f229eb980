"""
Change-notification bus. The graph cache doesn't depend on any subscriber
existing; sync and UI push layers subscribe to react to mutations.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum, auto
from logging import Logger
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from .entity.entity import BaseEntity
    from .note.note import Note

__all__ = [
    "EventType",
    "EntityEvent",
    "ChildNoteEvent",
    "EventBus",
]

type Listener = Callable[[Any], None]


class EventType(Enum):
    ENTITY_CREATED = auto()
    ENTITY_CHANGED = auto()
    ENTITY_DELETED = auto()
    NOTE_CONTENT_CHANGE = auto()
    NOTE_TITLE_CHANGED = auto()
    CHILD_NOTE_CREATED = auto()
    ENTER_PROTECTED_SESSION = auto()
    LEAVE_PROTECTED_SESSION = auto()


@dataclass(frozen=True, kw_only=True)
class EntityEvent:
    """
    Payload of entity lifecycle events.
    """

    entity_name: str
    entity_id: str | None
    entity: BaseEntity
    hash: str


@dataclass(frozen=True, kw_only=True)
class ChildNoteEvent:
    """
    Payload of {obj}`EventType.CHILD_NOTE_CREATED`.
    """

    child_note: Note
    parent_note: Note


class EventBus:
    """
    Dispatches events synchronously to subscribed listeners, in order of
    subscription.
    """

    _listeners: defaultdict[EventType, list[Listener]]
    _logger: Logger

    def __init__(self, logger: Logger | None = None):
        self._listeners = defaultdict(list)
        self._logger = logger or logging.getLogger()

    def subscribe(
        self,
        event_types: EventType | Iterable[EventType],
        listener: Listener,
    ):
        """
        Register listener for one or more event types.
        """
        if isinstance(event_types, EventType):
            event_types = [event_types]

        for event_type in event_types:
            self._listeners[event_type].append(listener)

    def unsubscribe(self, listener: Listener):
        for listeners in self._listeners.values():
            while listener in listeners:
                listeners.remove(listener)

    def emit(self, event_type: EventType, payload: Any = None):
        """
        Invoke listeners of the given event type.

        :raises Exception: Whatever a listener raised, after logging it
        """
        for listener in list(self._listeners[event_type]):
            try:
                listener(payload)
            except Exception:
                self._logger.error(
                    f"Listener {listener} failed handling {event_type.name}"
                )
                raise
