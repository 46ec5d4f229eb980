"""
Implementation of session functionality.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable, Generator, Iterable
from contextlib import contextmanager
from logging import Logger
from typing import TYPE_CHECKING, Any

from .cache import GraphCache
from .events import EventBus, EventType
from .protected import Cipher, ProtectedSessionService
from .utils import ROOT_NOTE_ID

if TYPE_CHECKING:
    from ..search.service import SearchResponse
    from .branch.branch import Branch
    from .note.note import Note
    from .store import BaseStore

__all__ = [
    "Session",
    "ExclusiveRegion",
]
__canonical_syms__ = __all__


class SessionContainer:
    """
    Indicates that subclasses contain a session.
    """

    _session: Session

    def __init__(self, session: Session):
        self._session = session


class ExclusiveRegion:
    """
    Reentrant lock granting access to waiters in FIFO order. Wraps
    multi-step, consistency-critical sequences like applying a batch of
    changes received from sync.
    """

    _cond: threading.Condition
    _queue: deque[object]
    _owner: int | None
    _depth: int

    def __init__(self):
        self._cond = threading.Condition()
        self._queue = deque()
        self._owner = None
        self._depth = 0

    @property
    def waiting(self) -> int:
        """
        Number of threads waiting for access.
        """
        with self._cond:
            return len(self._queue)

    @property
    def locked(self) -> bool:
        return self._owner is not None

    def acquire(self, timeout: float | None = None) -> bool:
        ident = threading.get_ident()

        with self._cond:
            if self._owner == ident:
                self._depth += 1
                return True

            ticket = object()
            self._queue.append(ticket)

            acquired = self._cond.wait_for(
                lambda: self._owner is None and self._queue[0] is ticket,
                timeout,
            )
            self._queue.remove(ticket)

            if not acquired:
                # let the next waiter proceed if we were at the head
                self._cond.notify_all()
                return False

            self._owner = ident
            self._depth = 1
            return True

    def release(self):
        with self._cond:
            assert self._owner == threading.get_ident(), "Not lock owner"

            self._depth -= 1
            if self._depth == 0:
                self._owner = None
                self._cond.notify_all()

    @contextmanager
    def held(self, timeout: float | None = None) -> Generator[None, None, None]:
        if not self.acquire(timeout):
            raise TimeoutError(
                f"Failed to enter exclusive region within {timeout}s"
            )
        try:
            yield
        finally:
            self.release()


class Session:
    """
    Context owning the graph cache and its collaborators: the persistent
    store, the change-notification bus and the protected session.

    Each session is an isolated instance; nothing is held in module-level
    state.
    """

    _store: BaseStore
    """
    Persistent store.
    """

    _cache: GraphCache
    """
    Graph cache.
    """

    _events: EventBus
    """
    Change-notification bus.
    """

    _protected: ProtectedSessionService
    """
    Protected session state.
    """

    _exclusive: ExclusiveRegion
    """
    Lock for consistency-critical sequences.
    """

    _transaction_depth: int = 0
    """
    Nesting level of open transactions.
    """

    _pending_events: list[tuple[EventType, Any]]
    """
    Events held until the current transaction commits.
    """

    _logger: Logger
    """
    Logger to use.
    """

    hoisted_note_id: str
    """
    Note currently treated as the effective root for display and search.
    """

    script_runner: Callable[[Note, Note], Any] | None
    """
    Invoked with (script note, origin note) for relation-triggered hooks.
    """

    def __init__(
        self,
        store: BaseStore | str | None = None,
        *,
        cipher: Cipher | None = None,
        protected: ProtectedSessionService | None = None,
        events: EventBus | None = None,
        hoisted_note_id: str = ROOT_NOTE_ID,
        script_runner: Callable[[Note, Note], Any] | None = None,
        logger: Logger | None = None,
        load: bool = True,
    ):
        """
        :param store: Store instance or database URL, or `None` for a new in-memory database
        :param cipher: Cipher used for protected notes, if `protected` not given
        :param protected: Protected session service
        :param events: Change-notification bus to emit to
        :param hoisted_note_id: Effective root for display and search
        :param script_runner: Callable to run relation-triggered hooks
        :param logger: Logger to use, or `None` to use default logger
        :param load: Load the graph cache from the store immediately
        """
        from .store import SqlStore

        self._logger = logger or logging.getLogger()

        if store is None or isinstance(store, str):
            store = SqlStore() if store is None else SqlStore(store)

        self._store = store
        self._events = events or EventBus(self._logger)
        self._protected = protected or ProtectedSessionService(cipher)
        self._exclusive = ExclusiveRegion()
        self._pending_events = []

        self.hoisted_note_id = hoisted_note_id
        self.script_runner = script_runner

        self._cache = GraphCache(self)

        if load:
            self._cache.load()

    def __str__(self):
        return f"Session(store={self._store})"

    def __enter__(self):
        self._logger.debug(f"Entering context: {self}")
        return self

    def __exit__(self, exc_type, exc_val, traceback):
        if exc_type:
            self._logger.error(f"Exiting context with error: {self}")
        else:
            self._logger.debug(f"Exiting context: {self}")

        self.teardown()

    @property
    def cache(self) -> GraphCache:
        return self._cache

    @property
    def store(self) -> BaseStore:
        return self._store

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def protected(self) -> ProtectedSessionService:
        return self._protected

    @property
    def logger(self) -> Logger:
        return self._logger

    @property
    def root(self) -> Note:
        """
        Root note.
        """
        return self._cache.get_note_or_throw(ROOT_NOTE_ID)

    @property
    def in_transaction(self) -> bool:
        return self._transaction_depth > 0

    def teardown(self):
        """
        Clear the cache and release the store.
        """
        self._cache.reset()
        self._store.close()

    def get_note(self, note_id: str) -> Note | None:
        return self._cache.get_note(note_id)

    def get_note_or_throw(self, note_id: str) -> Note:
        return self._cache.get_note_or_throw(note_id)

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """
        All-or-nothing boundary: writes inside commit atomically to the store,
        and change events are emitted only upon commit. If the body raises,
        the store rolls back and the cache is reloaded from the store so no
        partial index updates survive.
        """
        if self._transaction_depth:
            # join outer transaction
            self._transaction_depth += 1
            try:
                yield
            finally:
                self._transaction_depth -= 1
            return

        self._transaction_depth = 1

        try:
            with self._store.transaction():
                yield
        except BaseException:
            self._transaction_depth = 0
            self._pending_events.clear()

            self._logger.warning("Transaction failed, reloading cache from store")
            self._cache.load()
            raise

        self._transaction_depth = 0

        events, self._pending_events = self._pending_events, []
        for event_type, payload in events:
            self._events.emit(event_type, payload)

    @contextmanager
    def exclusive(self, timeout: float | None = None) -> Generator[None, None, None]:
        """
        Serialize a multi-step sequence against other exclusive sequences.
        Waiters are admitted in FIFO order.

        :raises TimeoutError: If not admitted within `timeout` seconds
        """
        with self._exclusive.held(timeout):
            yield

    def do_exclusively[T](self, func: Callable[..., T], *args, **kwargs) -> T:
        """
        Run func within the exclusive region.
        """
        with self.exclusive():
            return func(*args, **kwargs)

    def apply_rows(self, rows: Iterable[tuple[str, dict[str, Any], bool]]):
        """
        Apply externally received rows, e.g. from sync, as one transaction.

        :param rows: Tuples of (entity name, row in storage format, is deleted)
        """
        with self.exclusive(), self.transaction():
            for entity_name, row, is_deleted in rows:
                self._cache.apply_row(entity_name, row, is_deleted=is_deleted)

    def enter_protected_session(self, data_key: bytes):
        """
        Make protected titles and content readable.
        """
        self._protected.set_data_key(data_key)
        self._cache.decrypt_all()
        self._emit(EventType.ENTER_PROTECTED_SESSION)

    def leave_protected_session(self):
        self._protected.reset()
        self._cache.decrypt_all()
        self._emit(EventType.LEAVE_PROTECTED_SESSION)

    def run_attached_relations(self, note: Note, relation_name: str, origin: Note):
        """
        Run hooks attached to note via relations with the given name.
        """
        for relation in note.get_relations(relation_name):
            target = relation.target_note

            if target is None:
                continue

            if self.script_runner is None:
                self._logger.debug(
                    f"No script runner, skipping ~{relation_name} of {note} -> {target}"
                )
                continue

            self.script_runner(target, origin)

    def create_note(self, parent_note_id: str, title: str, content: str | bytes = "", **kwargs) -> tuple[Note, Branch]:
        """
        Create note under given parent. See {obj}`notegraph.core.tree.create_note`.
        """
        from .tree import create_note

        return create_note(self, parent_note_id, title, content, **kwargs)

    def clone_note_to_parent(
        self, note_id: str, parent_note_id: str, prefix: str | None = None
    ) -> Branch:
        from .tree import clone_note_to_parent

        return clone_note_to_parent(self, note_id, parent_note_id, prefix)

    def search(self, query: str, **options) -> list[Note]:
        """
        Search notes using the query language, returning matching notes in
        rank order. Query errors yield an empty list; use
        {obj}`Session.search_response` to get the error.

        :param query: Query string, e.g. `#book #author=tolkien`
        :param options: Fields of {obj}`SearchOptions`
        """
        from ..search.service import search_notes

        return search_notes(self, query, **options)

    def search_response(self, query: str, **options) -> SearchResponse:
        """
        Search notes, returning note ids along with highlighted tokens and
        any query error.
        """
        from ..search.service import search_with_response

        return search_with_response(self, query, **options)

    def _emit(self, event_type: EventType, payload: Any = None):
        """
        Emit event, deferring it if a transaction is open.
        """
        if self._transaction_depth:
            self._pending_events.append((event_type, payload))
        else:
            self._events.emit(event_type, payload)
