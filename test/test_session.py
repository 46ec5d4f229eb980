"""
Test session-level behavior: change events, exclusive regions and the
protected session.
"""

import threading
import time
from typing import Any, Callable

from pytest import raises

from notegraph import *

type NoteFactory = Callable[..., Note]


def test_events(session: Session, make_note: NoteFactory):
    events: list[tuple[EventType, Any]] = []

    def listener(event_type: EventType):
        return lambda payload: events.append((event_type, payload))

    for event_type in EventType:
        session.events.subscribe(event_type, listener(event_type))

    parent = make_note("parent")
    events.clear()

    note, _ = session.create_note(parent.note_id, "note", "content")

    event_types = [event_type for event_type, _ in events]

    assert EventType.ENTITY_CREATED in event_types
    assert EventType.NOTE_CONTENT_CHANGE in event_types
    assert event_types[-1] is EventType.CHILD_NOTE_CREATED

    payload = events[-1][1]
    assert isinstance(payload, ChildNoteEvent)
    assert payload.child_note is note
    assert payload.parent_note is parent

    created = [
        payload
        for event_type, payload in events
        if event_type is EventType.ENTITY_CREATED
    ]
    assert {p.entity_name for p in created} == {"notes", "branches"}
    assert all(isinstance(p, EntityEvent) and p.hash for p in created)

    events.clear()
    note.delete_note()

    deleted = [
        payload.entity_name
        for event_type, payload in events
        if event_type is EventType.ENTITY_DELETED
    ]
    assert sorted(deleted) == ["branches", "notes"]


def test_events_deferred(session: Session, make_note: NoteFactory):
    """
    Events are emitted upon commit and dropped upon rollback.
    """
    events: list[Any] = []
    session.events.subscribe(EventType.ENTITY_CHANGED, events.append)

    with session.transaction():
        note = make_note("note")
        note.add_label("label1")

        assert session.in_transaction
        assert events == []

    assert len(events) > 0

    events.clear()

    with raises(RuntimeError):
        with session.transaction():
            make_note("note2")
            raise RuntimeError("failed")

    assert events == []


def test_listener_error(session: Session, make_note: NoteFactory):
    def listener(payload: Any):
        raise ValueError("listener failed")

    session.events.subscribe(
        [EventType.ENTITY_CREATED, EventType.ENTITY_CHANGED], listener
    )

    with raises(ValueError):
        make_note("note")

    session.events.unsubscribe(listener)

    # note was committed before the listener ran
    note = make_note("note2")
    assert not note.is_deleted


def test_title_event(session: Session, make_note: NoteFactory):
    titles: list[str] = []
    session.events.subscribe(
        EventType.NOTE_TITLE_CHANGED,
        lambda payload: titles.append(payload.entity.title),
    )

    note = make_note("note")
    note.title = "renamed"
    note.save()

    # unchanged title emits nothing
    note.save()

    assert titles == ["note", "renamed"]


def test_protected_events(session: Session):
    events: list[EventType] = []

    session.events.subscribe(
        EventType.ENTER_PROTECTED_SESSION,
        lambda _: events.append(EventType.ENTER_PROTECTED_SESSION),
    )
    session.events.subscribe(
        EventType.LEAVE_PROTECTED_SESSION,
        lambda _: events.append(EventType.LEAVE_PROTECTED_SESSION),
    )

    session.enter_protected_session(b"secret")
    assert session.protected.is_available()

    session.leave_protected_session()
    assert not session.protected.is_available()

    assert events == [
        EventType.ENTER_PROTECTED_SESSION,
        EventType.LEAVE_PROTECTED_SESSION,
    ]


def test_exclusive_reentrant(session: Session):
    with session.exclusive():
        with session.exclusive():
            assert session.do_exclusively(lambda x: x + 1, 1) == 2


def test_exclusive_fifo():
    region = ExclusiveRegion()
    order: list[int] = []

    def worker(i: int):
        with region.held():
            order.append(i)

    region.acquire()

    threads: list[threading.Thread] = []

    for i in range(3):
        thread = threading.Thread(target=worker, args=(i,))
        thread.start()
        threads.append(thread)

        # wait for thread to queue up
        while region.waiting < i + 1:
            time.sleep(0.001)

    assert region.locked

    region.release()

    for thread in threads:
        thread.join(timeout=5)

    assert order == [0, 1, 2]
    assert not region.locked


def test_exclusive_timeout():
    region = ExclusiveRegion()
    acquired = threading.Event()
    done = threading.Event()

    def holder():
        with region.held():
            acquired.set()
            done.wait(timeout=5)

    thread = threading.Thread(target=holder)
    thread.start()
    acquired.wait(timeout=5)

    with raises(TimeoutError):
        with region.held(timeout=0.01):
            pass

    assert region.waiting == 0

    done.set()
    thread.join(timeout=5)

    assert region.acquire(timeout=1)
    region.release()


def test_hoisted(session: Session, make_note: NoteFactory):
    workspace = make_note("workspace")
    inside = make_note("match inside", workspace)
    make_note("match outside")

    session.hoisted_note_id = workspace.note_id

    assert session.search("match") == [inside]
