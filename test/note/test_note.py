"""
Test basic note access and state.
"""

from typing import Callable

from pytest import mark, raises

from notegraph import *

type NoteFactory = Callable[..., Note]


@mark.attribute("label", "label1", "value1")
def test_getitem(note: Note):
    assert note["label1"] == "value1"
    assert "label1" in note
    assert "label2" not in note

    assert note.get("label1") == "value1"
    assert note.get("label2") is None
    assert note.get("label2", "default") == "default"

    with raises(KeyError):
        note["label2"]


def test_setitem(note: Note):
    note["label1"] = "value1"

    assert note.get_owned_label_value("label1") == "value1"

    note["label1"] = "value2"

    assert note["label1"] == "value2"
    assert len(note.get_owned_labels("label1")) == 1


def test_state(session: Session, note: Note):
    assert note.state is State.CLEAN
    assert not note.is_changed

    note.title = "New title"

    assert note.state is State.UPDATE
    assert note.is_changed

    # restoring the persisted value makes it clean again
    note.title = "Title of note"

    assert note.state is State.CLEAN

    note.title = "New title"
    note.save()

    assert note.state is State.CLEAN
    assert session.cache.get_note_title(note.note_id) == "New title"


def test_deleted_state(note: Note):
    note.delete_note()

    assert note.state is State.DELETE
    assert note.is_deleted

    with raises(ValidationError):
        note.title = "New title"


def test_str(note: Note):
    assert str(note) == f"Note('Title of note', note_id='{note.note_id}')"
    assert "Title of note" in note.str_summary


def test_root(session: Session):
    root = session.root

    assert root.is_root
    assert root.parents == []
    assert root.get_all_note_paths() == [["root"]]
    assert root.get_best_note_path() == ["root"]

    hidden = session.get_note_or_throw("_hidden")
    assert hidden in root.children
    assert hidden.parents == [root]
