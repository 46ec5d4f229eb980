"""
Test loading the graph cache, applying replicated rows and transactional
behavior.
"""

import logging
from pathlib import Path
from typing import Callable

from pytest import raises

from notegraph import *

type NoteFactory = Callable[..., Note]


def test_reload(tmp_path: Path, logger: logging.Logger):
    url = f"sqlite:///{tmp_path / 'document.db'}"

    with Session(url, logger=logger) as session:
        init_document(session)

        parent, _ = session.create_note("root", "parent", "content")
        child, _ = session.create_note(parent.note_id, "child")
        child.add_label("label1", "value1", is_inheritable=True)
        parent.add_relation("relation1", child.note_id)

        parent_id, child_id = parent.note_id, child.note_id

    with Session(url, logger=logger) as session:
        assert session.cache.loaded

        parent = session.get_note_or_throw(parent_id)
        child = session.get_note_or_throw(child_id)

        assert parent.title == "parent"
        assert parent.get_content() == "content"
        assert parent.children == [child]
        assert child["label1"] == "value1"
        assert parent.get_relation_target("relation1") is child
        assert child.get_target_relations()[0].note is parent

        # reinitializing an existing document is a no-op
        count = len(session.cache.notes)
        init_document(session)
        assert len(session.cache.notes) == count


def test_reload_deleted(tmp_path: Path, logger: logging.Logger):
    url = f"sqlite:///{tmp_path / 'document.db'}"

    with Session(url, logger=logger) as session:
        init_document(session)

        note, _ = session.create_note("root", "note")
        note.delete_note()
        note_id = note.note_id

    with Session(url, logger=logger) as session:
        assert session.get_note(note_id) is None

        with raises(NotFoundError):
            session.get_note_or_throw(note_id)


def test_apply_rows(session: Session):
    """
    Rows may arrive in any order; notes referenced before their own row are
    filled in later.
    """
    session.apply_rows(
        [
            (
                "attributes",
                {
                    "attributeId": "attr1",
                    "noteId": "note1",
                    "type": "label",
                    "name": "label1",
                    "value": "value1",
                    "position": 10,
                    "isInheritable": False,
                },
                False,
            ),
            (
                "branches",
                {
                    "branchId": "root_note1",
                    "noteId": "note1",
                    "parentNoteId": "root",
                    "notePosition": 100,
                    "isExpanded": False,
                },
                False,
            ),
            (
                "notes",
                {
                    "noteId": "note1",
                    "title": "Replicated",
                    "type": "text",
                    "mime": "text/html",
                    "isProtected": False,
                },
                False,
            ),
        ]
    )

    note = session.get_note_or_throw("note1")

    assert note.title == "Replicated"
    assert note["label1"] == "value1"
    assert note in session.root.children
    assert note.get_best_note_path() == ["root", "note1"]
    assert session.search("replicated") == [note]

    # update and delete
    session.apply_rows(
        [
            (
                "attributes",
                {
                    "attributeId": "attr1",
                    "noteId": "note1",
                    "type": "label",
                    "name": "label1",
                    "value": "value2",
                },
                False,
            ),
            (
                "branches",
                {
                    "branchId": "root_note1",
                    "noteId": "note1",
                    "parentNoteId": "root",
                },
                True,
            ),
        ]
    )

    assert note["label1"] == "value2"
    assert note not in session.root.children

    # persisted to store
    session.cache.load()

    reloaded = session.get_note_or_throw("note1")
    assert reloaded["label1"] == "value2"
    assert reloaded.parents == []


def test_apply_rows_relation(session: Session):
    """
    Relation arriving before its target note is wired up once the note
    arrives.
    """
    session.apply_rows(
        [
            (
                "attributes",
                {
                    "attributeId": "rel1",
                    "noteId": "root",
                    "type": "relation",
                    "name": "target",
                    "value": "note2",
                },
                False,
            ),
        ]
    )

    relation = session.cache.get_attribute_or_throw("rel1")
    assert session.cache.pending_target_relations["note2"] == [relation]

    session.apply_rows(
        [
            (
                "notes",
                {
                    "noteId": "note2",
                    "title": "Target",
                },
                False,
            ),
        ]
    )

    note = session.get_note_or_throw("note2")

    assert note.get_target_relations() == [relation]
    assert session.root.get_relation_target("target") is note
    assert "note2" not in session.cache.pending_target_relations


def test_apply_unknown(session: Session):
    with raises(ValueError):
        session.apply_rows([("unknown", {}, False)])


def test_transaction_rollback(session: Session, make_note: NoteFactory):
    note = make_note("note")

    with raises(RuntimeError):
        with session.transaction():
            note.add_label("label1")
            make_note("child", note)
            raise RuntimeError("failed")

    # cache reloaded without the partial changes
    reloaded = session.get_note_or_throw(note.note_id)

    assert reloaded is not note
    assert not reloaded.has_label("label1")
    assert reloaded.children == []
    assert not session.in_transaction


def test_tombstone(session: Session, make_note: NoteFactory):
    note = make_note("note")
    note.delete_note()

    assert session.cache.get_note(note.note_id) is note
    assert note.note_id not in session.cache.get_all_note_set().note_ids

    with raises(EntityDeletedError):
        session.cache.get_note_or_throw(note.note_id)

    assert session.cache.get_notes(
        [note.note_id, "root"], ignore_missing=True
    ) == [session.root]

    with raises(NotFoundError):
        session.cache.get_notes([note.note_id])


def test_find_attributes(session: Session, make_note: NoteFactory):
    note1 = make_note("note1")
    note2 = make_note("note2")

    label1 = note1.add_label("Author", "tolkien")
    label2 = note2.add_label("authorship")
    note2.add_relation("author", note1.note_id)

    assert session.cache.find_attributes("label", "author") == [label1]
    assert set(
        session.cache.find_attributes_with_prefix("label", "auth")
    ) == {label1, label2}

    label1.mark_as_deleted()

    assert session.cache.find_attributes("label", "author") == []


def test_note_set_memo(session: Session, make_note: NoteFactory):
    note_set = session.cache.get_all_note_set()

    assert session.cache.get_all_note_set() is note_set

    note = make_note("note")
    note_set = session.cache.get_all_note_set()

    assert note_set.has_note_id(note.note_id)
