"""
Test branch placement, cloning, moving and deletion.
"""

from typing import Callable

from pytest import raises

from notegraph import *

type NoteFactory = Callable[..., Note]


def test_create(session: Session, make_note: NoteFactory):
    parent = make_note("parent")
    child1 = make_note("child1", parent)
    child2 = make_note("child2", parent)

    branch1 = session.cache.get_branch_from_child_and_parent(
        child1.note_id, parent.note_id
    )
    assert branch1 is not None
    assert branch1.branch_id == f"{parent.note_id}_{child1.note_id}"
    assert branch1.note_position == 10
    assert branch1.strength is BranchStrength.STRONG

    assert parent.children == [child1, child2]
    assert child1.parents == [parent]
    assert parent.children_count == 2
    assert child1.parent_count == 1


def test_new_notes_on_top(make_note: NoteFactory):
    parent = make_note("parent")
    parent.add_label("newNotesOnTop")

    child1 = make_note("child1", parent)
    child2 = make_note("child2", parent)

    assert parent.children == [child2, child1]


def test_position(session: Session, make_note: NoteFactory):
    parent = make_note("parent")
    child1 = make_note("child1", parent)
    child2 = make_note("child2", parent)

    branch = session.cache.get_branch_from_child_and_parent(
        child2.note_id, parent.note_id
    )
    assert branch is not None

    branch.note_position = 0
    branch.save()

    assert parent.children == [child2, child1]


def test_clone(session: Session, note1: Note, note2: Note, branch: Branch):
    assert branch.note_id == note2.note_id
    assert branch.parent_note_id == note1.note_id

    assert note2.parents == [session.root, note1]
    assert note2 in note1.children

    # can't clone twice to same parent
    with raises(ValidationError):
        note2.clone_to(note1.note_id)

    # can't clone into a search note
    search_note, _ = session.create_note("root", "search", note_type="search")

    with raises(ValidationError):
        note2.clone_to(search_note.note_id)


def test_prefix(session: Session, note1: Note, note2: Note):
    note2.clone_to(note1.note_id, prefix="Prefix")

    assert session.cache.get_note_title(note2.note_id, note1.note_id) == (
        "Prefix - Title of note2"
    )
    assert session.cache.get_note_title(note2.note_id, "root") == (
        "Title of note2"
    )


def test_cycle(session: Session, make_note: NoteFactory):
    parent = make_note("parent")
    child = make_note("child", parent)
    grandchild = make_note("grandchild", child)

    assert would_create_cycle(session.cache, grandchild.note_id, parent.note_id)
    assert not would_create_cycle(session.cache, parent.note_id, grandchild.note_id)

    with raises(ValidationError):
        parent.clone_to(grandchild.note_id)

    with raises(ValidationError):
        parent.clone_to(parent.note_id)

    # reserved notes can't be placed elsewhere
    with raises(ValidationError):
        session.root.clone_to(parent.note_id)

    with raises(ValidationError):
        session.get_note_or_throw("_hidden").clone_to(parent.note_id)


def test_move(session: Session, make_note: NoteFactory):
    parent1 = make_note("parent1")
    parent2 = make_note("parent2")
    existing = make_note("existing", parent2)
    child = make_note("child", parent1)

    branch = session.cache.get_branch_from_child_and_parent(
        child.note_id, parent1.note_id
    )
    assert branch is not None

    new_branch = move_branch(session, branch, parent2.note_id)

    assert branch.is_deleted
    assert not new_branch.is_deleted
    assert child.parents == [parent2]
    assert parent2.children == [existing, child]
    assert parent1.children == []
    assert child.get_best_note_path() == ["root", parent2.note_id, child.note_id]

    # can't move under own descendant
    with raises(ValidationError):
        move_branch(
            session,
            session.cache.get_branch_from_child_and_parent(
                parent2.note_id, "root"
            ),
            child.note_id,
        )


def test_delete_clone(session: Session, note1: Note, note2: Note, branch: Branch):
    """
    Deleting one of two branches keeps the note.
    """
    assert branch.delete_branch() is False

    assert branch.is_deleted
    assert not note2.is_deleted
    assert note2.parents == [session.root]
    assert note2 not in note1.children


def test_delete_subtree(session: Session, make_note: NoteFactory):
    parent = make_note("parent")
    child = make_note("child", parent)
    grandchild = make_note("grandchild", child)

    other = make_note("other")
    clone_parent = make_note("clone parent")
    clone = make_note("clone", child)
    clone.clone_to(clone_parent.note_id)

    label = child.add_label("label1")
    relation = other.add_relation("relation1", grandchild.note_id)

    parent.delete_note()

    for note in (parent, child, grandchild):
        assert note.is_deleted
        assert note.note_id not in session.cache.notes

        # tombstone is still reachable
        assert session.cache.get_note(note.note_id) is note

        with raises(EntityDeletedError):
            session.get_note_or_throw(note.note_id)

    # clone survives through its other parent
    assert not clone.is_deleted
    assert clone.parents == [clone_parent]

    # owned attributes and inbound relations deleted
    assert label.is_deleted
    assert relation.is_deleted
    assert not other.has_relation("relation1")

    # gone from attribute index lookups
    assert session.cache.find_attributes("label", "label1") == []
    assert session.cache.find_attributes("relation", "relation1") == []
    assert session.search("#label1") == []

    with raises(NotFoundError):
        session.get_note_or_throw("nonexistent")

    # deleting again is a no-op
    parent.delete_note()


def test_delete_weak(session: Session, make_note: NoteFactory):
    """
    A note whose only remaining branch is weak is deleted.
    """
    note = make_note("note")
    shared = note.clone_to("_share")

    assert shared.is_weak
    assert shared.strength is BranchStrength.WEAK

    branch = session.cache.get_branch_from_child_and_parent(
        note.note_id, "root"
    )
    assert branch is not None

    assert branch.delete_branch() is True
    assert note.is_deleted
    assert shared.is_deleted


def test_delete_protected_branches(session: Session, make_note: NoteFactory):
    root_branch = session.cache.get_branch("none_root")
    assert root_branch is not None

    with raises(ValidationError):
        root_branch.delete_branch()

    note = make_note("note")
    session.hoisted_note_id = note.note_id

    with raises(ValidationError):
        note.delete_note()

    # cache was reloaded upon the failed transaction
    assert not session.get_note_or_throw(note.note_id).is_deleted


def test_delete_hook(session: Session, make_note: NoteFactory):
    calls: list[tuple[str, str]] = []

    def runner(script: Note, origin: Note):
        calls.append((script.note_id, origin.note_id))

    session.script_runner = runner

    script = make_note(
        "script", note_type="code", mime="application/javascript;env=backend"
    )
    note = make_note("note")
    note.add_relation("runOnNoteDeletion", script.note_id)

    note.delete_note()

    assert calls == [(script.note_id, note.note_id)]
