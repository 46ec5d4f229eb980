"""
Test enumeration and ranking of note paths, and ancestor queries.
"""

from typing import Callable

from pytest import mark, raises

from notegraph import *

type NoteFactory = Callable[..., Note]


def test_single_path(session: Session, make_note: NoteFactory):
    parent = make_note("parent")
    child = make_note("child", parent)

    assert child.get_all_note_paths() == [["root", parent.note_id, child.note_id]]
    assert child.get_best_note_path_string() == (
        f"root/{parent.note_id}/{child.note_id}"
    )
    assert child.paths == [[session.root, parent, child]]
    assert child.paths_str == ["root > parent > child"]

    assert session.root.get_all_note_paths() == [["root"]]


def test_clone_paths(make_note: NoteFactory):
    parent1 = make_note("parent1")
    parent2 = make_note("parent2", parent1)
    child = make_note("child", parent2)
    child.clone_to(parent1.note_id)

    paths = child.get_all_note_paths()

    assert len(paths) == 2
    assert ["root", parent1.note_id, parent2.note_id, child.note_id] in paths

    # shortest path is preferred
    assert child.get_best_note_path() == ["root", parent1.note_id, child.note_id]


def test_archived_path(make_note: NoteFactory):
    archive = make_note("archive")
    archive.add_label("archived")

    regular = make_note("regular")
    child = make_note("child", archive)
    child.clone_to(regular.note_id)

    records = child.get_sorted_note_path_records()

    assert [r.is_archived for r in records] == [False, True]
    assert child.get_best_note_path() == ["root", regular.note_id, child.note_id]
    assert not child.are_all_note_paths_archived()

    archived_only = make_note("archived only", archive)
    assert archived_only.are_all_note_paths_archived()


def test_hoisted_path(session: Session, make_note: NoteFactory):
    """
    Paths within the hoisted subtree are preferred even if longer.
    """
    workspace = make_note("workspace")
    folder = make_note("folder", workspace)
    child = make_note("child", folder)
    child.clone_to("root")

    assert child.get_best_note_path() == ["root", child.note_id]

    best = child.get_best_note_path(workspace.note_id)
    assert best == ["root", workspace.note_id, folder.note_id, child.note_id]

    records = child.get_sorted_note_path_records(workspace.note_id)
    assert records[0].is_in_hoisted_subtree
    assert not records[1].is_in_hoisted_subtree


def test_hidden_path(session: Session, make_note: NoteFactory):
    child = make_note("child", "_hidden")
    child.clone_to("root")

    records = child.get_sorted_note_path_records()

    assert [r.is_hidden for r in records] == [False, True]
    assert child.is_in_hidden_subtree()
    assert not child.is_hidden_completely()

    hidden_child = make_note("hidden child", "_hidden")
    assert hidden_child.is_hidden_completely()

    assert session.get_note_or_throw("_search").is_hidden_completely()


def test_search_parent(session: Session, make_note: NoteFactory):
    """
    Saved searches don't contribute paths.
    """
    child = make_note("child")
    search_note = make_note("search", note_type="search")

    # place as child directly, bypassing validation of cloning
    session.cache.apply_row(
        "branches",
        {
            "branchId": f"{search_note.note_id}_{child.note_id}",
            "noteId": child.note_id,
            "parentNoteId": search_note.note_id,
            "notePosition": 10,
            "isExpanded": False,
        },
    )

    assert search_note in child.parents
    assert child.get_all_note_paths() == [["root", child.note_id]]


def test_no_path(session: Session, make_note: NoteFactory):
    note = make_note("note")
    note.delete_note()

    assert note.get_best_note_path() is None

    with raises(ValueError):
        note.are_all_note_paths_archived()


def test_ancestors(session: Session, make_note: NoteFactory):
    parent1 = make_note("parent1")
    parent2 = make_note("parent2")
    child = make_note("child", parent1)
    grandchild = make_note("grandchild", child)
    child.clone_to(parent2.note_id)

    assert grandchild.get_ancestors() == [child, parent1, session.root, parent2]
    assert grandchild.has_ancestor(parent2.note_id)
    assert not grandchild.has_ancestor(grandchild.note_id)
    assert grandchild.is_descendant_of_note(grandchild.note_id)
    assert not parent1.is_descendant_of_note(child.note_id)

    assert grandchild.get_distance_to_ancestor(grandchild.note_id) == 0
    assert grandchild.get_distance_to_ancestor(parent2.note_id) == 2
    assert grandchild.get_distance_to_ancestor("root") == 3
    assert parent1.get_distance_to_ancestor(child.note_id) == 999999


def test_ancestors_invalidated(session: Session, make_note: NoteFactory):
    parent = make_note("parent")
    child = make_note("child")

    assert child.get_ancestors() == [session.root]

    child.clone_to(parent.note_id)

    assert parent in child.get_ancestors()


@mark.note_title("Folder")
def test_title_for_path(session: Session, note: Note, make_note: NoteFactory):
    child = make_note("child", note)

    path = child.get_best_note_path()
    assert path is not None

    assert session.cache.get_note_title_for_path(path) == "Folder / child"

    # below hoisted note, only the remainder is shown
    assert (
        session.cache.get_note_title_for_path(path, note.note_id) == "child"
    )
    assert session.cache.get_note_title_for_path(["root"], "root") == "root"
