"""
Test ranking and presenting results, and resolving saved searches.
"""

from typing import Callable

from pytest import raises

from notegraph import *

type NoteFactory = Callable[..., Note]


def test_rank(
    session: Session, library: dict[str, Note], make_note: NoteFactory
):
    rings = make_note("Rings")

    notes = session.search("rings")

    assert notes == [rings, library["lotr"]]


def test_rank_hidden(
    session: Session, library: dict[str, Note], make_note: NoteFactory
):
    hidden_dune = make_note("Dune", "_hidden")

    dune_path = library["dune"].get_best_note_path()
    hidden_path = hidden_dune.get_best_note_path()

    assert dune_path is not None
    assert hidden_path is not None

    result = SearchResult(session, dune_path)
    hidden_result = SearchResult(session, hidden_path)

    result.compute_score("dune", ["dune"])
    hidden_result.compute_score("dune", ["dune"])

    assert result.score > 100
    assert hidden_result.score == result.score / 2


def test_search_by_id(session: Session, library: dict[str, Note]):
    hobbit = library["hobbit"]

    response = session.search_response(hobbit.note_id)

    assert response.search_result_note_ids == [hobbit.note_id]
    assert response.error is None


def test_response(session: Session, library: dict[str, Note]):
    response = session.search_response("hobbit #book")

    assert response.search_result_note_ids == [library["hobbit"].note_id]
    assert "hobbit" in response.highlighted_tokens
    assert "book" in response.highlighted_tokens

    # errors are reported along with whatever could be evaluated
    response = session.search_response("#book foo")

    assert response.error == 'Unrecognized expression "foo"'


def test_timeout(session: Session, library: dict[str, Note]):
    response = session.search_response("hobbit", timeout=1e-9)

    assert response.error == "Search timed out"
    assert response.search_result_note_ids == []

    assert session.search("hobbit", timeout=1e-9) == []


def test_options():
    options = SearchOptions(fastSearch=True, ancestorNoteId="books")

    assert options.fast_search
    assert options.ancestor_note_id == "books"

    options = SearchOptions(include_hidden_notes=True)
    assert options.include_hidden_notes

    with raises(ValueError):
        SearchOptions(timeout=0)

    with raises(ValueError):
        SearchOptions(order_direction="sideways")


def test_find_first(session: Session, library: dict[str, Note]):
    context = SearchContext(session)

    assert (
        find_first_note_with_query("#year=1965", context) is library["dune"]
    )
    assert find_first_note_with_query("#year=2000", SearchContext(session)) is None


def test_autocomplete(session: Session, library: dict[str, Note]):
    hobbit = library["hobbit"]

    results = search_notes_for_autocomplete(session, "hob")

    assert len(results) == 1
    result = results[0]

    assert result.note_title == "The Hobbit"
    assert result.note_path.endswith(f"/{hobbit.note_id}")
    assert result.note_path_title == "Books / Fantasy / The Hobbit"
    assert result.highlighted_note_path_title == "Books / Fantasy / The <b>Hob</b>bit"


def test_autocomplete_attributes(session: Session, library: dict[str, Note]):
    results = {
        result.note_title: result
        for result in search_notes_for_autocomplete(session, "tolk")
    }

    assert set(results) == {"Tolkien", "The Hobbit", "The Lord of the Rings"}

    highlighted = results["The Hobbit"].highlighted_note_path_title
    assert highlighted is not None
    assert "<small>#author=<b>Tolk</b>ien</small>" in highlighted

    assert (
        results["Tolkien"].highlighted_note_path_title
        == "Authors / <b>Tolk</b>ien"
    )


def test_autocomplete_hidden(session: Session, make_note: NoteFactory):
    hidden = make_note("Hidden launcher", "_hidden")

    results = search_notes_for_autocomplete(session, "launcher")

    assert hidden.note_id in [result.note_path.split("/")[-1] for result in results]


def test_format_attribute(session: Session, library: dict[str, Note]):
    hobbit = library["hobbit"]

    year = hobbit.get_label("year")
    written_by = hobbit.get_relation("writtenBy")

    assert year is not None
    assert written_by is not None

    assert format_attribute(year) == "#year=1937"
    assert format_attribute(written_by) == "~writtenBy=…"

    collection = library["books"].get_label("collection")
    assert collection is not None
    assert format_attribute(collection) == "#collection"

    quoted = hobbit.add_label("quote", "in a hole")
    assert format_attribute(quoted) == "#quote=&quot;in a hole&quot;"


def test_search_note(
    session: Session, library: dict[str, Note], make_note: NoteFactory
):
    search_note = make_note("Saved search", note_type="search")
    search_note.add_label("searchString", "#book")

    assert set(search_from_note(search_note).search_result_note_ids) == {
        library[key].note_id for key in ("hobbit", "lotr", "dune")
    }

    search_note.add_label("orderBy", "#year")
    search_note.add_label("orderDirection", "desc")
    search_note.add_label("limit", "2")

    assert search_from_note(search_note).search_result_note_ids == [
        library["dune"].note_id,
        library["lotr"].note_id,
    ]

    assert search_note.get_search_result_notes() == [
        library["dune"],
        library["lotr"],
    ]


def test_search_note_ancestor(
    session: Session, library: dict[str, Note], make_note: NoteFactory
):
    search_note = make_note("Fantasy books", note_type="search")
    search_note.add_label("searchString", "#book")
    search_note.add_relation("ancestor", library["fantasy"].note_id)

    assert set(search_from_note(search_note).search_result_note_ids) == {
        library["hobbit"].note_id,
        library["lotr"].note_id,
    }


def test_search_note_self(session: Session, make_note: NoteFactory):
    search_note = make_note("Everything saved", note_type="search")
    search_note.add_label("searchString", "saved")

    assert search_from_note(search_note).search_result_note_ids == []


def test_search_note_error(session: Session, make_note: NoteFactory):
    search_note = make_note("Broken search", note_type="search")
    search_note.add_label("searchString", "#book and (#year")

    response = search_from_note(search_note)

    assert response.error is not None


def test_search_script(
    session: Session, library: dict[str, Note], make_note: NoteFactory
):
    script = make_note(
        "Find books",
        note_type="code",
        mime="application/javascript;env=backend",
    )
    script.add_label("backend")

    search_note = make_note("Scripted search", note_type="search")
    search_note.add_relation("searchScript", script.note_id)

    # no runner to execute the script
    assert search_from_note(search_note).search_result_note_ids == []

    calls: list[tuple[Note, Note]] = []

    def script_runner(script_note: Note, origin: Note):
        calls.append((script_note, origin))
        return [library["hobbit"], library["dune"].note_id]

    session.script_runner = script_runner

    assert search_from_note(search_note).search_result_note_ids == [
        library["hobbit"].note_id,
        library["dune"].note_id,
    ]
    assert calls == [(script, search_note)]


def test_search_script_not_executable(
    session: Session, library: dict[str, Note], make_note: NoteFactory
):
    script = make_note("Not a script")

    search_note = make_note("Scripted search", note_type="search")
    search_note.add_relation("searchScript", script.note_id)

    session.script_runner = lambda script_note, origin: [library["hobbit"]]

    assert search_from_note(search_note).search_result_note_ids == []


def test_search_result_notes_type(session: Session, library: dict[str, Note]):
    # only search notes have results
    assert library["books"].get_search_result_notes() == []
