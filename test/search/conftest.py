from typing import Callable

from pytest import fixture

from notegraph import Note, Session

type NoteFactory = Callable[..., Note]


@fixture
def library(session: Session, make_note: NoteFactory) -> dict[str, Note]:
    """
    Small document of books to search:

    ```
    root
    ├── Books #collection
    │   ├── Fantasy #genre=fantasy (inheritable)
    │   │   ├── The Hobbit #book #author=Tolkien #year=1937 ~writtenBy=Tolkien
    │   │   └── The Lord of the Rings #book #author=Tolkien #year=1954
    │   └── Science Fiction #genre=scifi (inheritable)
    │       └── Dune #book #author=Herbert #year=1965
    ├── Authors
    │   └── Tolkien
    └── Old #archived (inheritable)
        └── Forgotten #book
    ```
    """
    books = make_note("Books")
    books.add_label("collection")

    fantasy = make_note("Fantasy", books)
    fantasy.add_label("genre", "fantasy", is_inheritable=True)

    scifi = make_note("Science Fiction", books)
    scifi.add_label("genre", "scifi", is_inheritable=True)

    authors = make_note("Authors")
    tolkien = make_note("Tolkien", authors)

    hobbit = make_note(
        "The Hobbit",
        fantasy,
        content="<p>A <b>dragon</b> guards the treasure</p>",
    )
    hobbit.add_label("book")
    hobbit.add_label("author", "Tolkien")
    hobbit.add_label("year", "1937")
    hobbit.add_relation("writtenBy", tolkien.note_id)

    lotr = make_note("The Lord of the Rings", fantasy)
    lotr.add_label("book")
    lotr.add_label("author", "Tolkien")
    lotr.add_label("year", "1954")

    dune = make_note("Dune", scifi, content="<p>Spice must flow</p>")
    dune.add_label("book")
    dune.add_label("author", "Herbert")
    dune.add_label("year", "1965")

    old = make_note("Old")
    old.add_label("archived", is_inheritable=True)

    forgotten = make_note("Forgotten", old)
    forgotten.add_label("book")

    return {
        "books": books,
        "fantasy": fantasy,
        "scifi": scifi,
        "authors": authors,
        "tolkien": tolkien,
        "hobbit": hobbit,
        "lotr": lotr,
        "dune": dune,
        "old": old,
        "forgotten": forgotten,
    }
