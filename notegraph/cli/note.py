"""
Operations on notes: searching and inspecting the tree.
"""

from __future__ import annotations

from rich.table import Table
from rich.tree import Tree
from typer import Argument, Context, Exit, Option

from ..core import Note
from ..search import SearchContext, SearchOptions, find_results_with_query
from ._utils import MainTyper, console, get_root_context, logger, resolve_note

app = MainTyper(
    "note",
    help="Search and inspect notes",
)


@app.command()
def search(
    ctx: Context,
    query: str = Argument(help="Search query, e.g. 'tolkien #book'"),
    fast: bool = Option(
        False, "--fast", help="Don't search note content"
    ),
    include_archived: bool = Option(
        False, "--include-archived", help="Include archived notes"
    ),
    include_hidden: bool = Option(
        False, "--include-hidden", help="Include notes in the hidden subtree"
    ),
    ancestor: str
    | None = Option(None, help="Only search in subtree of this note"),
    depth: str
    | None = Option(
        None,
        help="Depth relative to ancestor: eq<N>, gt<N> or lt<N>",
    ),
    order_by: str
    | None = Option(None, help="Property to order by, e.g. title"),
    desc: bool = Option(False, "--desc", help="Order descending"),
    limit: int | None = Option(None, min=1, help="Max number of results"),
):
    """
    Search notes, showing results in rank order
    """
    session = get_root_context(ctx).create_session()

    with session:
        search_context = SearchContext(
            session,
            SearchOptions(
                fast_search=fast,
                include_archived_notes=include_archived,
                include_hidden_notes=include_hidden,
                ancestor_note_id=ancestor,
                ancestor_depth=depth,
                order_by=order_by,
                order_direction="desc" if desc else "asc",
                limit=limit,
            ),
        )

        results = find_results_with_query(query, search_context)

        if search_context.has_error():
            logger.error(f"Query error: {search_context.get_error()}")
            raise Exit(1)

        table = Table(title=f"{len(results)} results for '{query}'")
        table.add_column("Note id")
        table.add_column("Path")
        table.add_column("Score", justify="right")

        for result in results:
            table.add_row(
                result.note_id, result.note_path_title, f"{result.score:g}"
            )

        console.print(table)


@app.command()
def tree(
    ctx: Context,
    note_id: str
    | None = Option(
        None,
        help="Root of tree to show, default: hoisted note",
    ),
    search: str
    | None = Option(
        None,
        help="Search string uniquely identifying root of tree to show, e.g. '#myProjectRoot'",
    ),
    depth: int
    | None = Option(None, min=0, help="Max depth to show"),
    include_hidden: bool = Option(
        False, "--include-hidden", help="Show the hidden subtree"
    ),
):
    """
    Show subtree of a note
    """
    session = get_root_context(ctx).create_session()

    with session:
        note = resolve_note(ctx, session, note_id, search)

        root = Tree(_format_note(note))
        _add_children(root, note, depth, include_hidden, {note.note_id})

        console.print(root)


@app.command()
def paths(
    ctx: Context,
    note_id: str
    | None = Option(None, help="Note whose paths to show"),
    search: str
    | None = Option(
        None, help="Search string uniquely identifying the note"
    ),
):
    """
    Show all paths from root to a note, best first
    """
    session = get_root_context(ctx).create_session()

    with session:
        note = resolve_note(ctx, session, note_id, search)
        cache = session.cache

        table = Table(title=f"Paths of {note.title} ({note.note_id})")
        table.add_column("Path")
        table.add_column("Titles")
        table.add_column("Archived")
        table.add_column("Hidden")

        for record in note.get_sorted_note_path_records(session.hoisted_note_id):
            table.add_row(
                "/".join(record.note_path),
                cache.get_note_title_for_path(record.note_path),
                _yes_no(record.is_archived),
                _yes_no(record.is_hidden),
            )

        console.print(table)


@app.command()
def attrs(
    ctx: Context,
    note_id: str
    | None = Option(None, help="Note whose attributes to show"),
    search: str
    | None = Option(
        None, help="Search string uniquely identifying the note"
    ),
    owned: bool = Option(
        False, "--owned", help="Only show attributes owned by the note"
    ),
):
    """
    Show effective attributes of a note, including inherited ones
    """
    session = get_root_context(ctx).create_session()

    with session:
        note = resolve_note(ctx, session, note_id, search)

        attributes = (
            note.get_owned_attributes() if owned else note.get_attributes()
        )

        table = Table(title=f"Attributes of {note.title} ({note.note_id})")
        table.add_column("Type")
        table.add_column("Name")
        table.add_column("Value")
        table.add_column("Inheritable")
        table.add_column("Owner")

        for attribute in attributes:
            owner = (
                ""
                if attribute.note_id == note.note_id
                else attribute.note_id
            )
            table.add_row(
                str(attribute.attribute_type),
                attribute.name,
                attribute.value,
                _yes_no(attribute.is_inheritable),
                owner,
            )

        console.print(table)


def _add_children(
    node: Tree,
    note: Note,
    depth: int | None,
    include_hidden: bool,
    seen: set[str],
):
    if depth is not None and depth <= 0:
        return

    cache = note._session._cache

    for child in note.children:
        if child.is_in_hidden_subtree() and not include_hidden and (
            not note.is_in_hidden_subtree()
        ):
            continue

        branch = cache.get_branch_from_child_and_parent(
            child.note_id, note.note_id
        )
        prefix = f"{branch.prefix} - " if branch and branch.prefix else ""

        if child.note_id in seen:
            # clone already shown
            node.add(f"{prefix}{_format_note(child)} [dim](clone)[/dim]")
            continue

        seen.add(child.note_id)

        child_node = node.add(f"{prefix}{_format_note(child)}")
        _add_children(
            child_node,
            child,
            None if depth is None else depth - 1,
            include_hidden,
            seen,
        )


def _format_note(note: Note) -> str:
    return f"[bold]{note.title}[/bold] [dim]({note.note_id})[/dim]"


def _yes_no(value: bool) -> str:
    return "yes" if value else ""
