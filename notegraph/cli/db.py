"""
Database maintenance operations.
"""

from __future__ import annotations

from rich.table import Table
from typer import Context, Option

from ..core import init_document
from ._utils import MainTyper, console, get_root_context, logger

app = MainTyper(
    "db",
    help="Database maintenance operations",
)


@app.command()
def init(
    ctx: Context,
    root_title: str = Option("root", help="Title of root note, if created"),
):
    """
    Create root note and reserved hidden subtree if missing
    """
    root_context = get_root_context(ctx)
    session = root_context.create_session()

    with session:
        init_document(session, root_title=root_title)

        logger.info(
            f"Initialized database '{root_context.config.database}' with {len(session.cache.notes)} notes"
        )


@app.command()
def stats(ctx: Context):
    """
    Show counts of live entities
    """
    session = get_root_context(ctx).create_session()

    with session:
        cache = session.cache

        protected_count = sum(
            1 for note in cache.notes.values() if note.is_protected
        )
        hidden_count = sum(
            1 for note in cache.notes.values() if note.is_in_hidden_subtree()
        )

        table = Table(title="Database statistics")
        table.add_column("Entity")
        table.add_column("Count", justify="right")

        table.add_row("Notes", str(len(cache.notes)))
        table.add_row("  protected", str(protected_count))
        table.add_row("  in hidden subtree", str(hidden_count))
        table.add_row("Branches", str(len(cache.branches)))
        table.add_row("Attributes", str(len(cache.attributes)))

        console.print(table)
