"""
Utilities specific to CLI functionality.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from click import BadParameter, Parameter
from rich.console import Console
from rich.logging import RichHandler
from typer import Context, Typer

from ..core import Note, Session

if TYPE_CHECKING:
    from .main import RootContext


console = Console()

rich_handler = RichHandler(
    console=console,
    rich_tracebacks=True,
    show_level=True,
    show_time=True,
    show_path=False,
)
rich_handler.setFormatter(logging.Formatter("%(message)s"))

logger = logging.getLogger("notegraph")
logger.setLevel(logging.INFO)
logger.addHandler(rich_handler)
logger.propagate = False


class MainTyper(Typer):
    """
    Typer app with preconfigured settings.
    """

    def __init__(self, name: str, *, help: str):
        return super().__init__(
            name=name,
            help=help,
            rich_markup_mode="markdown",
            no_args_is_help=True,
            add_completion=False,
        )


def get_root_context(ctx: Context) -> RootContext:
    from .main import RootContext

    # subcommands' contexts are children of the root context
    root_context = ctx.find_object(RootContext)
    assert isinstance(root_context, RootContext)
    return root_context


def resolve_note(
    ctx: Context,
    session: Session,
    note_id: str | None,
    search: str | None,
) -> Note:
    """
    Get the note selected by the `note_id` or `search` option of the current
    command, defaulting to the hoisted note. A search has to match exactly
    one note.

    :raises BadParameter: If the note doesn't exist or the search is ambiguous
    """
    if search:
        notes = session.search(search)

        if len(notes) != 1:
            raise BadParameter(
                f"search '{search}' must match exactly one note, got {len(notes)}",
                ctx=ctx,
                param=lookup_param(ctx, "search"),
            )

        return notes[0]

    note = session.get_note(note_id or session.hoisted_note_id)

    if note is None or note.is_deleted:
        raise BadParameter(
            f"note '{note_id}' does not exist",
            ctx=ctx,
            param=lookup_param(ctx, "note_id"),
        )

    return note


def lookup_param(ctx: Context, name: str) -> Parameter:
    """
    Lookup param by name.
    """
    param = next((p for p in ctx.command.params if p.name == name), None)
    assert param, f"Could not find param with name: {name}"
    return param
