"""
Entry point of `notegraph` CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import dotenv
from click.exceptions import BadParameter
from pydantic import ValidationError
from typer import Context, Exit, Option

from ..config import Config
from ..core import Session
from . import db, note
from ._utils import MainTyper, logger, lookup_param

DEFAULT_CONFIG_FILE = Path("notegraph.yaml")

dotenv.load_dotenv()

app = MainTyper(
    "notegraph",
    help="Notegraph CLI Toolkit",
)


@app.callback()
def main(
    ctx: Context,
    database: str
    | None = Option(
        None,
        "--db",
        help="Database file or SQLAlchemy URL",
        envvar="NOTEGRAPH_DB",
    ),
    config_file: Path
    | None = Option(
        None,
        "--config",
        help=f".yaml file containing configuration, default: {DEFAULT_CONFIG_FILE} if it exists",
        envvar="NOTEGRAPH_CONFIG",
        dir_okay=False,
    ),
    hoisted_note_id: str
    | None = Option(
        None,
        "--hoisted",
        help="Note to treat as the effective root for display and search",
    ),
):
    config = _load_config(ctx, config_file)

    # CLI options take precedence over config file
    if database is not None:
        config.database = database
    if hoisted_note_id is not None:
        config.hoisted_note_id = hoisted_note_id

    logger.setLevel(config.log_level_value)

    ctx.obj = RootContext(ctx=ctx, config=config)


app.add_typer(db.app)
app.add_typer(note.app)


def run():
    app()


@dataclass(kw_only=True)
class RootContext:
    ctx: Context
    config: Config

    def create_session(self) -> Session:
        try:
            return self.config.create_session(logger=logger)
        except Exception as e:
            logger.error(f"Failed to open database: {e}")
            raise Exit(code=1)


def _load_config(ctx: Context, config_file: Path | None) -> Config:
    """
    Get config from file if given or if the default file exists, otherwise
    defaults.
    """
    if config_file is None:
        if not DEFAULT_CONFIG_FILE.is_file():
            return Config()

        config_file = DEFAULT_CONFIG_FILE

    # ensure config file exists
    if not config_file.is_file():
        raise BadParameter(
            message=f"file does not exist: {config_file}",
            ctx=ctx,
            param=lookup_param(ctx, "config_file"),
        )

    try:
        return Config.load_yaml(config_file)
    except (ValueError, ValidationError) as e:
        raise BadParameter(
            f"failed to load config file '{config_file}': {e}",
            ctx=ctx,
            param=lookup_param(ctx, "config_file"),
        )


if __name__ == "__main__":
    app()
