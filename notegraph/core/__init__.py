"""
This module implements the in-memory note graph: notes, branches and
attributes held in a cache, with attribute inheritance, paths and subtree
traversal.
"""

from pyrollup import rollup

from . import (
    attribute,
    branch,
    cache,
    entity,
    events,
    exceptions,
    hidden,
    memo,
    note,
    protected,
    session,
    store,
    tree,
)
from .attribute import *  # noqa
from .branch import *  # noqa
from .cache import *  # noqa
from .entity import *  # noqa
from .events import *  # noqa
from .exceptions import *  # noqa
from .hidden import *  # noqa
from .memo import *  # noqa
from .note import *  # noqa
from .protected import *  # noqa
from .session import *  # noqa
from .store import *  # noqa
from .tree import *  # noqa

__all__ = rollup(
    session,
    note,
    attribute,
    branch,
    cache,
    entity,
    events,
    exceptions,
    hidden,
    memo,
    protected,
    store,
    tree,
)

__canonical_children__ = [
    "session",
    "note",
    "attribute",
    "branch",
    "cache",
    "entity",
    "events",
    "exceptions",
    "hidden",
    "memo",
    "protected",
    "store",
    "tree",
]
