"""
Notegraph: an in-memory note graph with attribute inheritance and a query
language for searching it.
"""

from pyrollup import rollup

from . import core, search
from .core import *  # noqa
from .search import *  # noqa

__all__ = rollup(core, search)

__canonical_children__ = [
    "core",
    "search",
]
