"""
Query language over the note graph: lexing and parsing queries into
expression trees, evaluating them against the cache and ranking results.
"""

from pyrollup import rollup

from . import (
    comparators,
    context,
    expressions,
    lexer,
    note_set,
    parens,
    parser,
    result,
    service,
    value_extractor,
)
from .comparators import *  # noqa
from .context import *  # noqa
from .expressions import *  # noqa
from .lexer import *  # noqa
from .note_set import *  # noqa
from .parens import *  # noqa
from .parser import *  # noqa
from .result import *  # noqa
from .service import *  # noqa
from .value_extractor import *  # noqa

__all__ = rollup(
    service,
    context,
    note_set,
    result,
    lexer,
    parens,
    parser,
    comparators,
    value_extractor,
    expressions,
)

__canonical_children__ = [
    "service",
    "context",
    "note_set",
    "result",
    "lexer",
    "parens",
    "parser",
    "comparators",
    "value_extractor",
    "expressions",
]
