from pyrollup import rollup

from . import content, note, paths, subtree
from .content import *  # noqa
from .note import *  # noqa
from .paths import *  # noqa
from .subtree import *  # noqa

__all__ = rollup(note, subtree, paths)
__canonical_syms__ = __all__
__canonical_children__ = [
    "attributes",
    "content",
    "paths",
    "subtree",
]
