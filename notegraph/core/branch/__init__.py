from pyrollup import rollup

from . import branch
from .branch import *  # noqa

__all__ = rollup(branch)
__canonical_syms__ = __all__
