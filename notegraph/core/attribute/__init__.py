from pyrollup import rollup

from . import attribute, definition, label, relation
from .attribute import *  # noqa
from .definition import *  # noqa
from .label import *  # noqa
from .relation import *  # noqa

__all__ = rollup(
    attribute,
    definition,
    label,
    relation,
)

__canonical_syms__ = __all__
