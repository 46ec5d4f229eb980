from pyrollup import rollup

from . import attribute, expression, fulltext, note_property, order_by, relatives
from .attribute import *  # noqa
from .expression import *  # noqa
from .fulltext import *  # noqa
from .note_property import *  # noqa
from .order_by import *  # noqa
from .relatives import *  # noqa

__all__ = rollup(
    expression,
    attribute,
    note_property,
    relatives,
    fulltext,
    order_by,
)

__canonical_syms__ = __all__
