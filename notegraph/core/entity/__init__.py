from pyrollup import rollup

from . import entity, model, types
from .entity import *  # noqa
from .model import *  # noqa
from .types import *  # noqa

__all__ = rollup(entity, types)
