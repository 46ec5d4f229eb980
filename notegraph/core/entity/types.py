from enum import Enum, StrEnum, auto

from rich.markup import escape

__all__ = [
    "State",
    "BranchStrength",
    "AttributeType",
]


class State(Enum):
    """
    Entity state relative to the persistent store. Maintained automatically
    as fields are written and the entity is saved.

    For example, state will change from {obj}`State.UPDATE` back
    to {obj}`State.CLEAN` if the user reverts changes.
    """

    CLEAN = auto()
    """No pending changes"""

    CREATE = auto()
    """Not yet saved"""

    UPDATE = auto()
    """Saved, with pending changes"""

    DELETE = auto()
    """Soft-deleted"""

    def __str__(self) -> str:
        color_map = {
            State.CLEAN: "cyan",
            State.CREATE: "bright_green",
            State.UPDATE: "bright_yellow",
            State.DELETE: "red",
        }

        start = escape("[")
        end = escape("]")
        return f"{start}[{color_map[self]}]{self.name}[/{color_map[self]}]{end}"


class BranchStrength(Enum):
    """
    Whether a branch counts as real parentage of its child note.
    """

    STRONG = auto()
    """Regular placement in the tree"""

    WEAK = auto()
    """Implicit placement, e.g. under shared notes or bookmarks"""


class AttributeType(StrEnum):
    LABEL = "label"
    RELATION = "relation"
