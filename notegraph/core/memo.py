"""
Explicit memoization cells for derived note state.
"""

from typing import Callable

__all__ = ["MemoCell"]


class MemoCell[T]:
    """
    Holds a lazily computed value until explicitly invalidated.

    Cells never recompute on their own: every mutation path which affects the
    derived value must call {obj}`MemoCell.invalidate`.
    """

    __slots__ = ("_value", "_is_set")

    _value: T | None
    _is_set: bool

    def __init__(self):
        self._value = None
        self._is_set = False

    def __repr__(self):
        return f"MemoCell({self._value!r})" if self._is_set else "MemoCell()"

    @property
    def is_set(self) -> bool:
        return self._is_set

    def get(self, compute: Callable[[], T]) -> T:
        """
        Get cached value, computing it first if needed.
        """
        if not self._is_set:
            self.set(compute())
        return self._value  # type: ignore[return-value]

    def peek(self) -> T | None:
        """
        Get cached value without computing it.
        """
        return self._value

    def set(self, value: T):
        self._value = value
        self._is_set = True

    def invalidate(self):
        self._value = None
        self._is_set = False
