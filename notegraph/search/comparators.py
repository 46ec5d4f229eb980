"""
Builds predicates comparing an extracted value against a query operand.
"""

from __future__ import annotations

import re
from typing import Callable

__all__ = [
    "Comparator",
    "OPERATORS",
    "build_comparator",
    "build_depth_comparator",
    "to_number",
]

type Comparator = Callable[[str | None], bool]
"""
Predicate on a lowercased value, or `None` if the value is absent.
"""

OPERATORS = ["=", "!=", "*=*", "*=", "=*", ">", ">=", "<", "<=", "%="]
"""
Operators recognized in queries.
"""

NUMERIC_OPERATORS = [">", ">=", "<", "<="]


def to_number(value: str | None) -> float | None:
    """
    Parse value as a number, or `None` if it isn't numeric.
    """
    if value is None:
        return None

    try:
        number = float(value)
    except ValueError:
        return None

    # reject "nan"/"inf" spellings
    return number if number == number and abs(number) != float("inf") else None


def _numeric(
    compare: Callable[[float, float], bool], operand: float
) -> Comparator:
    def comparator(value: str | None) -> bool:
        number = to_number(value)
        return number is not None and compare(number, operand)

    return comparator


def _string(
    compare: Callable[[str, str], bool], operand: str
) -> Comparator:
    def comparator(value: str | None) -> bool:
        return value is not None and compare(value, operand)

    return comparator


def build_comparator(operator: str, operand: str) -> Comparator | None:
    """
    Get comparator for the given operator, or `None` if the operator is not
    recognized. Ordering operators compare numerically when the operand is
    a number, otherwise lexicographically.

    :raises re.error: If operator is `%=` and operand is not a valid regex
    """
    operand = operand.lower()

    if operator in NUMERIC_OPERATORS and (number := to_number(operand)) is not None:
        match operator:
            case ">":
                return _numeric(lambda a, b: a > b, number)
            case ">=":
                return _numeric(lambda a, b: a >= b, number)
            case "<":
                return _numeric(lambda a, b: a < b, number)
            case "<=":
                return _numeric(lambda a, b: a <= b, number)

    match operator:
        case "=":
            return lambda value: value == operand
        case "!=":
            return lambda value: value != operand
        case ">":
            return _string(lambda a, b: a > b, operand)
        case ">=":
            return _string(lambda a, b: a >= b, operand)
        case "<":
            return _string(lambda a, b: a < b, operand)
        case "<=":
            return _string(lambda a, b: a <= b, operand)
        case "*=":
            return lambda value: bool(value) and value.endswith(operand)
        case "=*":
            return lambda value: bool(value) and value.startswith(operand)
        case "*=*":
            return lambda value: bool(value) and operand in value
        case "%=":
            regex = re.compile(operand, re.MULTILINE | re.DOTALL)
            return lambda value: bool(value) and regex.search(value) is not None

    return None


def build_depth_comparator(depth_condition: str) -> Callable[[int], bool]:
    """
    Get predicate on distance to ancestor from a condition like `eq1`,
    `gt2` or `lt3`.

    :raises ValueError: If condition isn't recognized
    """
    prefix, depth_str = depth_condition[:2], depth_condition[2:]

    if prefix not in ("eq", "gt", "lt"):
        raise ValueError(f"Unrecognized depth condition value '{depth_condition}'")

    try:
        depth = int(depth_str)
    except ValueError:
        raise ValueError(
            f"Depth condition '{depth_condition}' must end with an integer"
        ) from None

    match prefix:
        case "eq":
            return lambda distance: distance == depth
        case "gt":
            return lambda distance: distance > depth
        case _:
            return lambda distance: distance < depth
