"""Total order over permission grades."""

from enum import Enum

from taskgrid.models.enums import Permission


class Ordering(str, Enum):
    """Result of comparing two grades."""

    LOWER = "LOWER"
    EQUAL = "EQUAL"
    HIGHER = "HIGHER"


def compare(a: Permission, b: Permission) -> Ordering:
    """Compare grade ``a`` against grade ``b``."""
    if a.rank < b.rank:
        return Ordering.LOWER
    if a.rank > b.rank:
        return Ordering.HIGHER
    return Ordering.EQUAL


def highest(*grades: Permission | None) -> Permission | None:
    """Return the highest of the given grades, ignoring ``None``.

    Returns ``None`` when no grade is given, which callers treat as
    "no access".
    """
    result: Permission | None = None
    for grade in grades:
        if grade is None:
            continue
        if result is None or compare(grade, result) is Ordering.HIGHER:
            result = grade
    return result


def satisfies(granted: Permission | None, required: Permission) -> bool:
    """Check that ``granted`` is at least ``required``."""
    return granted is not None and compare(granted, required) is not Ordering.LOWER
