"""
Change detection between two config maps.
"""

from typing import Any, Mapping

_MISSING = object()


def values_differ(old: Any, new: Any) -> bool:
    """
    Strict inequality of two config values.

    A missing side always differs from a present one, and a bool never
    equals a number (True vs 1). Equal numbers of different types
    (1 vs 1.0) are the same value.
    """
    if old is _MISSING or new is _MISSING:
        return old is not new
    if isinstance(old, bool) != isinstance(new, bool):
        return True
    return old != new


def compute_change_batch(old: Mapping[str, Any], new: Mapping[str, Any]) -> frozenset[str]:
    """
    Keys present in either map whose values differ between them.

    The result is unordered by contract.
    """
    keys = set(old) | set(new)
    return frozenset(
        key for key in keys
        if values_differ(old.get(key, _MISSING), new.get(key, _MISSING))
    )
