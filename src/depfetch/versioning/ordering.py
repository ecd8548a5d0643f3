"""Version ordering used for conflict resolution, ranges and latest selection."""

import functools
import re
from typing import Iterable, List, Optional

_SEPARATORS = re.compile(r"[.\-]")


def _segments(version: str) -> List[str]:
    return [part for part in _SEPARATORS.split(version.strip()) if part != ""]


def _numeric_prefix_compare(left: List[str], right: List[str]) -> int:
    """Compare positions where both segments are numeric; others are skipped."""
    for a, b in zip(left, right):
        if a.isdigit() and b.isdigit():
            diff = int(a) - int(b)
            if diff:
                return 1 if diff > 0 else -1
    return 0


def _extra_is_newer(extra: List[str]) -> bool:
    """Trailing segments count only when all numeric and not all zero."""
    return bool(extra) and all(s.isdigit() for s in extra) and any(int(s) for s in extra)


def compare_versions(left: str, right: str) -> int:
    """Compare two version strings.

    Segments are split on ``.`` and ``-``. Corresponding numeric segments are
    compared numerically. When those tie, a longer sequence whose extra
    segments are numeric and non-zero is newer than its prefix. A full tie
    falls back to plain string comparison.

    Returns:
        Negative, zero or positive like ``cmp``.
    """
    if left == right:
        return 0
    a, b = _segments(left), _segments(right)
    result = _numeric_prefix_compare(a, b)
    if result:
        return result
    if len(a) > len(b) and _extra_is_newer(a[len(b):]):
        return 1
    if len(b) > len(a) and _extra_is_newer(b[len(a):]):
        return -1
    return (left > right) - (left < right)


version_key = functools.cmp_to_key(compare_versions)


def is_newer_or_equal(candidate: str, current: str) -> bool:
    """Return True when ``candidate`` orders at or above ``current``."""
    return compare_versions(candidate, current) >= 0


def max_version(versions: Iterable[str]) -> Optional[str]:
    """Return the highest version, or None for an empty input."""
    items = [v for v in versions if v]
    if not items:
        return None
    return max(items, key=version_key)


def sort_versions(versions: Iterable[str], reverse: bool = False) -> List[str]:
    """Return ``versions`` sorted by ``compare_versions``."""
    return sorted(versions, key=version_key, reverse=reverse)
