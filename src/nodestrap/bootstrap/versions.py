"""Ordered comparison of dot-separated numeric version strings."""

from __future__ import annotations

from enum import IntEnum
from itertools import zip_longest
from typing import Tuple

from nodestrap.core.logging import get_logger

LOGGER = get_logger(__name__)

# Characters that only express a range ("^1.2", ">=1.2", "~1.2") and are
# irrelevant to a plain ordered comparison
RANGE_PREFIX_CHARS = "^~<>= "


class MalformedVersion(ValueError):
    """The string is not a dot-separated sequence of numbers."""

    def __init__(self, version: str):
        super().__init__(f"Malformed version string: {version!r}")
        self.version = version


class Ordering(IntEnum):
    """Result of comparing two versions."""

    LESS = -1
    EQUAL = 0
    GREATER = 1


def parse_version(version: str) -> Tuple[int, ...]:
    """Parse ``"1.2.3"`` into ``(1, 2, 3)``.

    Raises:
        MalformedVersion: If any component is not a non-negative integer.
    """
    text = version.strip()
    if not text:
        raise MalformedVersion(version)

    parts = text.split(".")
    if not all(part.isdigit() and part.isascii() for part in parts):
        raise MalformedVersion(version)
    return tuple(int(part) for part in parts)


def compare(a: str, b: str) -> Ordering:
    """Compare two versions component by component.

    Missing trailing components count as zero, so ``"2.0"`` equals
    ``"2.0.0"``.

    Raises:
        MalformedVersion: If either version cannot be parsed.
    """
    left = parse_version(a)
    right = parse_version(b)

    for x, y in zip_longest(left, right, fillvalue=0):
        if x < y:
            return Ordering.LESS
        if x > y:
            return Ordering.GREATER
    return Ordering.EQUAL


def meets_floor(version: str, floor: str) -> bool:
    """True when ``version`` is at least ``floor``.

    A version that cannot be compared never meets the floor.
    """
    try:
        return compare(version, floor) != Ordering.LESS
    except MalformedVersion as e:
        LOGGER.warning(f"Cannot compare runtime versions: {e}")
        return False


def normalize_version(raw: str) -> str:
    """Normalize version output such as ``"v14.2.0\\n"`` to ``"14.2.0"``."""
    text = raw.strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    return text


def strip_range_prefix(spec: str) -> str:
    """Drop range operators so ``"^1.4.0"`` and ``">=1.4.0"`` compare as ``"1.4.0"``."""
    return normalize_version(spec.strip().lstrip(RANGE_PREFIX_CHARS))
