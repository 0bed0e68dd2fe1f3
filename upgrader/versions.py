"""
Version string ordering for model versions.

Model versions are dotted strings like "1.0", "1.2", "1.10". Numeric
components compare numerically, so "1.10" orders after "1.9". Trailing
zero components are insignificant ("1" == "1.0").
"""

import re
from typing import Iterable

DEFAULT_VERSION = "1.0"

_COMPONENT = re.compile(r"(\d+)|(\D+)")


def version_key(version: str) -> tuple:
    """
    Build a sort key for a version string.

    Numeric components become (0, int) and anything else (1, str) so mixed
    versions like "2.0-beta" still order deterministically.

    Raises:
        ValueError: If the version is empty
    """
    if not version or not version.strip():
        raise ValueError("Version must be a non-empty string")

    parts: list[tuple] = []
    for segment in version.strip().split("."):
        for number, text in _COMPONENT.findall(segment):
            if number:
                parts.append((0, int(number)))
            else:
                parts.append((1, text))

    while parts and parts[-1] == (0, 0):
        parts.pop()
    return tuple(parts)


def compare_versions(left: str, right: str) -> int:
    """Return -1, 0 or 1 as left orders before, equal to or after right."""
    a, b = version_key(left), version_key(right)
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def max_version(versions: Iterable[str]) -> str:
    """Highest version in the iterable, DEFAULT_VERSION if it is empty."""
    return max(versions, key=version_key, default=DEFAULT_VERSION)
