"""Maven version ordering and version-range matching.

Versions are split into numeric and qualifier items on ``.``, ``-`` and
digit/letter transitions.  Numbers order numerically and sort above any
qualifier.  Known qualifiers order as::

    alpha < beta < milestone < rc < snapshot < (release) < sp

and unknown qualifiers sort after ``sp``, alphabetically.  Trailing zeros
and release markers (``ga``, ``final``) are ignored, so ``1.0`` == ``1``.
"""

from __future__ import annotations

import functools
import re
from itertools import zip_longest
from typing import List, Optional, Sequence, Tuple, Union

_QUALIFIER_ORDER = ["alpha", "beta", "milestone", "rc", "snapshot", "", "sp"]
_RELEASE_RANK = _QUALIFIER_ORDER.index("")
_ALIASES = {
    "a": "alpha",
    "b": "beta",
    "m": "milestone",
    "cr": "rc",
    "ga": "",
    "final": "",
    "release": "",
}

Item = Union[int, str]


def _tokenize(text: str) -> List[Item]:
    items: List[Item] = []
    for part in re.split(r"[.\-_]", text.strip().lower()):
        tokens = re.findall(r"\d+|[a-z]+", part)
        if not tokens:
            items.append(0)
            continue
        for token in tokens:
            items.append(int(token) if token.isdigit() else _ALIASES.get(token, token))
    return items


def _is_null(item: Item) -> bool:
    return item == 0 or item == ""


def _normalize(items: List[Item]) -> Tuple[Item, ...]:
    while items and _is_null(items[-1]):
        items.pop()
    return tuple(items)


def _qualifier_key(qualifier: str) -> Tuple[int, str]:
    if qualifier in _QUALIFIER_ORDER:
        return _QUALIFIER_ORDER.index(qualifier), ""
    return len(_QUALIFIER_ORDER), qualifier


def _compare_items(left: Item, right: Item) -> int:
    if isinstance(left, int) and isinstance(right, int):
        return (left > right) - (left < right)
    if isinstance(left, int):
        return 1
    if isinstance(right, int):
        return -1
    left_key, right_key = _qualifier_key(left), _qualifier_key(right)
    return (left_key > right_key) - (left_key < right_key)


def _compare_to_null(item: Item) -> int:
    """Sign of ``item`` compared with the padding of a shorter version."""
    if isinstance(item, int):
        return 1 if item > 0 else 0
    rank = _qualifier_key(item)[0]
    return (rank > _RELEASE_RANK) - (rank < _RELEASE_RANK)


@functools.total_ordering
class Version:
    """A comparable Maven version string."""

    __slots__ = ("text", "_items")

    def __init__(self, text: str) -> None:
        self.text = text
        self._items = _normalize(_tokenize(text))

    def _compare(self, other: "Version") -> int:
        for left, right in zip_longest(self._items, other._items):
            if left is None:
                result = -_compare_to_null(right)
            elif right is None:
                result = _compare_to_null(left)
            else:
                result = _compare_items(left, right)
            if result:
                return result
        return 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._compare(other) == 0

    def __lt__(self, other: "Version") -> bool:
        return self._compare(other) < 0

    def __hash__(self) -> int:
        return hash(self._items)

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"Version({self.text!r})"


# ===================================================================
# Ranges
# ===================================================================

class Restriction:
    def __init__(
        self,
        lower: Optional[Version],
        lower_inclusive: bool,
        upper: Optional[Version],
        upper_inclusive: bool,
    ) -> None:
        self.lower = lower
        self.lower_inclusive = lower_inclusive
        self.upper = upper
        self.upper_inclusive = upper_inclusive

    def contains(self, version: Version) -> bool:
        if self.lower is not None:
            if version < self.lower or (version == self.lower and not self.lower_inclusive):
                return False
        if self.upper is not None:
            if version > self.upper or (version == self.upper and not self.upper_inclusive):
                return False
        return True


def is_range(spec: str) -> bool:
    spec = spec.strip()
    return spec.startswith("[") or spec.startswith("(")


class VersionRange:
    """A Maven range such as ``[1.0,2.0)``, ``[1.5]`` or ``(,1.0],[1.2,)``."""

    def __init__(self, spec: str, restrictions: Sequence[Restriction]) -> None:
        self.spec = spec
        self.restrictions = list(restrictions)

    @classmethod
    def parse(cls, spec: str) -> "VersionRange":
        text = spec.replace(" ", "")
        groups = re.findall(r"[\[(][^\])]*[\])]", text)
        if not groups or ",".join(groups) != text:
            raise ValueError(f"Malformed version range {spec!r}")
        restrictions = []
        for group in groups:
            lower_inclusive = group[0] == "["
            upper_inclusive = group[-1] == "]"
            bounds = group[1:-1].split(",")
            if len(bounds) == 1:
                if not (lower_inclusive and upper_inclusive) or not bounds[0]:
                    raise ValueError(f"Single version must be surrounded by []: {spec!r}")
                exact = Version(bounds[0])
                restrictions.append(Restriction(exact, True, exact, True))
            elif len(bounds) == 2:
                lower = Version(bounds[0]) if bounds[0] else None
                upper = Version(bounds[1]) if bounds[1] else None
                if lower is not None and upper is not None and upper < lower:
                    raise ValueError(f"Range lower bound exceeds upper bound: {spec!r}")
                restrictions.append(Restriction(lower, lower_inclusive, upper, upper_inclusive))
            else:
                raise ValueError(f"Malformed version range {spec!r}")
        return cls(spec, restrictions)

    @property
    def exact_version(self) -> Optional[str]:
        """The pinned version of a ``[x]`` range, otherwise None."""
        if len(self.restrictions) == 1:
            only = self.restrictions[0]
            if only.lower is not None and only.lower == only.upper:
                return only.lower.text
        return None

    def contains(self, version: Union[str, Version]) -> bool:
        if isinstance(version, str):
            version = Version(version)
        return any(restriction.contains(version) for restriction in self.restrictions)

    def highest_match(self, candidates: Sequence[str]) -> Optional[str]:
        matching = [Version(c) for c in candidates if self.contains(c)]
        return max(matching).text if matching else None

    def __str__(self) -> str:
        return self.spec
