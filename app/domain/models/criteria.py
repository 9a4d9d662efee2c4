"""Rule criteria: one dimension is either a wildcard or an exact value set."""

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

WILDCARD = "*"

ZIP_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")
STATE_PATTERN = re.compile(r"^[A-Za-z]{2}$")


@dataclass(frozen=True)
class Wildcard:
    """Matches any value, including a missing one."""

    def matches(self, value: str | None) -> bool:
        return True

    def witness(self, value: str | None) -> str:
        return WILDCARD

    def to_list(self) -> list[str]:
        return [WILDCARD]


@dataclass(frozen=True)
class Exact:
    """Matches values contained in the set. An empty set matches nothing."""

    values: frozenset[str]

    def matches(self, value: str | None) -> bool:
        return value is not None and value in self.values

    def witness(self, value: str | None) -> str | None:
        return value

    def to_list(self) -> list[str]:
        return sorted(self.values)


Criterion = Wildcard | Exact


def normalize_product(value: str | None) -> str | None:
    """Product types compare case-sensitively, only surrounding blanks are dropped."""
    if value is None:
        return None
    return value.strip() or None


def normalize_zip(value: str | None) -> str | None:
    """Reduce a zip or zip+4 to its 5-digit prefix."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    return value.split("-", 1)[0][:5]


def normalize_state(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip().upper() or None


def parse_criterion(
    tokens: Iterable[str] | None,
    normalize: Callable[[str | None], str | None],
) -> Criterion:
    """Build a criterion from stored list tokens.

    Any ``*`` token makes the whole dimension a wildcard; blank tokens are
    ignored, so an empty or all-blank list becomes an ``Exact`` that matches
    nothing.
    """
    values = set()
    for token in tokens or ():
        if token is None:
            continue
        if token.strip() == WILDCARD:
            return Wildcard()
        normalized = normalize(token)
        if normalized:
            values.add(normalized)
    return Exact(frozenset(values))


def split_csv(raw: str) -> list[str]:
    """Split a comma-separated list, trimming entries and dropping blanks."""
    return [part.strip() for part in raw.split(",") if part.strip()]
