"""
Subscription entries: records taking part in a diff.

Existing entries come from the database and have keys. Up-to-date
entries come from a query response and have none yet. Matching them
classifies every record as added, changed, removed or unchanged.
"""

import json
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Hashable, Iterable, Optional

# Extracts the identity of a serialized record.
# Records with equal identities describe the same logical entity.
IdentityFunction = Callable[[str], Optional[Hashable]]


class Operation(Enum):
    """Outcome of matching a record against the stored snapshot."""

    # Record is new - push it
    ADD = auto()

    # Record exists with different content - overwrite under its key
    CHANGE = auto()

    # Record is gone from the result - tombstone its key
    REMOVE = auto()

    # Record is stored as is - nothing to write
    PASS = auto()


@dataclass(frozen=True)
class ExistingEntry:
    """A record currently stored under a key."""
    key: str
    value: str


@dataclass(frozen=True)
class UpToDateEntry:
    """A record from the latest query response."""
    value: str


@dataclass(frozen=True)
class Entry:
    """
    Classified record.

    Attributes:
        operation: What must be done with the record
        key: Stored key, None for added records
        data: New serialized record, None for removed and unchanged records
    """
    operation: Operation
    key: Optional[str] = None
    data: Optional[str] = None

    @classmethod
    def add(cls, data: str) -> "Entry":
        return cls(Operation.ADD, data=data)

    @classmethod
    def change(cls, key: str, data: str) -> "Entry":
        return cls(Operation.CHANGE, key=key, data=data)

    @classmethod
    def remove(cls, key: str) -> "Entry":
        return cls(Operation.REMOVE, key=key)

    @classmethod
    def unchanged(cls, key: str) -> "Entry":
        return cls(Operation.PASS, key=key)


def field_identity(field_name: str) -> IdentityFunction:
    """
    Build an identity function reading a top-level field of a JSON record.

    Records that are not JSON objects, or lack the field, have no
    identity and are matched by their whole payload instead.
    """
    if not field_name:
        raise ValueError("field_name must not be empty")

    def identity(value: str) -> Optional[Hashable]:
        try:
            record = json.loads(value)
        except ValueError:
            return None
        if not isinstance(record, dict) or field_name not in record:
            return None
        # Nested values are compared in their canonical JSON form.
        return json.dumps(record[field_name], sort_keys=True, separators=(",", ":"))

    identity.__name__ = f"field_identity({field_name!r})"
    return identity


def _index_of_identical(candidates: list[ExistingEntry], value: str) -> int:
    for i, candidate in enumerate(candidates):
        if candidate.value == value:
            return i
    return 0


class EntriesMatcher:
    """
    Matches up-to-date entries against existing ones.

    Each existing entry matches at most one up-to-date entry. When
    several existing entries share an identity, an identical one is
    preferred, then they are consumed in the order they were stored.
    """

    def __init__(
        self,
        existing: Iterable[ExistingEntry],
        identity: Optional[IdentityFunction] = None,
    ):
        self._existing = list(existing)
        self._identity = identity

    def _identity_of(self, value: str) -> tuple:
        if self._identity is not None:
            extracted = self._identity(value)
            if extracted is not None:
                return ("identity", extracted)
        return ("payload", value)

    def match(self, entries: Iterable[UpToDateEntry]) -> list[Entry]:
        """
        Classify all records.

        Returns:
            One entry per up-to-date record, followed by one REMOVE
            entry per existing record left unmatched
        """
        unmatched: dict[tuple, list[ExistingEntry]] = {}
        for existing in self._existing:
            unmatched.setdefault(self._identity_of(existing.value), []).append(existing)

        result = []
        for entry in entries:
            candidates = unmatched.get(self._identity_of(entry.value))
            if not candidates:
                result.append(Entry.add(entry.value))
                continue

            existing = candidates.pop(_index_of_identical(candidates, entry.value))
            if existing.value == entry.value:
                result.append(Entry.unchanged(existing.key))
            else:
                result.append(Entry.change(existing.key, entry.value))

        for leftovers in unmatched.values():
            result.extend(Entry.remove(existing.key) for existing in leftovers)

        return result
