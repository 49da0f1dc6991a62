"""
Diff detection for subscription records.

Compares the records stored in a database node against the latest
query response to determine what must be written.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..client.node import NodeValue
from .entries import (
    EntriesMatcher,
    Entry,
    ExistingEntry,
    IdentityFunction,
    Operation,
    UpToDateEntry,
)


@dataclass(frozen=True)
class AddedRecord:
    """A record to push under a new key."""
    data: str


@dataclass(frozen=True)
class ChangedRecord:
    """A record to overwrite under its existing key."""
    key: str
    data: str


@dataclass(frozen=True)
class RemovedRecord:
    """A key to tombstone."""
    key: str


@dataclass(frozen=True)
class Diff:
    """
    Changes moving a stored snapshot to the latest query result.

    The order of records within each list carries no meaning.

    Attributes:
        added: Records with no stored counterpart
        changed: Stored records whose content differs
        removed: Stored records absent from the result
        unchanged: Number of records already stored as is
    """
    added: tuple[AddedRecord, ...] = field(default_factory=tuple)
    changed: tuple[ChangedRecord, ...] = field(default_factory=tuple)
    removed: tuple[RemovedRecord, ...] = field(default_factory=tuple)
    unchanged: int = 0

    @property
    def is_empty(self) -> bool:
        """Check if nothing needs to be written."""
        return not (self.added or self.changed or self.removed)

    def __str__(self) -> str:
        return (
            f"{len(self.added)} added, {len(self.changed)} changed, "
            f"{len(self.removed)} removed, {self.unchanged} unchanged"
        )


class DiffCalculator:
    """
    Computes diffs against a stored snapshot.

    Records are matched by identity when an identity function is given,
    and by their whole payload otherwise. Without an identity function
    a modified record shows up as one removal plus one addition.

    Usage:
        calculator = DiffCalculator.from_value(stored, identity=field_identity("id"))
        diff = calculator.compare_with(['{"id":1,"v":"b"}'])
    """

    def __init__(
        self,
        existing: Sequence[ExistingEntry],
        identity: Optional[IdentityFunction] = None,
    ):
        self._existing = list(existing)
        self._identity = identity

    @classmethod
    def from_value(
        cls,
        value: NodeValue,
        identity: Optional[IdentityFunction] = None,
    ) -> "DiffCalculator":
        """Create a calculator for the records stored in a node."""
        if value is None:
            raise ValueError("value is required")
        existing = [ExistingEntry(key=key, value=data) for key, data in value.items()]
        return cls(existing, identity=identity)

    def compare_with(self, new_entries: Sequence[str]) -> Diff:
        """
        Compute the diff between the stored records and new ones.

        Args:
            new_entries: Serialized records of the latest query response

        Returns:
            Diff in which every stored key and every new record is
            accounted for exactly once
        """
        if new_entries is None:
            raise ValueError("new_entries is required")

        matcher = EntriesMatcher(self._existing, identity=self._identity)
        entries = matcher.match(UpToDateEntry(value) for value in new_entries)
        return Diff(
            added=tuple(_added(entries)),
            changed=tuple(_changed(entries)),
            removed=tuple(_removed(entries)),
            unchanged=sum(1 for entry in entries if entry.operation is Operation.PASS),
        )


def compute_diff(
    existing: NodeValue,
    new_entries: Sequence[str],
    identity: Optional[IdentityFunction] = None,
) -> Diff:
    """Compare the records stored in a node against new records."""
    return DiffCalculator.from_value(existing, identity=identity).compare_with(new_entries)


def _added(entries: list[Entry]):
    return (AddedRecord(e.data) for e in entries if e.operation is Operation.ADD)


def _changed(entries: list[Entry]):
    return (ChangedRecord(e.key, e.data) for e in entries if e.operation is Operation.CHANGE)


def _removed(entries: list[Entry]):
    return (RemovedRecord(e.key) for e in entries if e.operation is Operation.REMOVE)
