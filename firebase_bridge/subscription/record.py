"""
Subscription record: one synchronization pass of a query result.

A record waits for its query response and publishes it to a single
database node, either as a whole or as a diff against what the node
already holds.
"""

import logging
from concurrent.futures import Future
from typing import Optional

from ..client.client import FirebaseClient
from ..client.node import NULL_MARKER, MalformedNodeValueError, NodePath, NodeValue
from ..future import Dispatcher
from ..query.models import QueryResponse
from .diff import Diff, DiffCalculator
from .entries import IdentityFunction

logger = logging.getLogger(__name__)


class SubscriptionRecord:
    """
    Publishes one query response to one database node.

    Both store operations return immediately. The pass is queued only
    once the query response is available, so a pending query holds no
    worker. The returned future resolves to:
    - True when the write completed in time
    - False when the pass failed or the write timed out (already logged)
    - None when there was nothing to write

    Usage:
        record = SubscriptionRecord(path, query_service.execute(query))
        record.store_as_update(firebase_client, dispatcher)
    """

    def __init__(
        self,
        path: NodePath,
        query_response: "Future[QueryResponse]",
        identity: Optional[IdentityFunction] = None,
        log: Optional[logging.Logger] = None,
    ):
        """
        Initialize subscription record.

        Args:
            path: Node to publish to
            query_response: Pending response of the query
            identity: Extracts record identity for diffing
            log: Logger for this record's passes
        """
        if path is None:
            raise ValueError("path is required")
        if query_response is None:
            raise ValueError("query_response is required")
        self.path = path
        self._query_response = query_response
        self._identity = identity
        self._log = log or logger

    def store_as_initial(self, client: FirebaseClient, dispatcher: Dispatcher) -> Future:
        """
        Write all records as new children without reading the node.
        """
        return dispatcher.dispatch_after(
            self._query_response,
            self._flush_new,
            client,
            dispatcher,
            description=f"publish initial records to {self.path}",
        )

    def store_as_update(self, client: FirebaseClient, dispatcher: Dispatcher) -> Future:
        """
        Write only what differs from the records stored at the node.

        A missing or unreadable node is published from scratch.
        """
        return dispatcher.dispatch_after(
            self._query_response,
            self._flush_diff,
            client,
            dispatcher,
            description=f"publish record updates to {self.path}",
        )

    def _await_entries(self) -> list[str]:
        response = self._query_response.result()
        self._log.debug(f"Query response for {self.path}: {response.count} records")
        return list(response.messages)

    def _flush_new(self, client: FirebaseClient, dispatcher: Dispatcher) -> Optional[bool]:
        new_entries = self._await_entries()
        return self._write(client, dispatcher, _pushed(new_entries))

    def _flush_diff(self, client: FirebaseClient, dispatcher: Dispatcher) -> Optional[bool]:
        new_entries = self._await_entries()

        try:
            existing = client.get(self.path)
        except MalformedNodeValueError as e:
            self._log.warning(f"Ignoring unreadable data at {self.path}: {e}")
            existing = None

        if existing is None:
            self._log.debug(f"Nothing stored at {self.path}, publishing all records")
            return self._write(client, dispatcher, _pushed(new_entries))

        diff = DiffCalculator.from_value(existing, identity=self._identity).compare_with(new_entries)
        if not diff.is_empty:
            self._log.info(f"Changes detected for {self.path}: {diff}")
        return self._write(client, dispatcher, _patch(diff))

    def _write(self, client: FirebaseClient, dispatcher: Dispatcher, value: NodeValue) -> Optional[bool]:
        if not value:
            self._log.debug(f"No changes for {self.path}")
            return None

        return dispatcher.write(
            client.merge,
            self.path,
            value,
            description=f"write {len(value)} children to {self.path}",
        )


def _pushed(entries: list[str]) -> NodeValue:
    value = NodeValue.empty()
    for data in entries:
        value.add_child(data)
    return value


def _patch(diff: Diff) -> NodeValue:
    """
    Build the minimal update for a diff.

    Changed records keep their keys, removed keys get tombstoned,
    added records are pushed under new keys.
    """
    value = NodeValue.empty()
    for record in diff.changed:
        value.add_child(record.data, key=record.key)
    for record in diff.removed:
        value.add_child(NULL_MARKER, key=record.key)
    for record in diff.added:
        value.add_child(record.data)
    return value
