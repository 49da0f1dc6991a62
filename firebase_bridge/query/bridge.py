"""
Query bridge: one-shot publication of a query result.

The client gets a database path and the number of records to expect
there, and then reads the records from Firebase as they arrive.
"""

import logging
from concurrent.futures import Future
from typing import Optional

from ..client.client import FirebaseClient
from ..client.node import NodePath, NodeValue
from ..future import Dispatcher, await_quietly
from ..results import QueryResult
from .models import Query, QueryResponse
from .service import QueryService

logger = logging.getLogger(__name__)


class QueryRecord:
    """
    Publishes the response to a single query.

    Non-transactional mode writes one record per request, which suits
    large results: readers see records as soon as each lands.
    Transactional mode writes all records in a single request.
    """

    def __init__(
        self,
        query: Query,
        query_response: "Future[QueryResponse]",
        log: Optional[logging.Logger] = None,
    ):
        self.path = NodePath.allocate_for_query(query)
        self._query_response = query_response
        self._log = log or logger

    def store(self, client: FirebaseClient, dispatcher: Dispatcher, transactional: bool = False) -> Future:
        flush = self._flush_transactionally if transactional else self._flush
        return dispatcher.dispatch_after(
            self._query_response,
            flush,
            client,
            dispatcher,
            description=f"publish query records to {self.path}",
        )

    def count(self, timeout: float) -> int:
        """
        Wait for the query response and return the number of records.

        Returns:
            Record count, or 0 if the response failed or timed out (logged)
        """
        if not await_quietly(
            self._query_response, timeout, f"count records for {self.path}", self._log
        ):
            return 0
        return self._query_response.result().count

    def _flush(self, client: FirebaseClient, dispatcher: Dispatcher) -> bool:
        response = self._query_response.result()
        written = 0
        for data in response.messages:
            value = NodeValue.empty()
            value.add_child(data)
            if dispatcher.write(client.merge, self.path, value, description=f"write record to {self.path}"):
                written += 1
        self._log.debug(f"Wrote {written}/{response.count} records to {self.path}")
        return written == response.count

    def _flush_transactionally(self, client: FirebaseClient, dispatcher: Dispatcher) -> Optional[bool]:
        response = self._query_response.result()
        if not response.messages:
            return None
        value = NodeValue.empty()
        for data in response.messages:
            value.add_child(data)
        return dispatcher.write(
            client.merge,
            self.path,
            value,
            description=f"write {response.count} records to {self.path}",
        )


class QueryBridge:
    """
    Answers queries by publishing their results to Firebase.

    Usage:
        bridge = QueryBridge(query_service, firebase_client)
        result = bridge.send(Query.all("tasks.Task"))
        print(result.path, result.count)
    """

    def __init__(
        self,
        query_service: QueryService,
        firebase_client: FirebaseClient,
        dispatcher: Optional[Dispatcher] = None,
        write_await_seconds: float = 60.0,
        log: Optional[logging.Logger] = None,
    ):
        if query_service is None:
            raise ValueError("Query service is not set to the query bridge")
        if firebase_client is None:
            raise ValueError("Firebase client is not set to the query bridge")
        self._query_service = query_service
        self._firebase_client = firebase_client
        self._log = log or logger
        self._dispatcher = dispatcher or Dispatcher(
            write_await_seconds=write_await_seconds,
            log=self._log,
        )

    def send(self, query: Query, transactional: bool = False) -> QueryResult:
        """
        Execute a query and publish its records.

        Blocks until the query response is available (bounded by the
        write wait) to report the record count; the writes themselves
        happen in the background.
        """
        if query is None:
            raise ValueError("query is required")

        record = QueryRecord(query, self._query_service.execute(query), log=self._log)
        record.store(self._firebase_client, self._dispatcher, transactional=transactional)
        count = record.count(self._dispatcher.write_await_seconds)

        self._log.info(f"Query {query.id} for {query.target}: {count} records at {record.path}")
        return QueryResult(path=record.path, count=count)

    def shutdown(self, wait: bool = True) -> None:
        self._dispatcher.shutdown(wait=wait)
