"""
Query services: the source of truth for published records.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Iterable, Optional

from .models import Query, QueryResponse

logger = logging.getLogger(__name__)


class QueryService(ABC):
    """Executes queries asynchronously."""

    @abstractmethod
    def execute(self, query: Query) -> "Future[QueryResponse]":
        """
        Start executing the query.

        Returns:
            Future of the query response; failures are reported through it
        """

    def close(self) -> None:
        """Release the resources held by the service."""


class AsyncQueryService(QueryService):
    """
    Runs a synchronous query function on a thread pool.

    Usage:
        def read_tasks(query: Query) -> list[dict]:
            return repository.find(query.target)

        service = AsyncQueryService.local(read_tasks)
        future = service.execute(Query.all("tasks.Task"))
    """

    def __init__(
        self,
        read: Callable[[Query], Iterable[Any]],
        max_workers: int = 4,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        if read is None:
            raise ValueError("read function is required")
        self._read = read
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="query",
        )

    @classmethod
    def local(cls, read: Callable[[Query], Iterable[Any]], max_workers: int = 4) -> "AsyncQueryService":
        """Create a service running the given function in this process."""
        return cls(read, max_workers=max_workers)

    def execute(self, query: Query) -> "Future[QueryResponse]":
        if query is None:
            raise ValueError("query is required")
        logger.debug(f"Executing query {query.id} for {query.target}")
        return self._executor.submit(self._run, query)

    def _run(self, query: Query) -> QueryResponse:
        response = QueryResponse.from_records(self._read(query))
        logger.debug(f"Query {query.id} returned {response.count} records")
        return response

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def close(self) -> None:
        self.shutdown(wait=True)

    def __repr__(self) -> str:
        return f"AsyncQueryService.local({getattr(self._read, '__name__', self._read)!r})"
