"""
Query service backed by a remote query endpoint.

Queries are POSTed as JSON; the endpoint answers with
`{"messages": [...]}` where each message is a record.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .models import Query, QueryResponse
from .service import QueryService

logger = logging.getLogger(__name__)


class QueryServiceError(Exception):
    """Raised when the query backend returns an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteQueryService(QueryService):
    """
    Client of a query backend reachable over HTTP.

    Requests run on a thread pool, so execute() never blocks.
    Reads are side-effect free on the backend, so POST is retried
    on transient failures.
    """

    def __init__(
        self,
        endpoint_url: str,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        max_workers: int = 4,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize remote query service.

        Args:
            endpoint_url: URL accepting queries
            access_token: Bearer token for the backend (never logged)
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts for transient failures
            max_workers: Concurrent requests in flight
            session: Preconfigured session, mainly for tests
        """
        if not endpoint_url:
            raise ValueError("endpoint_url is required")
        self.endpoint_url = endpoint_url
        self.timeout = timeout

        if session is None:
            session = requests.Session()

            retry_strategy = Retry(
                total=max_retries,
                backoff_factor=1,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["POST"],
            )

            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("https://", adapter)
            session.mount("http://", adapter)

            session.headers.update({
                "Accept": "application/json",
                "Content-Type": "application/json",
            })
            if access_token:
                session.headers["Authorization"] = f"Bearer {access_token}"
        self._session = session

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="remote-query",
        )

        logger.info(f"Remote query service initialized for {self.endpoint_url}")

    def __repr__(self) -> str:
        return f"RemoteQueryService(endpoint_url='{self.endpoint_url}')"

    def execute(self, query: Query) -> "Future[QueryResponse]":
        if query is None:
            raise ValueError("query is required")
        logger.debug(f"Sending query {query.id} for {query.target} to {self.endpoint_url}")
        return self._executor.submit(self._read, query)

    def _read(self, query: Query) -> QueryResponse:
        try:
            response = self._session.post(
                self.endpoint_url,
                json=query.to_dict(),
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()

        except requests.exceptions.HTTPError as e:
            error_msg = f"Query backend error: {e}"
            logger.error(error_msg)
            raise QueryServiceError(
                error_msg,
                status_code=e.response.status_code if e.response is not None else None,
            ) from e

        except requests.exceptions.RequestException as e:
            error_msg = f"Query request failed: {e}"
            logger.error(error_msg)
            raise QueryServiceError(error_msg) from e

        except ValueError as e:
            raise QueryServiceError(f"Query backend returned invalid JSON: {e}") from e

        if not isinstance(body, dict):
            raise QueryServiceError("Query backend response must be a JSON object")
        return QueryResponse.from_api_response(body)

    def close(self) -> None:
        """Stop the worker pool and close HTTP session."""
        self._executor.shutdown(wait=True)
        self._session.close()
