"""
Firebase Realtime Database REST client.

Nodes are addressed as `{database_url}/{path}.json`.
The auth token is passed via configuration and never logged.
"""

import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .client import FirebaseClient
from .node import NULL_MARKER, DatabaseUrl, MalformedNodeValueError, NodePath, NodeValue

logger = logging.getLogger(__name__)


class FirebaseClientError(Exception):
    """Raised when the Firebase REST API returns an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FirebaseRestClient(FirebaseClient):
    """
    Client for the Firebase Realtime Database REST API.

    Handles:
    - Create-or-patch writes (PUT for new nodes, PATCH for existing ones)
    - Mapping of the `null` response to a missing node
    - Retry of idempotent reads on transient failures

    Writes are never retried here: a lost write is repaired by the
    next synchronization pass.

    Usage:
        client = FirebaseRestClient(DatabaseUrl("https://my-app.firebaseio.com"))

        value = client.get(NodePath("tasks/abc"))
        client.merge(NodePath("tasks/abc"), NodeValue({"k1": '{"id":1}'}))
    """

    NODE_URL_FORMAT = "{database_url}/{path}.json"

    def __init__(
        self,
        database_url: DatabaseUrl,
        auth_token: Optional[str] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize Firebase REST client.

        Args:
            database_url: URL of the database
            auth_token: Database secret or ID token (never logged)
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts for transient read failures
            session: Preconfigured session, mainly for tests
        """
        self.database_url = database_url
        self._auth_token = auth_token  # Private, never logged
        self.timeout = timeout

        if session is None:
            session = requests.Session()

            retry_strategy = Retry(
                total=max_retries,
                backoff_factor=1,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["GET"],
            )

            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("https://", adapter)
            session.mount("http://", adapter)

            session.headers.update({
                "Accept": "application/json",
                "Content-Type": "application/json",
            })
        self._session = session

        logger.info(f"Firebase client initialized for {self.database_url}")

    def __repr__(self) -> str:
        """Never expose token in repr."""
        return f"FirebaseRestClient(database_url='{self.database_url}')"

    def _node_url(self, path: NodePath) -> str:
        return self.NODE_URL_FORMAT.format(database_url=self.database_url, path=path)

    def _make_request(
        self,
        method: str,
        path: NodePath,
        data: Optional[str] = None,
    ) -> str:
        """
        Make a request to the node at the given path.

        Args:
            method: HTTP method (GET, PUT, PATCH)
            path: Node path
            data: JSON request body (for PUT/PATCH)

        Returns:
            Raw response body

        Raises:
            FirebaseClientError: If request fails
        """
        url = self._node_url(path)
        params = {"auth": self._auth_token} if self._auth_token else None

        try:
            response = self._session.request(
                method=method,
                url=url,
                data=data.encode("utf-8") if data is not None else None,
                params=params,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.text

        except requests.exceptions.HTTPError as e:
            error_msg = f"Firebase API error: {e}"
            try:
                error_body = e.response.json()
                if isinstance(error_body, dict) and "error" in error_body:
                    error_msg = f"Firebase API error: {error_body['error']}"
            except (ValueError, AttributeError):
                pass

            logger.error(error_msg)
            raise FirebaseClientError(
                error_msg,
                status_code=e.response.status_code if e.response is not None else None,
            ) from e

        except requests.exceptions.RequestException as e:
            error_msg = f"Firebase request failed: {e}"
            logger.error(error_msg)
            raise FirebaseClientError(error_msg) from e

    def get(self, path: NodePath) -> Optional[NodeValue]:
        if path is None:
            raise ValueError("path is required")

        logger.debug(f"Reading node {path}")
        data = self._make_request("GET", path)

        if not data.strip() or data.strip() == NULL_MARKER:
            return None
        return NodeValue.from_json(data)

    def merge(self, path: NodePath, value: NodeValue) -> None:
        if path is None:
            raise ValueError("path is required")
        if value is None:
            raise ValueError("value is required")

        body = value.to_json()
        if self._holds_children(path):
            logger.debug(f"Patching node {path} with {len(value)} children")
            self._make_request("PATCH", path, body)
        else:
            logger.debug(f"Creating node {path} with {len(value)} children")
            self._make_request("PUT", path, body)

    def _holds_children(self, path: NodePath) -> bool:
        """Check whether the node exists and can be patched child by child."""
        try:
            return self.get(path) is not None
        except MalformedNodeValueError:
            logger.warning(f"Node {path} does not hold an object, it will be overwritten")
            return False

    def close(self) -> None:
        """Close HTTP session."""
        self._session.close()
