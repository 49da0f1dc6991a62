"""
Creation of Firebase clients from configuration.
"""

from typing import Optional

from .client import FirebaseClient
from .node import DatabaseUrl
from .rest import FirebaseRestClient


def create_rest_client(
    database_url: str,
    auth_token: Optional[str] = None,
    timeout: float = 30.0,
    max_retries: int = 3,
) -> FirebaseClient:
    """
    Create a client operating via the Firebase REST API.

    Args:
        database_url: URL of the database
        auth_token: Optional database secret or ID token
        timeout: Request timeout in seconds
        max_retries: Maximum retry attempts for transient read failures

    Returns:
        Configured FirebaseRestClient

    Raises:
        ValueError: If the database URL is invalid
    """
    if database_url is None:
        raise ValueError("database_url is required")

    url = database_url if isinstance(database_url, DatabaseUrl) else DatabaseUrl(database_url)
    return FirebaseRestClient(
        database_url=url,
        auth_token=auth_token,
        timeout=timeout,
        max_retries=max_retries,
    )
