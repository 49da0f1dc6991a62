"""Firebase Realtime Database client module."""

from .client import FirebaseClient
from .factory import create_rest_client
from .node import NULL_MARKER, DatabaseUrl, MalformedNodeValueError, NodePath, NodeValue
from .rest import FirebaseClientError, FirebaseRestClient

__all__ = [
    "FirebaseClient",
    "FirebaseClientError",
    "FirebaseRestClient",
    "create_rest_client",
    "DatabaseUrl",
    "MalformedNodeValueError",
    "NodePath",
    "NodeValue",
    "NULL_MARKER",
]
