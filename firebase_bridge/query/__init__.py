"""Query models and services module."""

from .bridge import QueryBridge
from .models import Query, QueryResponse, Subscription, Topic
from .remote import QueryServiceError, RemoteQueryService
from .service import AsyncQueryService, QueryService

__all__ = [
    "AsyncQueryService",
    "Query",
    "QueryBridge",
    "QueryResponse",
    "QueryService",
    "QueryServiceError",
    "RemoteQueryService",
    "Subscription",
    "Topic",
]
