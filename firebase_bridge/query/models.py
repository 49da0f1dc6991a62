"""
Query data models.

Topics describe what a client subscribes to. Queries are single
executions against the source of truth, each with its own id.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..client.node import NULL_MARKER, to_compact_json

logger = logging.getLogger(__name__)


def generate_query_id() -> str:
    """Generate a new unique query id."""
    return f"q-{uuid.uuid4().hex}"


@dataclass(frozen=True)
class Topic:
    """
    Represents the target of a subscription.

    Attributes:
        id: Unique topic ID chosen by the subscriber
        target: Type of the queried records (e.g., "tasks.Task")
        field_mask: Record fields to include; empty means all
        context: Opaque request context passed to the query backend
    """
    id: str
    target: str
    field_mask: tuple[str, ...] = ()
    context: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self):
        if not self.id:
            raise ValueError("Topic ID must not be empty")
        if not self.target:
            raise ValueError("Topic target must not be empty")
        object.__setattr__(self, "field_mask", tuple(self.field_mask))

    @classmethod
    def from_dict(cls, data: dict) -> "Topic":
        """Create Topic from its JSON form."""
        return cls(
            id=str(data["id"]),
            target=data["target"],
            field_mask=tuple(data.get("field_mask", ())),
            context=dict(data.get("context") or {}),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "target": self.target,
            "field_mask": list(self.field_mask),
            "context": dict(self.context),
        }


@dataclass(frozen=True)
class Query:
    """
    A single request for records from the source of truth.

    Attributes:
        id: Unique query ID, fresh for every execution
        target: Type of the queried records
        field_mask: Record fields to include; empty means all
        context: Opaque request context
        topic_id: ID of the topic this query was created for, if any
    """
    id: str
    target: str
    field_mask: tuple[str, ...] = ()
    context: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    topic_id: Optional[str] = None

    @classmethod
    def for_topic(cls, topic: Topic) -> "Query":
        """Create a new query reading the records of the given topic."""
        return cls(
            id=generate_query_id(),
            target=topic.target,
            field_mask=topic.field_mask,
            context=dict(topic.context),
            topic_id=topic.id,
        )

    @classmethod
    def all(cls, target: str) -> "Query":
        """Create a query for all records of the target type."""
        return cls(id=generate_query_id(), target=target)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "target": self.target,
            "field_mask": list(self.field_mask),
            "context": dict(self.context),
        }


@dataclass(frozen=True)
class QueryResponse:
    """
    Result of a query execution.

    Records are kept in their serialized (compact JSON) form, the same
    form in which they are written to the database. Their order carries
    no meaning.
    """
    messages: tuple[str, ...] = ()

    @classmethod
    def from_records(cls, records: Iterable[Any]) -> "QueryResponse":
        """
        Create response from records; non-string records are serialized.

        Null records are skipped: stored as `null` they would read
        as deleted children.
        """
        messages = []
        skipped = 0
        for record in records:
            message = record if isinstance(record, str) else to_compact_json(record)
            if message == NULL_MARKER:
                skipped += 1
                continue
            messages.append(message)
        if skipped:
            logger.warning(f"Skipped {skipped} null records of a query response")
        return cls(messages=tuple(messages))

    @classmethod
    def from_api_response(cls, data: dict) -> "QueryResponse":
        """Create QueryResponse from a query backend response."""
        return cls.from_records(data.get("messages", []))

    @property
    def count(self) -> int:
        return len(self.messages)


@dataclass(frozen=True)
class Subscription:
    """
    A client's subscription to a topic.

    The ID is the string form of the database path holding the
    subscription's records.
    """
    id: str
    topic: Topic

    def to_dict(self) -> dict:
        return {"id": self.id, "topic": self.topic.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> "Subscription":
        return cls(id=data["id"], topic=Topic.from_dict(data["topic"]))
