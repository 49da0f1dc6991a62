"""
Results of bridge requests.

Each result can be turned into a plain dict for whatever
transport delivers it to the client.
"""

from dataclasses import dataclass
from enum import Enum

from .client.node import NodePath
from .query.models import Subscription


class Status(Enum):
    """Acknowledgment status of a request."""
    OK = "ok"


@dataclass(frozen=True)
class SubscribeResult:
    """Result of subscribing to a topic."""
    subscription: Subscription

    def to_dict(self) -> dict:
        return {"subscription": self.subscription.to_dict()}


@dataclass(frozen=True)
class KeepUpResult:
    """Result of keeping a subscription up to date."""
    status: Status = Status.OK

    def to_dict(self) -> dict:
        return {"status": self.status.value}


@dataclass(frozen=True)
class CancelResult:
    """Result of cancelling a subscription."""
    status: Status = Status.OK

    def to_dict(self) -> dict:
        return {"status": self.status.value}


@dataclass(frozen=True)
class QueryResult:
    """
    Result of a one-shot query.

    Attributes:
        path: Node the query records are written to
        count: Number of records the client should expect there
    """
    path: NodePath
    count: int

    def to_dict(self) -> dict:
        return {"path": str(self.path), "count": self.count}
