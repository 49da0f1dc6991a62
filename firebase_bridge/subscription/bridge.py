"""
Subscription bridge between a query service and a Firebase database.

Subscribers never talk to the source of truth. They watch a database
node, and the bridge keeps the node in sync with the latest result of
the subscribed topic's query.
"""

import logging
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Optional

from ..client.client import FirebaseClient
from ..client.node import NodePath
from ..future import Dispatcher
from ..query.models import Query, Subscription, Topic
from ..query.service import QueryService
from ..results import CancelResult, KeepUpResult, SubscribeResult
from .entries import IdentityFunction
from .record import SubscriptionRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BridgeConfig:
    """
    Collaborators and settings of a bridge.

    Attributes:
        query_service: Source of subscription records
        firebase_client: Database the records are published to
        identity: Extracts record identity for diffing; None compares whole payloads
        write_await_seconds: Bounded wait for a single database write
        max_workers: Worker threads for passes and for writes
        dispatcher: Preconfigured dispatcher; overrides the two settings above
    """
    query_service: QueryService
    firebase_client: FirebaseClient
    identity: Optional[IdentityFunction] = None
    write_await_seconds: float = 60.0
    max_workers: int = 4
    dispatcher: Optional[Dispatcher] = None

    def __post_init__(self):
        if self.query_service is None:
            raise ValueError("Query service is not set to the subscription bridge")
        if self.firebase_client is None:
            raise ValueError("Firebase client is not set to the subscription bridge")
        if self.write_await_seconds <= 0:
            raise ValueError(
                f"write_await_seconds must be positive, got {self.write_await_seconds}"
            )
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {self.max_workers}")


class SubscriptionBridge:
    """
    Serves subscriptions by publishing query results to Firebase.

    Lifecycle of a subscription:
    - subscribe: allocate a node and publish the full query result
    - keep_up: publish only what changed since the last publication
    - cancel: acknowledge; published records stay in the database

    None of the operations waits for the database write. Write
    failures are logged and repaired by the next keep_up.

    Usage:
        bridge = SubscriptionBridge(BridgeConfig(
            query_service=AsyncQueryService.local(read_tasks),
            firebase_client=create_rest_client("https://my-app.firebaseio.com"),
            identity=field_identity("id"),
        ))

        subscription = bridge.subscribe(topic).subscription
        bridge.keep_up(subscription)
    """

    def __init__(self, config: BridgeConfig, log: Optional[logging.Logger] = None):
        """
        Initialize subscription bridge.

        Args:
            config: Bridge collaborators and settings
            log: Logger for the bridge and its passes
        """
        if config is None:
            raise ValueError("config is required")
        self._config = config
        self._log = log or logger
        self._dispatcher = config.dispatcher or Dispatcher(
            max_workers=config.max_workers,
            write_await_seconds=config.write_await_seconds,
            log=self._log,
        )

    def subscribe(self, topic: Topic) -> SubscribeResult:
        """
        Subscribe to a topic.

        The returned subscription is valid right away; its records
        appear in the database once the initial publication lands.
        """
        if topic is None:
            raise ValueError("topic is required")

        query = Query.for_topic(topic)
        path = NodePath.allocate_for_query(query)
        record = self._new_record(path, query)
        record.store_as_initial(self._config.firebase_client, self._dispatcher)

        subscription = Subscription(id=str(path), topic=topic)
        self._log.info(f"Subscribed to {topic.target} (topic {topic.id}) at {path}")
        return SubscribeResult(subscription)

    def keep_up(self, subscription: Subscription) -> KeepUpResult:
        """
        Refresh the records of a subscription.

        Safe to call repeatedly: every call reads the node anew
        before computing what to write.
        """
        if subscription is None:
            raise ValueError("subscription is required")

        query = Query.for_topic(subscription.topic)
        path = NodePath.from_string(subscription.id)
        record = self._new_record(path, query)
        record.store_as_update(self._config.firebase_client, self._dispatcher)

        self._log.debug(f"Scheduled update of subscription {subscription.id}")
        return KeepUpResult()

    def cancel(self, subscription: Subscription) -> CancelResult:
        """
        Cancel a subscription.

        Records already published are left in place.
        """
        if subscription is None:
            raise ValueError("subscription is required")

        self._log.info(f"Cancelled subscription {subscription.id}")
        return CancelResult()

    def _new_record(self, path: NodePath, query: Query) -> SubscriptionRecord:
        try:
            query_response = self._config.query_service.execute(query)
        except Exception as e:
            # The pass reports the failure; the caller must not see it.
            query_response = Future()
            query_response.set_exception(e)
        return SubscriptionRecord(
            path,
            query_response,
            identity=self._config.identity,
            log=self._log,
        )

    def shutdown(self, wait: bool = True) -> None:
        """Stop the bridge; optionally wait for scheduled publications."""
        self._dispatcher.shutdown(wait=wait)

    def __enter__(self) -> "SubscriptionBridge":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)
