#!/usr/bin/env python3
"""
Firebase Subscription Bridge - Main Entry Point

Publishes query results to a Firebase Realtime Database node and keeps
the node in sync with later results.

Usage:
    python -m firebase_bridge.main subscribe --target tasks.Task --topic-id t1 --records tasks.json
    python -m firebase_bridge.main keep-up --target tasks.Task --topic-id t1 --records tasks.json
    python -m firebase_bridge.main diff --target tasks.Task --topic-id t1 --records tasks.json
    python -m firebase_bridge.main show --path tasks_Task/0f3a...

Environment Variables Required:
    FIREBASE_DATABASE_URL   - Database URL (e.g., https://my-app.firebaseio.com)

See config/settings.py for all configuration options.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from config.settings import ConfigurationError, Settings, load_settings
from firebase_bridge.client import FirebaseClientError, NodePath, create_rest_client
from firebase_bridge.query import (
    AsyncQueryService,
    Query,
    QueryService,
    RemoteQueryService,
    Subscription,
    Topic,
)
from firebase_bridge.subscription import (
    BridgeConfig,
    SubscriptionBridge,
    compute_diff,
    field_identity,
)

ACTIONS = ("subscribe", "keep-up", "diff", "show")


def setup_logging(verbose: bool = False, level: str = "INFO") -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, enable DEBUG level logging
        level: Level name to use otherwise
    """
    numeric_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)

    # Configure root logger
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Reduce noise from external libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Publish query results to a Firebase Realtime Database node",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m firebase_bridge.main subscribe --target tasks.Task --topic-id t1 --records tasks.json
    python -m firebase_bridge.main keep-up --target tasks.Task --topic-id t1 --records tasks.json
    python -m firebase_bridge.main diff --target tasks.Task --topic-id t1 --records tasks.json
    python -m firebase_bridge.main show --path tasks_Task/0f3a...
        """,
    )

    parser.add_argument(
        "action",
        choices=ACTIONS,
        help="What to do with the subscription node",
    )

    parser.add_argument(
        "--target",
        help="Type of the published records (e.g., tasks.Task)",
    )

    parser.add_argument(
        "--topic-id",
        help="ID of the subscription topic; the same ID always maps to the same node",
    )

    parser.add_argument(
        "--records",
        type=Path,
        help="JSON file with an array of records; defaults to QUERY_BACKEND_URL",
    )

    parser.add_argument(
        "--path",
        help="Node path, for the show action",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )

    parser.add_argument(
        "--env",
        type=Path,
        help="Path to .env file (default: .env in current directory)",
    )

    return parser.parse_args(argv)


def load_records(path: Path) -> list:
    """
    Read records from a JSON file holding an array.

    Raises:
        ValueError: If the file does not hold a JSON array
    """
    with open(path, encoding="utf-8") as f:
        records = json.load(f)
    if not isinstance(records, list):
        raise ValueError(f"{path} must contain a JSON array of records")
    return records


def create_query_service(settings: Settings, records_path: Optional[Path]) -> QueryService:
    """Create a query service reading from a file or from the configured backend."""
    if records_path is not None:
        records = load_records(records_path)
        return AsyncQueryService.local(lambda query: records, max_workers=1)

    if settings.query.backend_url:
        return RemoteQueryService(
            endpoint_url=settings.query.backend_url,
            access_token=settings.query.access_token,
            max_retries=settings.query.max_retries,
        )

    raise ConfigurationError("Either --records or QUERY_BACKEND_URL is required")


def show_node(client, path: NodePath) -> None:
    """
    Display the records stored at a node.

    Args:
        client: Firebase client to read with
        path: Node to display
    """
    logger = logging.getLogger(__name__)

    value = client.get(path)
    if value is None:
        logger.info(f"Node {path} does not exist")
        return

    logger.info("=" * 50)
    logger.info(f"Node {path}: {len(value)} records")
    logger.info("=" * 50)
    for key, data in value.items():
        logger.info(f"{key}: {data}")


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    logger = logging.getLogger(__name__)

    # Load configuration
    try:
        settings = load_settings(env_file=args.env)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        logger.error("Please check your .env file or environment variables")
        return 1

    if not args.verbose:
        logging.getLogger().setLevel(getattr(logging, settings.log_level, logging.INFO))

    client = create_rest_client(
        settings.firebase.database_url,
        auth_token=settings.firebase.auth_token,
        timeout=settings.firebase.timeout,
        max_retries=settings.firebase.max_retries,
    )

    query_service = None
    try:
        if args.action == "show":
            if not args.path:
                logger.error("--path is required for show")
                return 1
            show_node(client, NodePath.from_string(args.path))
            return 0

        if not args.target or not args.topic_id:
            logger.error(f"--target and --topic-id are required for {args.action}")
            return 1

        topic = Topic(id=args.topic_id, target=args.target)
        query_service = create_query_service(settings, args.records)
        identity = (
            field_identity(settings.sync.identity_field)
            if settings.sync.identity_field else None
        )

        if args.action == "diff":
            query = Query.for_topic(topic)
            path = NodePath.allocate_for_query(query)
            response = query_service.execute(query).result()
            existing = client.get(path)
            if existing is None:
                logger.info(f"Node {path} does not exist: {response.count} records to add")
            else:
                diff = compute_diff(existing, response.messages, identity=identity)
                logger.info(f"Diff for {path}: {diff}")
            return 0

        bridge = SubscriptionBridge(BridgeConfig(
            query_service=query_service,
            firebase_client=client,
            identity=identity,
            write_await_seconds=settings.sync.write_await_seconds,
            max_workers=settings.sync.max_workers,
        ))

        with bridge:
            if args.action == "subscribe":
                result = bridge.subscribe(topic)
                logger.info(f"Subscription: {result.subscription.id}")
            else:
                path = NodePath.allocate_for_query(Query.for_topic(topic))
                subscription = Subscription(id=str(path), topic=topic)
                bridge.keep_up(subscription)
                logger.info(f"Updating subscription: {subscription.id}")

        logger.info("Done")
        return 0

    except (ConfigurationError, ValueError, OSError) as e:
        logger.error(f"Error: {e}")
        return 1
    except FirebaseClientError as e:
        logger.error(f"Firebase API error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1
    finally:
        if query_service is not None:
            query_service.close()
        client.close()


if __name__ == "__main__":
    sys.exit(main())
