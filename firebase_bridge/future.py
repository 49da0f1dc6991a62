"""
Fire-and-forget task dispatch with bounded waits.

Synchronization passes run on a worker pool away from the caller.
Every failure inside a pass is logged and contained; nothing is
ever raised back to the code that dispatched the pass.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_all
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


def await_quietly(
    future: Future,
    timeout: Optional[float],
    description: str,
    log: Optional[logging.Logger] = None,
) -> bool:
    """
    Wait for a future for at most `timeout` seconds and log the outcome.

    Never raises: a timeout or a failure of the awaited task is logged.

    Args:
        future: Future to wait for
        timeout: Maximum seconds to wait; None waits indefinitely
        description: Human-readable description for logging
        log: Logger to report to, defaults to this module's logger

    Returns:
        True if the task completed successfully in time
    """
    log = log or logger
    try:
        future.result(timeout=timeout)
        return True
    except FutureTimeoutError:
        log.error(f"Timed out after {timeout}s waiting to {description}")
    except Exception as e:
        log.error(f"Failed to {description}: {e}", exc_info=True)
    return False


class Dispatcher:
    """
    Runs synchronization passes and their writes on worker pools.

    Passes and writes use separate pools, so a pass waiting on
    its own write never starves the pool the write needs.

    Usage:
        with Dispatcher(write_await_seconds=30) as dispatcher:
            dispatcher.dispatch(record.flush, description="publish tasks")
    """

    def __init__(
        self,
        max_workers: int = 4,
        write_await_seconds: float = 60.0,
        log: Optional[logging.Logger] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            max_workers: Worker threads in each pool
            write_await_seconds: Bounded wait for a single write
            log: Logger for contained failures
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {max_workers}")
        if write_await_seconds <= 0:
            raise ValueError(
                f"write_await_seconds must be positive, got {write_await_seconds}"
            )
        self.write_await_seconds = write_await_seconds
        self._log = log or logger
        self._passes = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="firebase-sync",
        )
        self._writes = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="firebase-write",
        )
        self._deferred: set[Future] = set()
        self._deferred_lock = threading.Lock()

    def dispatch(self, fn: Callable[..., Any], *args, description: str = "run task") -> Future:
        """
        Run `fn(*args)` on the pass pool.

        The returned future never fails: on error it resolves to False
        and the error is logged.
        """
        return self._passes.submit(self._contain, fn, args, description)

    def dispatch_after(
        self,
        prerequisite: Future,
        fn: Callable[..., Any],
        *args,
        description: str = "run task",
    ) -> Future:
        """
        Run `fn(*args)` on the pass pool once `prerequisite` is done.

        No worker is held while the prerequisite is pending, so a
        computation that never completes stalls only its own pass.
        The returned future never fails, like the one of dispatch().
        """
        deferred = Future()
        with self._deferred_lock:
            self._deferred.add(deferred)
        deferred.add_done_callback(self._forget)

        def schedule(_: Future) -> None:
            try:
                submitted = self.dispatch(fn, *args, description=description)
            except RuntimeError as e:
                self._log.error(f"Failed to {description}: {e}")
                deferred.set_result(False)
                return
            submitted.add_done_callback(lambda done: deferred.set_result(done.result()))

        prerequisite.add_done_callback(schedule)
        return deferred

    def _forget(self, deferred: Future) -> None:
        with self._deferred_lock:
            self._deferred.discard(deferred)

    def _contain(self, fn: Callable[..., Any], args: tuple, description: str) -> Any:
        try:
            return fn(*args)
        except Exception as e:
            self._log.error(f"Failed to {description}: {e}", exc_info=True)
            return False

    def write(self, fn: Callable[..., Any], *args, description: str = "write") -> bool:
        """
        Run a write on the write pool and wait for it, bounded.

        Returns:
            True if the write completed successfully in time
        """
        future = self._writes.submit(fn, *args)
        return await_quietly(future, self.write_await_seconds, description, self._log)

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop accepting work; optionally wait for passes, then writes.

        Waiting includes deferred passes whose prerequisite is still
        pending.
        """
        if wait:
            with self._deferred_lock:
                deferred = list(self._deferred)
            wait_all(deferred)
        self._passes.shutdown(wait=wait)
        self._writes.shutdown(wait=wait)

    def __enter__(self) -> "Dispatcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)
