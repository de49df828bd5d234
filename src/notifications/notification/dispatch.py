"""Best-effort notification dispatch for the ordering core.

``Notifier.send`` dispatches synchronously and swallows delivery failures
(they are logged). ``Notifier.enqueue`` hands the same work to a task runner
and returns immediately: the caller never observes the outcome.

Two runners are provided: ``ThreadPoolRunner`` for the running service and
``InlineRunner``, which executes the task on the calling thread, for tests
and scripts.
"""

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from enum import Enum

import structlog

from notifications.channel import NotificationDispatcher, get_dispatcher

logger = structlog.get_logger(__name__)


class InlineRunner:
    """Runs each task immediately on the calling thread."""

    def submit(self, task: Callable[[], object]) -> None:
        task()

    def shutdown(self, wait: bool = True) -> None:  # noqa: ARG002
        return None


class ThreadPoolRunner:
    """Runs tasks on a small background thread pool."""

    def __init__(self, max_workers: int = 2) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")

    def submit(self, task: Callable[[], object]) -> None:
        self._executor.submit(task)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class Notifier:
    def __init__(self, dispatcher: NotificationDispatcher | None = None, runner=None) -> None:
        self._dispatcher = dispatcher
        self.runner = runner or InlineRunner()

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return self._dispatcher or get_dispatcher()

    def send(self, kind, audience: str, payload: dict) -> bool:
        """Dispatch now. Returns False (after logging) when delivery failed."""
        kind_value = kind.value if isinstance(kind, Enum) else kind
        try:
            result = self.dispatcher.notify(kind_value, audience, payload)
        except Exception as e:
            logger.error(
                "Notification dispatch failed",
                kind=kind_value,
                audience=audience,
                error=str(e),
            )
            return False

        logger.info(
            "Notification sent",
            kind=kind_value,
            audience=audience,
            message_id=result.get("message_id"),
        )
        return True

    def enqueue(self, kind, audience: str, payload: dict) -> None:
        """Schedule ``send`` on the runner; submission errors are logged too."""
        try:
            self.runner.submit(lambda: self.send(kind, audience, payload))
        except Exception as e:
            logger.error("Failed to enqueue notification", kind=str(kind), audience=audience, error=str(e))

    def shutdown(self, wait: bool = True) -> None:
        self.runner.shutdown(wait=wait)
