"""Notification dispatcher with exponential back-off retry.

The dispatcher runs after a store mutation has already been published. Its
outcome is reported to the immediate caller and logged; it never feeds back
into the store.
"""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional

from mysociety.domain.entities import Actor, Record, RecordKind
from mysociety.domain.errors import NotificationError
from mysociety.notifications.formatting import format_message
from mysociety.notifications.transports import Transport, TransportError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0


@dataclass(frozen=True)
class NotificationOutcome:
    """Result of a delivered notification."""

    provider: str
    message: str
    attempts: int
    message_id: Optional[str]


class NotificationDispatcher:
    """Formats mutation events and delivers them through a transport."""

    def __init__(
        self,
        transport: Transport,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize dispatcher.

        Args:
            transport: Delivery mechanism
            max_retries: Retries after the first failed attempt
            base_delay: Seconds to wait before the first retry; doubles on each retry
            sleep: Function used to wait between attempts
        """
        if max_retries < 0:
            raise ValueError("max_retries must not be negative")
        self.transport = transport
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep
        self._executor: Optional[ThreadPoolExecutor] = None

    def retry_delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        return self.base_delay * 2 ** (attempt - 1)

    def send(self, text: str) -> NotificationOutcome:
        """Deliver a line, retrying transport failures marked retryable.

        Raises:
            NotificationError: If a permanent failure occurred or every attempt failed
        """
        attempt = 1
        while True:
            try:
                receipt = self.transport.send(text)
            except TransportError as e:
                logger.warning(
                    "Notification send via %s failed (attempt %d): %s",
                    self.transport.name, attempt, e,
                )
                if not e.retryable or attempt > self.max_retries:
                    logger.error(
                        "Notification failed after %d attempts: %s", attempt, text
                    )
                    raise NotificationError(
                        f"Notification via {self.transport.name} failed after "
                        f"{attempt} attempts: {e}",
                        attempts=attempt,
                    ) from e
                delay = self.retry_delay(attempt)
                logger.info("Retrying notification in %.2fs", delay)
                self._sleep(delay)
                attempt += 1
                continue

            return NotificationOutcome(
                provider=receipt.provider,
                message=text,
                attempts=attempt,
                message_id=receipt.message_id,
            )

    def notify(
        self, kind: RecordKind | str, action: str, record: Record, actor: Actor | str
    ) -> NotificationOutcome:
        """Announce one store mutation.

        Args:
            kind: ``outflow`` or ``inflow``
            action: ``created``, ``updated`` or ``deleted``
            record: Record returned by the store operation
            actor: User who performed the mutation

        Returns:
            NotificationOutcome describing the delivery

        Raises:
            ValidationError: If kind or action is unknown
            NotificationError: If delivery failed after all retries
        """
        return self.send(format_message(kind, action, record, actor))

    def notify_in_background(
        self, kind: RecordKind | str, action: str, record: Record, actor: Actor | str
    ) -> Future:
        """Schedule :meth:`notify` without waiting for it.

        Failures are logged when the task finishes; the returned future can
        be inspected but callers are not required to.
        """
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="notify")
        future = self._executor.submit(self.notify, kind, action, record, actor)
        future.add_done_callback(_log_background_result)
        return future

    def shutdown(self, wait: bool = True) -> None:
        """Stop the background worker, draining pending notifications if ``wait``."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None


def _log_background_result(future: Future) -> None:
    error = future.exception()
    if error is not None:
        logger.error("Background notification failed: %s", error)
    else:
        outcome = future.result()
        logger.debug(
            "Notification delivered via %s after %d attempt(s)",
            outcome.provider, outcome.attempts,
        )
