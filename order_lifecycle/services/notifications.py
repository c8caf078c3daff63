"""
Customer notifications for order status changes.

Dispatch is best-effort and non-blocking: `dispatch` hands the payload to a
small thread pool and returns immediately. A failed send is logged and
otherwise ignored; nothing is retried.
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, Optional

from order_lifecycle.config import settings

logger = logging.getLogger(__name__)

Payload = Dict[str, Any]
ChannelSender = Callable[[str, Payload], None]


def log_sender(channel: str, payload: Payload) -> None:
    # real email/SMS delivery is out of scope; record the attempt only
    logger.info(
        "Status update notification sent via %s: order=%s %s -> %s",
        channel,
        payload.get("order_id"),
        payload.get("previous_status"),
        payload.get("new_status"),
    )


class StatusNotifier:
    def __init__(
        self,
        channels: Optional[Iterable[str]] = None,
        sender: Optional[ChannelSender] = None,
        max_workers: int = 2,
    ):
        self.channels = list(channels if channels is not None else settings.notification_channels)
        self.sender = sender or log_sender
        self.max_workers = max(1, int(max_workers))
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    def _pool(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix="status-notify"
                )
            return self._executor

    def _send_all(self, payload: Payload) -> Payload:
        for channel in self.channels:
            self.sender(channel, payload)
        return {"order_id": payload.get("order_id"), "channels": list(self.channels)}

    @staticmethod
    def _log_outcome(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Error sending status update notification: %s", exc)

    def dispatch(self, payload: Payload) -> Future:
        """Queue a notification and return its Future without waiting on it."""
        future = self._pool().submit(self._send_all, dict(payload))
        future.add_done_callback(self._log_outcome)
        return future

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)


notifier = StatusNotifier(max_workers=settings.NOTIFICATION_WORKERS)
