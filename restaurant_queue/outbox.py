from __future__ import annotations

# Notification outbox.
#
# The tracker commits a state change first and only then hands the
# notification to this outbox. Delivery happens later, on the outbox's own
# schedule:
# - `deliver_due()` sends every notification whose retry time has come
# - a failed send is retried with exponential backoff up to `max_attempts`
# - after that it is logged and kept in `failed` (bounded, oldest dropped)
#
# Nothing here ever raises back into the tracker.

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from .clock import Clock, SystemClock
from .notifications import NotificationChannel

logger = logging.getLogger(__name__)


@dataclass
class OutboundNotification:
    entry_id: str
    payload: dict[str, Any]
    next_attempt_at: datetime
    attempts: int = 0
    last_error: str | None = field(default=None, compare=False)


class NotificationOutbox:
    def __init__(
        self,
        channel: NotificationChannel,
        *,
        clock: Clock | None = None,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        max_failed: int = 100,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("delays must be >= 0")

        self.channel = channel
        self.clock = clock or SystemClock()
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay

        self._lock = threading.Lock()
        self._pending: list[OutboundNotification] = []
        # Most recent deliveries that ran out of attempts, for inspection.
        self.failed: deque[OutboundNotification] = deque(maxlen=max_failed)
        self.delivered_count = 0

        # Background worker control.
        self._stop_event = threading.Event()
        self._wakeup = threading.Event()
        self._thread: threading.Thread | None = None

    def enqueue(self, entry_id: str, payload: dict[str, Any]) -> None:
        item = OutboundNotification(entry_id=entry_id, payload=dict(payload), next_attempt_at=self.clock.now())
        with self._lock:
            self._pending.append(item)
        self._wakeup.set()

    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def deliver_due(self) -> int:
        """Attempt every notification that is due. Returns how many were delivered."""
        now = self.clock.now()
        with self._lock:
            due = [n for n in self._pending if n.next_attempt_at <= now]
            self._pending = [n for n in self._pending if n.next_attempt_at > now]

        delivered = 0
        retry: list[OutboundNotification] = []
        for item in due:
            if self._attempt(item):
                delivered += 1
                continue
            if item.attempts >= self.max_attempts:
                logger.error(
                    "giving up on notification %s for entry %s after %d attempts: %s",
                    item.payload.get("type"),
                    item.entry_id,
                    item.attempts,
                    item.last_error,
                )
                with self._lock:
                    self.failed.append(item)
                continue
            item.next_attempt_at = now + timedelta(seconds=self._backoff(item.attempts))
            retry.append(item)

        with self._lock:
            self._pending.extend(retry)
            self.delivered_count += delivered
        return delivered

    def _attempt(self, item: OutboundNotification) -> bool:
        item.attempts += 1
        try:
            ok = bool(self.channel.send(item.entry_id, item.payload))
        except Exception as e:
            ok = False
            item.last_error = repr(e)
        else:
            if not ok:
                item.last_error = "channel refused delivery"
        if not ok:
            logger.warning(
                "notification for entry %s failed (attempt %d/%d): %s",
                item.entry_id,
                item.attempts,
                self.max_attempts,
                item.last_error,
            )
        return ok

    def _backoff(self, attempts: int) -> float:
        return min(self.max_delay, self.base_delay * (2 ** (attempts - 1)))

    # -------------------- background worker --------------------

    def start(self, *, poll_interval: float = 0.2) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, args=(poll_interval,), daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        self._wakeup.set()
        t = self._thread
        if t and t.is_alive():
            t.join(timeout=1.0)

    def _run(self, poll_interval: float) -> None:
        while not self._stop_event.is_set():
            try:
                self.deliver_due()
            except Exception:
                logger.exception("outbox delivery loop error")
            self._wakeup.wait(poll_interval)
            self._wakeup.clear()
