from __future__ import annotations

# The queue entry lifecycle tracker is the authoritative logic of the system.
#
# IMPORTANT: this module has no transport code. `QueueTracker` is called by
# the MQTT service (service.py) but is usable (and unit tested) on its own.
#
# Every status-changing operation follows the same shape:
#   lock the owning queue -> check the transition -> mutate the working copy
#   -> recompute positions -> commit -> hand notifications to the outbox
# so the triggering change and the new ordering are stored together or not
# at all.

import logging
import random
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterator, Mapping, Protocol

from .clock import Clock, SystemClock
from .errors import Busy, InvalidCode, InvalidTransition, QueueClosed, QueueFull
from .models import TRANSITIONS, Customer, EntryStatus, Queue, QueueEntry
from .notifications import build_table_ready_payload
from .positions import recompute_positions, waiting_order
from .store import QueueStore, QueueTransaction
from .verification import codes_match, generate_verification_code

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def enqueue(self, entry_id: str, payload: dict[str, Any]) -> None: ...


@dataclass(frozen=True)
class TrackerSettings:
    lock_timeout: float = 0.5  # seconds per acquisition attempt
    lock_retries: int = 3  # extra attempts before Busy
    retry_backoff: float = 0.05  # first retry delay, doubled each time

    def __post_init__(self) -> None:
        if self.lock_timeout < 0:
            raise ValueError("lock_timeout must be >= 0")
        if self.lock_retries < 0:
            raise ValueError("lock_retries must be >= 0")
        if self.retry_backoff < 0:
            raise ValueError("retry_backoff must be >= 0")


class QueueTracker:
    """Join, call, seat, no-show, withdraw and renotify queue entries."""

    def __init__(
        self,
        store: QueueStore,
        *,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
        settings: TrackerSettings | None = None,
        rng: random.Random | None = None,
        templates: Mapping[str, str] | None = None,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.clock = clock or SystemClock()
        self.settings = settings or TrackerSettings()
        self._rng = rng
        self._templates = templates

    # -------------------- queue configuration --------------------

    def create_queue(
        self,
        *,
        merchant_id: str,
        name: str,
        capacity: int = 100,
        average_service_time: int = 15,
        queue_id: str | None = None,
    ) -> Queue:
        queue = Queue(
            queue_id=queue_id or str(uuid.uuid4()),
            merchant_id=merchant_id,
            name=name,
            capacity=capacity,
            average_service_time=average_service_time,
        )
        created = self.store.create_queue(queue)
        logger.info("queue %s (%s) created for merchant %s", created.queue_id, name, merchant_id)
        return created

    def set_queue_open(self, queue_id: str, is_open: bool) -> Queue:
        with self._transaction(queue_id) as txn:
            txn.queue.is_open = is_open
            queue = txn.queue
        logger.info("queue %s %s", queue_id, "opened" if is_open else "closed")
        return queue

    # -------------------- lifecycle operations --------------------

    def join(self, queue_id: str, customer: Customer) -> QueueEntry:
        """Add a customer to the back of the waiting set."""
        with self._transaction(queue_id) as txn:
            queue = txn.queue
            if not queue.is_open:
                raise QueueClosed(queue_id)

            waiting = waiting_order(txn.entries())
            if len(waiting) >= queue.capacity:
                raise QueueFull(queue_id, queue.capacity)

            entry = txn.add_entry(
                QueueEntry(
                    entry_id=str(uuid.uuid4()),
                    queue_id=queue_id,
                    merchant_id=queue.merchant_id,
                    customer_name=customer.name.strip(),
                    customer_phone=customer.phone.strip(),
                    party_size=customer.party_size,
                    notes=customer.notes,
                    joined_at=self.clock.now(),
                    verification_code=generate_verification_code(rng=self._rng),
                    position=len(waiting) + 1,
                )
            )
            self._recompute(txn)

        logger.info("entry %s joined queue %s at position %s", entry.entry_id, queue_id, entry.position)
        return entry

    def call(self, entry_id: str) -> QueueEntry:
        """Tell a waiting customer their table is ready."""
        queue_id = self.store.get_entry(entry_id).queue_id
        with self._transaction(queue_id) as txn:
            entry = txn.entry(entry_id)
            now = self.clock.now()
            entry.status = self._transition("call", entry)
            entry.called_at = now
            entry.notification_count += 1
            entry.last_notified = now
            self._recompute(txn)
            payload = build_table_ready_payload(entry, txn.queue, templates=self._templates)

        logger.info("entry %s called in queue %s", entry_id, queue_id)
        self._notify(entry_id, payload)
        return entry

    def call_next(self, queue_id: str) -> QueueEntry | None:
        """Call the earliest waiting entry, or return None when nobody waits."""
        while True:
            waiting = self.waiting_entries(queue_id)
            if not waiting:
                return None
            try:
                return self.call(waiting[0].entry_id)
            except InvalidTransition:
                # Someone else moved that entry between our read and our lock.
                continue

    def seat(self, entry_id: str, verification_code: str) -> QueueEntry:
        """Seat a called party once they show the code they got at join time."""
        queue_id = self.store.get_entry(entry_id).queue_id
        with self._transaction(queue_id) as txn:
            entry = txn.entry(entry_id)
            if entry.status.is_terminal:
                raise InvalidTransition(entry.status.value, "seat")
            if not codes_match(entry.verification_code, verification_code):
                raise InvalidCode(entry_id)
            entry.status = self._transition("seat", entry)
            entry.completed_at = self.clock.now()
            self._recompute(txn)

        logger.info("entry %s seated in queue %s", entry_id, queue_id)
        return entry

    def mark_no_show(self, entry_id: str) -> QueueEntry:
        queue_id = self.store.get_entry(entry_id).queue_id
        with self._transaction(queue_id) as txn:
            entry = txn.entry(entry_id)
            entry.status = self._transition("mark_no_show", entry)
            entry.completed_at = self.clock.now()
            self._recompute(txn)

        logger.info("entry %s marked no-show in queue %s", entry_id, queue_id)
        return entry

    def withdraw(self, entry_id: str, reason: str | None = None) -> QueueEntry:
        """Cancel an active entry, by the customer or by the merchant."""
        queue_id = self.store.get_entry(entry_id).queue_id
        with self._transaction(queue_id) as txn:
            entry = txn.entry(entry_id)
            entry.status = self._transition("withdraw", entry)
            entry.completed_at = self.clock.now()
            entry.withdraw_reason = reason
            self._recompute(txn)

        logger.info("entry %s withdrawn from queue %s (reason=%s)", entry_id, queue_id, reason)
        return entry

    def renotify(self, entry_id: str) -> QueueEntry:
        """Send the table-ready message again, e.g. after the customer reconnected."""
        queue_id = self.store.get_entry(entry_id).queue_id
        with self._transaction(queue_id) as txn:
            entry = txn.entry(entry_id)
            self._transition("renotify", entry)
            entry.notification_count += 1
            entry.last_notified = self.clock.now()
            payload = build_table_ready_payload(entry, txn.queue, reminder=True, templates=self._templates)

        logger.info("entry %s renotified (count=%d)", entry_id, entry.notification_count)
        self._notify(entry_id, payload)
        return entry

    # -------------------- reads (no locking) --------------------

    def get_entry(self, entry_id: str) -> QueueEntry:
        return self.store.get_entry(entry_id)

    def waiting_entries(self, queue_id: str) -> list[QueueEntry]:
        return waiting_order(self.store.queue_entries(queue_id))

    def queue_snapshot(self, queue_id: str) -> dict[str, Any]:
        """Active entries of a queue as shown on the merchant dashboard."""
        queue = self.store.get_queue(queue_id)
        entries = self.store.queue_entries(queue_id)
        called = sorted(
            (e for e in entries if e.status is EntryStatus.CALLED),
            key=lambda e: (e.called_at or e.joined_at, e.sequence),
        )
        return {
            "queue": queue.to_dict(),
            "waiting": [e.to_dict() for e in waiting_order(entries)],
            "called": [e.to_dict() for e in called],
        }

    def queue_stats(self, queue_id: str) -> dict[str, Any]:
        """Counters for the current UTC day."""
        entries = self.store.queue_entries(queue_id)
        today = self.clock.now().date()

        def finished_today(e: QueueEntry, status: EntryStatus) -> bool:
            return e.status is status and e.completed_at is not None and e.completed_at.date() == today

        served = [e for e in entries if finished_today(e, EntryStatus.COMPLETED)]
        waits = [(e.completed_at - e.joined_at).total_seconds() / 60.0 for e in served if e.completed_at]
        return {
            "queue_id": queue_id,
            "waiting_count": sum(1 for e in entries if e.status is EntryStatus.WAITING),
            "called_count": sum(1 for e in entries if e.status is EntryStatus.CALLED),
            "served_today": len(served),
            "no_show_today": sum(1 for e in entries if finished_today(e, EntryStatus.NO_SHOW)),
            "withdrawn_today": sum(1 for e in entries if finished_today(e, EntryStatus.WITHDRAWN)),
            "average_wait_minutes": round(sum(waits) / len(waits), 1) if waits else 0.0,
        }

    # -------------------- administrative cleanup --------------------

    def purge_terminal(self, older_than: datetime) -> int:
        """Physically delete terminal entries finished before `older_than`."""
        removed = 0
        for queue in self.store.list_queues():
            with self._transaction(queue.queue_id) as txn:
                for e in txn.entries():
                    if e.status.is_terminal and e.completed_at is not None and e.completed_at < older_than:
                        txn.remove_entry(e.entry_id)
                        removed += 1
        if removed:
            logger.info("purged %d terminal entries older than %s", removed, older_than.isoformat())
        return removed

    # -------------------- internals --------------------

    @contextmanager
    def _transaction(self, queue_id: str) -> Iterator[QueueTransaction]:
        txn = self._begin(queue_id)
        try:
            yield txn
        except BaseException:
            txn.rollback()
            raise
        txn.commit()

    def _begin(self, queue_id: str) -> QueueTransaction:
        delay = self.settings.retry_backoff
        attempt = 0
        while True:
            try:
                return self.store.begin(queue_id, timeout=self.settings.lock_timeout)
            except Busy:
                if attempt >= self.settings.lock_retries:
                    raise
                attempt += 1
                logger.warning("queue %s busy, retry %d/%d", queue_id, attempt, self.settings.lock_retries)
                time.sleep(delay)
                delay *= 2

    def _recompute(self, txn: QueueTransaction) -> None:
        recompute_positions(txn.entries(), average_service_time=txn.queue.average_service_time)

    @staticmethod
    def _transition(action: str, entry: QueueEntry) -> EntryStatus:
        """Return the status `action` leads to, or raise if it is not allowed now."""
        allowed_from, target = TRANSITIONS[action]
        if entry.status not in allowed_from:
            raise InvalidTransition(entry.status.value, action)
        return target

    def _notify(self, entry_id: str, payload: dict[str, Any]) -> None:
        if self.notifier is None:
            logger.debug("no notifier configured, dropping %s for entry %s", payload.get("type"), entry_id)
            return
        try:
            self.notifier.enqueue(entry_id, payload)
        except Exception:
            logger.exception("could not queue notification for entry %s", entry_id)
