from __future__ import annotations

# Persistence layer.
#
# `QueueStore` is what the tracker needs from a database:
# 1) plain reads of queues and entries (no locking, last committed state)
# 2) `begin(queue_id, timeout)`: an exclusive, per-queue working copy that is
#    committed as a whole or thrown away
#
# `InMemoryQueueStore` implements it with one lock per queue. Work on
# different queues never contends; a commit swaps the queue's records in under
# a short global lock so readers never see half of a commit.

import copy
import itertools
import logging
import threading
from typing import Iterator, Protocol

from .errors import Busy, NotFound, PersistenceFailure
from .models import Queue, QueueEntry

logger = logging.getLogger(__name__)


class QueueTransaction(Protocol):
    queue: Queue

    def entries(self) -> list[QueueEntry]: ...

    def entry(self, entry_id: str) -> QueueEntry: ...

    def add_entry(self, entry: QueueEntry) -> QueueEntry: ...

    def remove_entry(self, entry_id: str) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class QueueStore(Protocol):
    def create_queue(self, queue: Queue) -> Queue: ...

    def get_queue(self, queue_id: str) -> Queue: ...

    def list_queues(self, merchant_id: str | None = None) -> list[Queue]: ...

    def get_entry(self, entry_id: str) -> QueueEntry: ...

    def queue_entries(self, queue_id: str) -> list[QueueEntry]: ...

    def begin(self, queue_id: str, *, timeout: float) -> QueueTransaction: ...


class _MemoryTransaction:
    """Working copy of one queue and its entries.

    Holds the queue lock from creation until commit() or rollback().
    """

    def __init__(self, store: "InMemoryQueueStore", queue: Queue, entries: list[QueueEntry], lock: threading.Lock) -> None:
        self._store = store
        self._lock = lock
        self._done = False
        self.queue = queue
        self._entries: dict[str, QueueEntry] = {e.entry_id: e for e in entries}
        self._removed: set[str] = set()

    def entries(self) -> list[QueueEntry]:
        return list(self._entries.values())

    def entry(self, entry_id: str) -> QueueEntry:
        try:
            return self._entries[entry_id]
        except KeyError:
            raise NotFound("entry", entry_id) from None

    def add_entry(self, entry: QueueEntry) -> QueueEntry:
        if entry.entry_id in self._entries:
            raise ValueError(f"duplicate entry id {entry.entry_id}")
        entry.sequence = self._store._next_sequence()
        self._entries[entry.entry_id] = entry
        return entry

    def remove_entry(self, entry_id: str) -> None:
        self.entry(entry_id)
        del self._entries[entry_id]
        self._removed.add(entry_id)

    def commit(self) -> None:
        if self._done:
            raise RuntimeError("transaction already finished")
        try:
            self._store._apply(self.queue, list(self._entries.values()), self._removed)
        except Exception as e:
            raise PersistenceFailure(f"commit failed for queue {self.queue.queue_id}: {e}") from e
        finally:
            self._finish()

    def rollback(self) -> None:
        if not self._done:
            self._finish()

    def _finish(self) -> None:
        self._done = True
        self._lock.release()


class InMemoryQueueStore:
    """Thread-safe in-process store."""

    def __init__(self) -> None:
        # Guards the dictionaries below; held only for short copy/swap steps.
        self._lock = threading.Lock()
        self._queues: dict[str, Queue] = {}
        self._entries: dict[str, QueueEntry] = {}
        self._queue_entry_ids: dict[str, set[str]] = {}
        self._queue_locks: dict[str, threading.Lock] = {}
        self._sequence: Iterator[int] = itertools.count(1)

    # -------------------- queues --------------------

    def create_queue(self, queue: Queue) -> Queue:
        with self._lock:
            if queue.queue_id in self._queues:
                raise ValueError(f"queue {queue.queue_id} already exists")
            self._queues[queue.queue_id] = copy.deepcopy(queue)
            self._queue_entry_ids[queue.queue_id] = set()
            self._queue_locks[queue.queue_id] = threading.Lock()
        return copy.deepcopy(queue)

    def get_queue(self, queue_id: str) -> Queue:
        with self._lock:
            q = self._queues.get(queue_id)
            if q is None:
                raise NotFound("queue", queue_id)
            return copy.deepcopy(q)

    def list_queues(self, merchant_id: str | None = None) -> list[Queue]:
        with self._lock:
            return [
                copy.deepcopy(q)
                for q in self._queues.values()
                if merchant_id is None or q.merchant_id == merchant_id
            ]

    # -------------------- entries --------------------

    def get_entry(self, entry_id: str) -> QueueEntry:
        with self._lock:
            e = self._entries.get(entry_id)
            if e is None:
                raise NotFound("entry", entry_id)
            return copy.deepcopy(e)

    def queue_entries(self, queue_id: str) -> list[QueueEntry]:
        with self._lock:
            ids = self._queue_entry_ids.get(queue_id)
            if ids is None:
                raise NotFound("queue", queue_id)
            return [copy.deepcopy(self._entries[i]) for i in ids]

    # -------------------- transactions --------------------

    def begin(self, queue_id: str, *, timeout: float) -> _MemoryTransaction:
        with self._lock:
            qlock = self._queue_locks.get(queue_id)
        if qlock is None:
            raise NotFound("queue", queue_id)

        if not qlock.acquire(timeout=timeout):
            logger.warning("lock on queue %s not acquired within %.3fs", queue_id, timeout)
            raise Busy(queue_id)

        try:
            with self._lock:
                queue = copy.deepcopy(self._queues[queue_id])
                entries = [copy.deepcopy(self._entries[i]) for i in self._queue_entry_ids[queue_id]]
        except BaseException:
            qlock.release()
            raise
        return _MemoryTransaction(self, queue, entries, qlock)

    def _next_sequence(self) -> int:
        with self._lock:
            return next(self._sequence)

    def _apply(self, queue: Queue, entries: list[QueueEntry], removed: set[str]) -> None:
        # Build everything first, then swap, so a failure leaves no trace.
        new_queue = copy.deepcopy(queue)
        new_entries = {e.entry_id: copy.deepcopy(e) for e in entries}
        for e in new_entries.values():
            if e.queue_id != queue.queue_id:
                raise ValueError(f"entry {e.entry_id} does not belong to queue {queue.queue_id}")

        with self._lock:
            ids = self._queue_entry_ids[queue.queue_id]
            for entry_id in removed:
                self._entries.pop(entry_id, None)
                ids.discard(entry_id)
            self._entries.update(new_entries)
            ids.update(new_entries)
            self._queues[queue.queue_id] = new_queue
