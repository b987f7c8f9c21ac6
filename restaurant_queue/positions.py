from __future__ import annotations

# Position and wait-time helpers.
#
# Positions are never patched in place. Every mutation recomputes them from
# the waiting subset ordered by join time:
#   position             = index + 1
#   estimated_wait_time  = position * average_service_time
# Entries outside the waiting set carry no position and no estimate.

from typing import Iterable

from .models import EntryStatus, QueueEntry


def compute_estimated_wait_minutes(*, position: int, average_service_time: int) -> int:
    """Estimated minutes until a waiting party is called.

    Args:
        position: 1-based rank in the waiting set (>= 1).
        average_service_time: minutes per party (>= 0).
    """
    if position < 1:
        raise ValueError("position must be >= 1")
    if average_service_time < 0:
        raise ValueError("average_service_time must be >= 0")

    return position * average_service_time


def waiting_order(entries: Iterable[QueueEntry]) -> list[QueueEntry]:
    """Waiting entries sorted by join time, earliest first."""
    waiting = [e for e in entries if e.status is EntryStatus.WAITING]
    waiting.sort(key=lambda e: (e.joined_at, e.sequence))
    return waiting


def recompute_positions(entries: Iterable[QueueEntry], *, average_service_time: int) -> list[QueueEntry]:
    """Assign dense positions 1..N to the waiting entries.

    Mutates the given entries and returns the waiting ones in order.
    """
    entries = list(entries)
    for e in entries:
        if e.status is not EntryStatus.WAITING:
            e.position = None
            e.estimated_wait_time = 0

    ordered = waiting_order(entries)
    for index, e in enumerate(ordered):
        e.position = index + 1
        e.estimated_wait_time = compute_estimated_wait_minutes(
            position=e.position, average_service_time=average_service_time
        )
    return ordered
