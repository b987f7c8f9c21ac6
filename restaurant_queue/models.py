from __future__ import annotations

# Records kept by the tracker.
#
# `QueueEntry` is one customer's attempt to get a table through one queue.
# `Queue` is a merchant's service line and its configuration.
#
# The allowed lifecycle moves live in `TRANSITIONS` so the tracker and the
# tests read them from one table.

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

MAX_PARTY_SIZE = 20


class EntryStatus(str, enum.Enum):
    WAITING = "waiting"
    CALLED = "called"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    WITHDRAWN = "withdrawn"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return not self.is_active


ACTIVE_STATUSES = frozenset({EntryStatus.WAITING, EntryStatus.CALLED})

# action -> (states it may start from, state it ends in)
TRANSITIONS: dict[str, tuple[frozenset[EntryStatus], EntryStatus]] = {
    "call": (frozenset({EntryStatus.WAITING}), EntryStatus.CALLED),
    "seat": (frozenset({EntryStatus.CALLED}), EntryStatus.COMPLETED),
    "mark_no_show": (frozenset({EntryStatus.CALLED}), EntryStatus.NO_SHOW),
    "withdraw": (ACTIVE_STATUSES, EntryStatus.WITHDRAWN),
    "renotify": (frozenset({EntryStatus.CALLED}), EntryStatus.CALLED),
}


def _iso(ts: datetime | None) -> str | None:
    return ts.isoformat() if ts is not None else None


@dataclass
class Customer:
    """What a customer submits on the join form."""

    name: str
    phone: str
    party_size: int = 1
    notes: str = ""

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("name required")
        if not self.phone.strip():
            raise ValueError("phone required")
        if isinstance(self.party_size, bool) or not isinstance(self.party_size, int):
            raise ValueError("party_size must be an integer")
        if not 1 <= self.party_size <= MAX_PARTY_SIZE:
            raise ValueError(f"party_size must be between 1 and {MAX_PARTY_SIZE}")


@dataclass
class Queue:
    queue_id: str
    merchant_id: str
    name: str
    capacity: int = 100
    average_service_time: int = 15  # minutes
    is_open: bool = True

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("capacity must be >= 1")
        if self.average_service_time < 0:
            raise ValueError("average_service_time must be >= 0")

    def to_dict(self) -> dict[str, Any]:
        return {
            "queue_id": self.queue_id,
            "merchant_id": self.merchant_id,
            "name": self.name,
            "capacity": self.capacity,
            "average_service_time": self.average_service_time,
            "is_open": self.is_open,
        }


@dataclass
class QueueEntry:
    entry_id: str
    queue_id: str
    merchant_id: str
    customer_name: str
    customer_phone: str
    party_size: int
    joined_at: datetime
    verification_code: str
    notes: str = ""
    status: EntryStatus = EntryStatus.WAITING
    position: int | None = None
    estimated_wait_time: int = 0  # minutes, display only
    called_at: datetime | None = None
    completed_at: datetime | None = None
    notification_count: int = 0
    last_notified: datetime | None = None
    withdraw_reason: str | None = None
    # Store-assigned insertion counter; orders entries that joined at the
    # same instant.
    sequence: int = field(default=0, compare=False)

    def to_dict(self, *, include_code: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "entry_id": self.entry_id,
            "queue_id": self.queue_id,
            "merchant_id": self.merchant_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "party_size": self.party_size,
            "notes": self.notes,
            "status": self.status.value,
            "position": self.position,
            "estimated_wait_time": self.estimated_wait_time,
            "joined_at": _iso(self.joined_at),
            "called_at": _iso(self.called_at),
            "completed_at": _iso(self.completed_at),
            "notification_count": self.notification_count,
            "last_notified": _iso(self.last_notified),
            "withdraw_reason": self.withdraw_reason,
        }
        if include_code:
            data["verification_code"] = self.verification_code
        return data
