"""Error kinds and the shared error envelope.

Tracker operations raise `QueueError` subclasses. The MQTT service turns them
into the same JSON envelope for every client (customer, merchant, generator).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class QueueError(Exception):
    """Base class for recoverable tracker errors."""

    code = "queue_error"


class InvalidTransition(QueueError):
    code = "invalid_transition"

    def __init__(self, current: str, attempted: str) -> None:
        super().__init__(f"cannot {attempted} an entry that is {current}")
        self.current = current
        self.attempted = attempted


class InvalidCode(QueueError):
    code = "invalid_code"

    def __init__(self, entry_id: str) -> None:
        super().__init__(f"verification code does not match entry {entry_id}")
        self.entry_id = entry_id


class NotFound(QueueError):
    code = "not_found"

    def __init__(self, kind: str, ident: str) -> None:
        super().__init__(f"unknown {kind} {ident}")
        self.kind = kind
        self.ident = ident


class Busy(QueueError):
    code = "busy"

    def __init__(self, queue_id: str) -> None:
        super().__init__(f"queue {queue_id} is busy, retry later")
        self.queue_id = queue_id


class PersistenceFailure(QueueError):
    code = "persistence_failure"


class QueueClosed(QueueError):
    code = "queue_closed"

    def __init__(self, queue_id: str) -> None:
        super().__init__(f"queue {queue_id} is not accepting customers")
        self.queue_id = queue_id


class QueueFull(QueueError):
    code = "queue_full"

    def __init__(self, queue_id: str, capacity: int) -> None:
        super().__init__(f"queue {queue_id} is full ({capacity} waiting)")
        self.queue_id = queue_id
        self.capacity = capacity


@dataclass(frozen=True)
class ErrorResponse:
    code: str
    message: str

    @classmethod
    def from_exception(cls, exc: Exception) -> "ErrorResponse":
        if isinstance(exc, QueueError):
            return cls(exc.code, str(exc))
        if isinstance(exc, ValueError):
            return cls("bad_request", str(exc))
        return cls("internal_error", "unexpected error")

    def to_message(self, *, corr_id: str | None = None) -> dict[str, Any]:
        msg: dict[str, Any] = {"type": "error", "code": self.code, "message": self.message}
        if corr_id is not None:
            msg["corr_id"] = corr_id
        return msg
