from __future__ import annotations

# Customer notifications.
#
# The tracker decides *when* a customer must be told something (call and
# renotify); this module decides *what* is sent and *where*:
# - message templates with {Placeholder} substitution
# - the JSON payload put on the wire
# - `MqttNotificationChannel`, which publishes to the entry's topic

import re
from typing import TYPE_CHECKING, Any, Mapping, Protocol

from .mqtt_topics import DEFAULT_NAMESPACE, entry_notifications

if TYPE_CHECKING:
    from .models import Queue, QueueEntry
    from .mqtt_client import MqttClient


DEFAULT_TEMPLATES: dict[str, str] = {
    "table_ready": (
        "{CustomerName}, your table for {PartySize} at {QueueName} is ready! "
        "Please see the host and show code {Code}."
    ),
    "table_ready_reminder": (
        "Reminder {CustomerName}: your table at {QueueName} is still waiting for you. "
        "Show code {Code} to the host."
    ),
}

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


class NotificationChannel(Protocol):
    def send(self, entry_id: str, payload: dict[str, Any]) -> bool: ...


def format_message(template: str, replacements: Mapping[str, Any]) -> str:
    """Fill `{Name}` placeholders; unknown placeholders are left as they are."""

    def sub(m: re.Match[str]) -> str:
        key = m.group(1)
        return str(replacements[key]) if key in replacements else m.group(0)

    return _PLACEHOLDER.sub(sub, template)


def build_table_ready_payload(
    entry: QueueEntry,
    queue: Queue,
    *,
    reminder: bool = False,
    templates: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    templates = templates or DEFAULT_TEMPLATES
    kind = "table_ready_reminder" if reminder else "table_ready"
    message = format_message(
        templates.get(kind, DEFAULT_TEMPLATES[kind]),
        {
            "CustomerName": entry.customer_name,
            "PartySize": entry.party_size,
            "QueueName": queue.name,
            "Code": entry.verification_code,
        },
    )
    return {
        "type": kind,
        "entry_id": entry.entry_id,
        "queue_id": entry.queue_id,
        "customer_name": entry.customer_name,
        "verification_code": entry.verification_code,
        "notification_count": entry.notification_count,
        "sent_at": entry.last_notified.isoformat() if entry.last_notified else None,
        "message": message,
    }


class MqttNotificationChannel:
    """Delivers payloads to `<ns>/entries/<entry_id>/notifications`."""

    def __init__(self, *, mqtt: MqttClient, namespace: str = DEFAULT_NAMESPACE) -> None:
        self.mqtt = mqtt
        self.namespace = namespace

    def send(self, entry_id: str, payload: dict[str, Any]) -> bool:
        return self.mqtt.publish(entry_notifications(entry_id, self.namespace), payload)
