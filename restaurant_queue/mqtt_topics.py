"""MQTT topic helpers.

All components build topic names here so they agree on the layout.

Topic layout under a configurable namespace (default: `restaurant/v0`):

Request/response:
- `<ns>/tracker/requests`
    Merchant dashboards, customer clients and the generator send requests here.
- `<ns>/tracker/responses/<client_id>`
    Each client listens for its own replies.

Streaming/broadcast:
- `<ns>/queues/<queue_id>/updates`
    The service publishes the queue snapshot after every change.
- `<ns>/entries/<entry_id>/notifications`
    "Your table is ready" messages for one customer's live connection.
"""

from __future__ import annotations

DEFAULT_NAMESPACE = "restaurant/v0"


def tracker_requests(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/tracker/requests"


def tracker_responses(client_id: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/tracker/responses/{client_id}"


def queue_updates(queue_id: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    """Broadcast of one queue's active entries after each mutation."""
    return f"{namespace}/queues/{queue_id}/updates"


def entry_notifications(entry_id: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    """Per-customer notification stream.

    A customer's web chat subscribes here right after joining.
    """
    return f"{namespace}/entries/{entry_id}/notifications"
