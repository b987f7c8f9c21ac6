from __future__ import annotations

# MQTT front end for the lifecycle tracker.
#
# This file contains two layers:
# 1) `MqttQueueTrackerService`: decodes requests, calls `QueueTracker`,
#    replies, and broadcasts queue snapshots (testable with a fake client)
# 2) `main()`: wiring with a real broker, store, outbox and channel

import argparse
import logging
import threading
import time
from typing import TYPE_CHECKING, Any, Callable

from .errors import ErrorResponse, QueueError
from .models import Customer
from .tracker import QueueTracker

if TYPE_CHECKING:
    from .mqtt_client import MqttClient

logger = logging.getLogger(__name__)

# A handler returns the reply body and the id of the queue it changed (if any).
Handler = Callable[[dict[str, Any]], "tuple[dict[str, Any], str | None]"]


def _required_str(msg: dict[str, Any], key: str) -> str:
    value = msg.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} required")
    return value.strip()


def _optional_int(msg: dict[str, Any], key: str, default: int) -> int:
    value = msg.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValueError(f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an integer") from None


class MqttQueueTrackerService:
    """Request/response adapter around `QueueTracker`."""

    def __init__(self, *, mqtt: MqttClient, tracker: QueueTracker, namespace: str = "restaurant/v0") -> None:
        # Local import keeps topic naming in one place without importing paho.
        from .mqtt_topics import queue_updates, tracker_requests

        self._tracker_requests = tracker_requests
        self._queue_updates = queue_updates

        self.mqtt = mqtt
        self.tracker = tracker
        self.namespace = namespace

        self._handlers: dict[str, Handler] = {
            "create_queue": self._create_queue,
            "set_queue_open": self._set_queue_open,
            "join_queue": self._join_queue,
            "call": self._call,
            "call_next": self._call_next,
            "seat": self._seat,
            "mark_no_show": self._mark_no_show,
            "withdraw": self._withdraw,
            "renotify": self._renotify,
            "entry_status": self._entry_status,
            "queue_status": self._queue_status,
            "queue_stats": self._queue_stats,
        }

        self._stop_event = threading.Event()
        self._status_thread: threading.Thread | None = None

    def start(self, *, publish_status_every: float = 5.0) -> None:
        self.mqtt.subscribe(self._tracker_requests(self.namespace))
        self.mqtt.add_handler(self._handle_message)

        self._status_thread = threading.Thread(
            target=self._status_publisher_loop,
            args=(publish_status_every,),
            daemon=True,
        )
        self._status_thread.start()

    def stop(self) -> None:
        """Stop background threads. Call before disconnecting MQTT."""
        self._stop_event.set()
        t = self._status_thread
        if t and t.is_alive():
            t.join(timeout=1.0)

    def publish_queue_update(self, queue_id: str) -> None:
        snapshot = self.tracker.queue_snapshot(queue_id)
        self.mqtt.publish(self._queue_updates(queue_id, self.namespace), {"type": "queue_update", **snapshot})

    def _status_publisher_loop(self, interval: float) -> None:
        # Dashboards that connect late still get a snapshot within `interval`.
        while not self._stop_event.is_set():
            for queue in self.tracker.store.list_queues():
                try:
                    self.publish_queue_update(queue.queue_id)
                except Exception:
                    logger.exception("periodic update for queue %s failed", queue.queue_id)
            self._stop_event.wait(interval)

    def _reply(self, reply_to: str, corr_id: str | None, message: dict[str, Any]) -> None:
        msg = dict(message)
        if corr_id is not None:
            msg["corr_id"] = corr_id
        self.mqtt.publish(reply_to, msg)

    def _handle_message(self, topic: str, msg: dict[str, Any]) -> None:
        mtype = msg.get("type")
        corr_id = msg.get("corr_id") if isinstance(msg.get("corr_id"), str) else None
        reply_to = msg.get("reply_to") if isinstance(msg.get("reply_to"), str) else None
        if not reply_to:
            return

        handler = self._handlers.get(mtype) if isinstance(mtype, str) else None
        if handler is None:
            self._reply(reply_to, corr_id, ErrorResponse("bad_request", f"unknown request type {mtype!r}").to_message())
            return

        try:
            body, changed_queue = handler(msg)
        except (QueueError, ValueError) as e:
            logger.info("%s rejected: %s", mtype, e)
            self._reply(reply_to, corr_id, ErrorResponse.from_exception(e).to_message())
            return
        except Exception as e:
            logger.exception("%s failed", mtype)
            self._reply(reply_to, corr_id, ErrorResponse.from_exception(e).to_message())
            return

        self._reply(reply_to, corr_id, {"type": f"{mtype}_ok", **body})

        if changed_queue is not None:
            try:
                self.publish_queue_update(changed_queue)
            except Exception:
                logger.exception("broadcast for queue %s failed", changed_queue)

    # -------------------- queue configuration --------------------

    def _create_queue(self, msg: dict[str, Any]) -> tuple[dict[str, Any], str | None]:
        queue = self.tracker.create_queue(
            merchant_id=_required_str(msg, "merchant_id"),
            name=_required_str(msg, "name"),
            capacity=_optional_int(msg, "capacity", 100),
            average_service_time=_optional_int(msg, "average_service_time", 15),
            queue_id=msg.get("queue_id") if isinstance(msg.get("queue_id"), str) else None,
        )
        return {"queue": queue.to_dict()}, queue.queue_id

    def _set_queue_open(self, msg: dict[str, Any]) -> tuple[dict[str, Any], str | None]:
        is_open = msg.get("is_open")
        if not isinstance(is_open, bool):
            raise ValueError("is_open must be true or false")
        queue = self.tracker.set_queue_open(_required_str(msg, "queue_id"), is_open)
        return {"queue": queue.to_dict()}, queue.queue_id

    # -------------------- customer / merchant actions --------------------

    def _join_queue(self, msg: dict[str, Any]) -> tuple[dict[str, Any], str | None]:
        queue_id = _required_str(msg, "queue_id")
        customer = Customer(
            name=_required_str(msg, "name"),
            phone=_required_str(msg, "phone"),
            party_size=_optional_int(msg, "party_size", 1),
            notes=str(msg.get("notes") or ""),
        )
        entry = self.tracker.join(queue_id, customer)
        # Only the joining customer ever sees the code.
        return {"entry": entry.to_dict(include_code=True)}, queue_id

    def _call(self, msg: dict[str, Any]) -> tuple[dict[str, Any], str | None]:
        entry = self.tracker.call(_required_str(msg, "entry_id"))
        return {"entry": entry.to_dict()}, entry.queue_id

    def _call_next(self, msg: dict[str, Any]) -> tuple[dict[str, Any], str | None]:
        queue_id = _required_str(msg, "queue_id")
        entry = self.tracker.call_next(queue_id)
        if entry is None:
            return {"entry": None}, None
        return {"entry": entry.to_dict()}, queue_id

    def _seat(self, msg: dict[str, Any]) -> tuple[dict[str, Any], str | None]:
        entry = self.tracker.seat(_required_str(msg, "entry_id"), _required_str(msg, "verification_code"))
        return {"entry": entry.to_dict()}, entry.queue_id

    def _mark_no_show(self, msg: dict[str, Any]) -> tuple[dict[str, Any], str | None]:
        entry = self.tracker.mark_no_show(_required_str(msg, "entry_id"))
        return {"entry": entry.to_dict()}, entry.queue_id

    def _withdraw(self, msg: dict[str, Any]) -> tuple[dict[str, Any], str | None]:
        reason = msg.get("reason")
        entry = self.tracker.withdraw(
            _required_str(msg, "entry_id"),
            reason=str(reason) if reason is not None else None,
        )
        return {"entry": entry.to_dict()}, entry.queue_id

    def _renotify(self, msg: dict[str, Any]) -> tuple[dict[str, Any], str | None]:
        entry = self.tracker.renotify(_required_str(msg, "entry_id"))
        return {"entry": entry.to_dict()}, None

    # -------------------- reads --------------------

    def _entry_status(self, msg: dict[str, Any]) -> tuple[dict[str, Any], str | None]:
        entry = self.tracker.get_entry(_required_str(msg, "entry_id"))
        return {"entry": entry.to_dict()}, None

    def _queue_status(self, msg: dict[str, Any]) -> tuple[dict[str, Any], str | None]:
        return self.tracker.queue_snapshot(_required_str(msg, "queue_id")), None

    def _queue_stats(self, msg: dict[str, Any]) -> tuple[dict[str, Any], str | None]:
        return {"stats": self.tracker.queue_stats(_required_str(msg, "queue_id"))}, None


def main() -> None:
    # Import MQTT dependencies only when running the real service.
    from .config import add_mqtt_args, add_tracker_args, configure_logging, tracker_settings_from_args
    from .mqtt_client import MqttClient
    from .notifications import MqttNotificationChannel
    from .outbox import NotificationOutbox
    from .store import InMemoryQueueStore

    parser = argparse.ArgumentParser(description="Queue tracker service (MQTT)")
    add_mqtt_args(parser)
    add_tracker_args(parser)
    args = parser.parse_args()
    configure_logging(args.log_level)

    mqtt_client = MqttClient(client_id=f"tracker-{int(time.time())}", host=args.mqtt_host, port=args.mqtt_port)
    mqtt_client.start()

    outbox = NotificationOutbox(
        MqttNotificationChannel(mqtt=mqtt_client, namespace=args.namespace),
        max_attempts=args.notify_attempts,
        base_delay=args.notify_base_delay,
        max_delay=args.notify_max_delay,
    )
    tracker = QueueTracker(
        InMemoryQueueStore(),
        notifier=outbox,
        settings=tracker_settings_from_args(args),
    )
    service = MqttQueueTrackerService(mqtt=mqtt_client, tracker=tracker, namespace=args.namespace)

    outbox.start()
    service.start(publish_status_every=args.publish_status_every)

    print(f"[tracker] connected to MQTT {args.mqtt_host}:{args.mqtt_port}, namespace={args.namespace}")

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        service.stop()
        outbox.stop()
        mqtt_client.stop()


if __name__ == "__main__":
    main()
