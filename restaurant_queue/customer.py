from __future__ import annotations

# Customer client.
#
# Mirrors what the web chat does for a customer:
# - publish a join_queue request and print the position and code
# - optionally stay connected and print notifications for the new entry
#   until the table is ready (or Ctrl+C)

import argparse
import time
from typing import Any, Callable

from .mqtt_client import MqttClient
from .mqtt_topics import entry_notifications, tracker_requests, tracker_responses


def join_queue(
    *,
    mqtt: MqttClient,
    namespace: str,
    queue_id: str,
    name: str,
    phone: str,
    party_size: int = 1,
    notes: str = "",
    timeout: float = 5.0,
) -> dict[str, Any]:
    """Send a join request over an already started client and return the reply."""
    reply_topic = tracker_responses(mqtt.client_id, namespace)
    mqtt.subscribe(reply_topic)
    return mqtt.request(
        request_topic=tracker_requests(namespace),
        response_topic=reply_topic,
        message={
            "type": "join_queue",
            "queue_id": queue_id,
            "name": name,
            "phone": phone,
            "party_size": int(party_size),
            "notes": notes,
        },
        timeout=timeout,
    )


def follow_entry(
    *,
    mqtt: MqttClient,
    namespace: str,
    entry_id: str,
    on_message: Callable[[str], None],
    timeout: float = 5.0,
) -> None:
    """Deliver notifications for one entry to `on_message`.

    A call published between the join reply and the subscription is never
    redelivered, so once subscribed the entry status is read back and an
    entry that is already `called` is reported straight away.
    """

    def on_notification(topic: str, msg: dict[str, Any]) -> None:
        if msg.get("entry_id") == entry_id and msg.get("message"):
            on_message(str(msg["message"]))

    mqtt.add_handler(on_notification)
    mqtt.subscribe(entry_notifications(entry_id, namespace))

    reply_topic = tracker_responses(mqtt.client_id, namespace)
    mqtt.subscribe(reply_topic)
    resp = mqtt.request(
        request_topic=tracker_requests(namespace),
        response_topic=reply_topic,
        message={"type": "entry_status", "entry_id": entry_id},
        timeout=timeout,
    )
    entry = resp.get("entry")
    if resp.get("type") == "entry_status_ok" and isinstance(entry, dict) and entry.get("status") == "called":
        on_message("Your table is ready! Please see the host and show your code.")


def main() -> None:
    from .config import add_mqtt_args, configure_logging

    parser = argparse.ArgumentParser(description="Customer client (MQTT)")
    add_mqtt_args(parser)
    parser.add_argument("--queue-id", required=True)
    parser.add_argument("--name", required=True)
    parser.add_argument("--phone", required=True)
    parser.add_argument("--party-size", type=int, default=1)
    parser.add_argument("--notes", default="")
    parser.add_argument("--wait", action="store_true", help="stay connected and print notifications")
    args = parser.parse_args()
    configure_logging(args.log_level)

    # Unique client id so multiple customers can run concurrently.
    client_id = f"customer-{int(time.time() * 1000)}"
    mqtt = MqttClient(client_id=client_id, host=args.mqtt_host, port=args.mqtt_port)
    mqtt.start()

    try:
        resp = join_queue(
            mqtt=mqtt,
            namespace=args.namespace,
            queue_id=args.queue_id,
            name=args.name,
            phone=args.phone,
            party_size=args.party_size,
            notes=args.notes,
        )
        if resp.get("type") != "join_queue_ok":
            print(f"[customer {args.name}] error: {resp.get('code')}: {resp.get('message')}")
            return

        entry = resp["entry"]
        print(
            f"[customer {args.name}] joined as {entry['entry_id']} "
            f"(position {entry['position']}, ~{entry['estimated_wait_time']} min, code {entry['verification_code']})"
        )
        if not args.wait:
            return

        follow_entry(
            mqtt=mqtt,
            namespace=args.namespace,
            entry_id=entry["entry_id"],
            on_message=lambda text: print(f"[customer {args.name}] {text}"),
        )
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        mqtt.stop()


if __name__ == "__main__":
    main()
