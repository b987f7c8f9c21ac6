from __future__ import annotations

# Merchant client.
#
# One-shot commands a host stand would issue against the tracker service:
# call, call-next, seat, no-show, withdraw, renotify, status, stats.

import argparse
import json
import time
from typing import Any

from .mqtt_client import MqttClient
from .mqtt_topics import tracker_requests, tracker_responses

# CLI action -> (request type, field the target id goes in)
ACTIONS: dict[str, tuple[str, str]] = {
    "call": ("call", "entry_id"),
    "call-next": ("call_next", "queue_id"),
    "seat": ("seat", "entry_id"),
    "no-show": ("mark_no_show", "entry_id"),
    "withdraw": ("withdraw", "entry_id"),
    "renotify": ("renotify", "entry_id"),
    "entry": ("entry_status", "entry_id"),
    "status": ("queue_status", "queue_id"),
    "stats": ("queue_stats", "queue_id"),
    "open": ("set_queue_open", "queue_id"),
    "close": ("set_queue_open", "queue_id"),
}


def build_request(action: str, target: str, *, code: str | None = None, reason: str | None = None) -> dict[str, Any]:
    if action not in ACTIONS:
        raise ValueError(f"unknown action {action!r}")
    mtype, field = ACTIONS[action]
    msg: dict[str, Any] = {"type": mtype, field: target}
    if action == "seat":
        if not code:
            raise ValueError("seat requires a verification code")
        msg["verification_code"] = code
    if action == "withdraw" and reason:
        msg["reason"] = reason
    if mtype == "set_queue_open":
        msg["is_open"] = action == "open"
    return msg


def send_action(*, mqtt: MqttClient, namespace: str, message: dict[str, Any], timeout: float = 5.0) -> dict[str, Any]:
    reply_topic = tracker_responses(mqtt.client_id, namespace)
    mqtt.subscribe(reply_topic)
    return mqtt.request(
        request_topic=tracker_requests(namespace),
        response_topic=reply_topic,
        message=message,
        timeout=timeout,
    )


def main() -> None:
    from .config import add_mqtt_args, configure_logging

    parser = argparse.ArgumentParser(description="Merchant client (MQTT)")
    add_mqtt_args(parser)
    parser.add_argument("action", choices=sorted(ACTIONS))
    parser.add_argument("target", help="entry id, or queue id for call-next/status/stats/open/close")
    parser.add_argument("--code", default=None, help="verification code (seat)")
    parser.add_argument("--reason", default=None, help="withdraw reason")
    args = parser.parse_args()
    configure_logging(args.log_level)

    try:
        message = build_request(args.action, args.target, code=args.code, reason=args.reason)
    except ValueError as e:
        parser.error(str(e))

    mqtt = MqttClient(client_id=f"merchant-{int(time.time() * 1000)}", host=args.mqtt_host, port=args.mqtt_port)
    mqtt.start()
    try:
        resp = send_action(mqtt=mqtt, namespace=args.namespace, message=message)
    finally:
        mqtt.stop()

    if resp.get("type") == "error":
        print(f"[merchant] {args.action} failed: {resp.get('code')}: {resp.get('message')}")
        return
    resp.pop("corr_id", None)
    print(json.dumps(resp, indent=2))


if __name__ == "__main__":
    main()
