"""MQTT helper built on top of paho-mqtt.

paho-mqtt is callback-based. Dashboards and CLI clients want a plain
"send a request, get the reply" call, so this wrapper offers:
- `MqttClient.start()/stop()`: connection plus the background network loop
- `publish()`: JSON encode and send, reporting whether the client accepted it
- `request()`: publish and block until the reply carrying the same `corr_id`
  arrives on the caller's response topic

Messages that do not decode to a JSON object are dropped and logged.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, dict[str, Any]], None]


@dataclass(frozen=True)
class PendingReply:
    corr_id: str
    q: "queue.Queue[dict[str, Any]]"


class MqttClient:
    """JSON request/response and pub/sub over one paho-mqtt connection."""

    def __init__(
        self,
        *,
        client_id: str,
        host: str,
        port: int,
        keepalive: int = 30,
        qos: int = 1,
    ) -> None:
        self.client_id = client_id
        self.host = host
        self.port = port
        self.keepalive = keepalive
        self.qos = qos

        self._client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id, clean_session=True)
        self._client.on_message = self._on_message
        self._client.on_connect = self._on_connect

        self._handlers: list[MessageHandler] = []

        # corr_id -> reply slot used by request()
        self._pending: dict[str, PendingReply] = {}
        self._lock = threading.Lock()

        self._started = False

    def start(self) -> None:
        if self._started:
            return
        self._client.connect(self.host, self.port, keepalive=self.keepalive)
        self._client.loop_start()
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return
        self._client.loop_stop()
        self._client.disconnect()
        self._started = False

    def add_handler(self, handler: MessageHandler) -> None:
        self._handlers.append(handler)

    def subscribe(self, topic: str) -> None:
        self._client.subscribe(topic, qos=self.qos)

    def publish(self, topic: str, message: dict[str, Any]) -> bool:
        payload = json.dumps(message, separators=(",", ":"), default=str).encode("utf-8")
        info = self._client.publish(topic, payload=payload, qos=self.qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning("publish to %s failed: %s", topic, mqtt.error_string(info.rc))
            return False
        return True

    def request(
        self,
        *,
        request_topic: str,
        response_topic: str,
        message: dict[str, Any],
        timeout: float = 5.0,
    ) -> dict[str, Any]:
        """Publish a request and wait for its correlated reply.

        The caller must already be subscribed to `response_topic`.
        """
        corr_id = str(uuid.uuid4())
        msg = dict(message)
        msg["corr_id"] = corr_id
        msg["reply_to"] = response_topic

        q: "queue.Queue[dict[str, Any]]" = queue.Queue(maxsize=1)
        with self._lock:
            self._pending[corr_id] = PendingReply(corr_id=corr_id, q=q)

        try:
            if not self.publish(request_topic, msg):
                raise ConnectionError(f"Could not publish request to {request_topic}")
            return q.get(timeout=timeout)
        except queue.Empty as e:
            raise TimeoutError(f"No response for corr_id={corr_id}") from e
        finally:
            with self._lock:
                self._pending.pop(corr_id, None)

    # -------------------- internal callbacks --------------------

    def _on_connect(self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any) -> None:
        logger.info("mqtt %s connected to %s:%s (%s)", self.client_id, self.host, self.port, reason_code)

    def _on_message(self, client: mqtt.Client, userdata: Any, msg: mqtt.MQTTMessage) -> None:
        raw = msg.payload
        try:
            data = json.loads(raw.decode("utf-8") if isinstance(raw, bytes) else str(raw))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("dropping undecodable message on %s", msg.topic)
            return
        if not isinstance(data, dict):
            logger.warning("dropping non-object message on %s", msg.topic)
            return

        corr_id = data.get("corr_id")
        if isinstance(corr_id, str):
            with self._lock:
                pending = self._pending.get(corr_id)
            if pending is not None:
                try:
                    pending.q.put_nowait(data)
                except queue.Full:
                    logger.debug("duplicate reply for corr_id=%s ignored", corr_id)
                return

        for h in list(self._handlers):
            try:
                h(msg.topic, data)
            except Exception:
                # Keep the network loop alive; the handler's failure is its own.
                logger.exception("handler failed for message on %s", msg.topic)
