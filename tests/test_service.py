import random

from restaurant_queue.clock import ManualClock
from restaurant_queue.service import MqttQueueTrackerService
from restaurant_queue.store import InMemoryQueueStore
from restaurant_queue.tracker import QueueTracker


class FakeMqtt:
    """Records what the service publishes instead of talking to a broker."""

    def __init__(self):
        self.published = []
        self.subscriptions = []
        self.handlers = []

    def publish(self, topic, message):
        self.published.append((topic, message))
        return True

    def subscribe(self, topic):
        self.subscriptions.append(topic)

    def add_handler(self, handler):
        self.handlers.append(handler)


def make_service():
    mqtt = FakeMqtt()
    tracker = QueueTracker(InMemoryQueueStore(), clock=ManualClock(), rng=random.Random(3))
    tracker.create_queue(merchant_id="m1", name="Main", average_service_time=10, queue_id="Q")
    service = MqttQueueTrackerService(mqtt=mqtt, tracker=tracker, namespace="demo")
    return service, mqtt


def request(service, mqtt, message):
    mqtt.published.clear()
    service._handle_message("demo/tracker/requests", {**message, "reply_to": "r", "corr_id": "c1"})
    replies = [m for t, m in mqtt.published if t == "r"]
    assert len(replies) == 1
    assert replies[0]["corr_id"] == "c1"
    return replies[0]


def join(service, mqtt, name):
    resp = request(service, mqtt, {"type": "join_queue", "queue_id": "Q", "name": name, "phone": "+1555", "party_size": 2})
    assert resp["type"] == "join_queue_ok"
    return resp["entry"]


def test_join_reply_carries_position_and_code_and_broadcasts():
    service, mqtt = make_service()
    entry = join(service, mqtt, "Ana")
    assert entry["position"] == 1
    assert entry["estimated_wait_time"] == 10
    assert len(entry["verification_code"]) == 4

    updates = [m for t, m in mqtt.published if t == "demo/queues/Q/updates"]
    assert len(updates) == 1
    assert updates[0]["type"] == "queue_update"
    assert [e["entry_id"] for e in updates[0]["waiting"]] == [entry["entry_id"]]


def test_call_then_seat_flow():
    service, mqtt = make_service()
    a = join(service, mqtt, "Ana")
    b = join(service, mqtt, "Ben")

    resp = request(service, mqtt, {"type": "call_next", "queue_id": "Q"})
    assert resp["type"] == "call_next_ok"
    assert resp["entry"]["entry_id"] == a["entry_id"]
    assert resp["entry"]["status"] == "called"
    assert "verification_code" not in resp["entry"]

    status = request(service, mqtt, {"type": "entry_status", "entry_id": b["entry_id"]})
    assert status["entry"]["position"] == 1

    bad = request(service, mqtt, {"type": "seat", "entry_id": a["entry_id"], "verification_code": "0000"})
    assert bad == {"type": "error", "code": "invalid_code", "message": bad["message"], "corr_id": "c1"}

    ok = request(
        service,
        mqtt,
        {"type": "seat", "entry_id": a["entry_id"], "verification_code": a["verification_code"].lower()},
    )
    assert ok["entry"]["status"] == "completed"


def test_errors_use_shared_envelope():
    service, mqtt = make_service()
    a = join(service, mqtt, "Ana")

    resp = request(service, mqtt, {"type": "mark_no_show", "entry_id": a["entry_id"]})
    assert resp["code"] == "invalid_transition"

    resp = request(service, mqtt, {"type": "call", "entry_id": "nope"})
    assert resp["code"] == "not_found"

    resp = request(service, mqtt, {"type": "join_queue", "queue_id": "Q", "name": "Ana", "phone": "1", "party_size": "lots"})
    assert resp["code"] == "bad_request"

    resp = request(service, mqtt, {"type": "join_queue", "queue_id": "Q", "phone": "1"})
    assert resp["code"] == "bad_request"

    resp = request(service, mqtt, {"type": "dance"})
    assert resp["code"] == "bad_request"


def test_closed_queue_rejects_join():
    service, mqtt = make_service()
    resp = request(service, mqtt, {"type": "set_queue_open", "queue_id": "Q", "is_open": False})
    assert resp["queue"]["is_open"] is False
    resp = request(service, mqtt, {"type": "join_queue", "queue_id": "Q", "name": "Ana", "phone": "1"})
    assert resp["code"] == "queue_closed"


def test_create_queue_and_stats():
    service, mqtt = make_service()
    resp = request(service, mqtt, {"type": "create_queue", "merchant_id": "m2", "name": "Patio", "capacity": 5})
    queue_id = resp["queue"]["queue_id"]
    assert resp["queue"]["capacity"] == 5

    resp = request(service, mqtt, {"type": "queue_stats", "queue_id": queue_id})
    assert resp["stats"]["waiting_count"] == 0


def test_requests_without_reply_topic_are_ignored():
    service, mqtt = make_service()
    service._handle_message("demo/tracker/requests", {"type": "join_queue", "queue_id": "Q", "name": "A", "phone": "1"})
    assert mqtt.published == []
    assert service.tracker.waiting_entries("Q") == []


def test_start_subscribes_to_requests():
    service, mqtt = make_service()
    service.start(publish_status_every=60)
    try:
        assert mqtt.subscriptions == ["demo/tracker/requests"]
        assert mqtt.handlers == [service._handle_message]
    finally:
        service.stop()


def test_party_size_must_be_a_whole_number():
    service, mqtt = make_service()
    resp = request(service, mqtt, {"type": "join_queue", "queue_id": "Q", "name": "Ana", "phone": "1", "party_size": 2.7})
    assert resp["code"] == "bad_request"
    assert service.tracker.waiting_entries("Q") == []

    resp = request(service, mqtt, {"type": "join_queue", "queue_id": "Q", "name": "Ana", "phone": "1", "party_size": 2.0})
    assert resp["type"] == "join_queue_ok"
    assert resp["entry"]["party_size"] == 2
