from restaurant_queue.customer import follow_entry


class FakeMqtt:
    """Answers entry_status requests with a canned reply and records call order."""

    def __init__(self, status):
        self.client_id = "customer-1"
        self.status = status
        self.events = []
        self.handlers = []

    def add_handler(self, handler):
        self.handlers.append(handler)

    def subscribe(self, topic):
        self.events.append(("subscribe", topic))

    def request(self, *, request_topic, response_topic, message, timeout=5.0):
        self.events.append(("request", message["type"]))
        return {"type": "entry_status_ok", "entry": {"entry_id": message["entry_id"], "status": self.status}}


def test_entry_called_before_subscribing_is_reported():
    mqtt = FakeMqtt("called")
    got = []
    follow_entry(mqtt=mqtt, namespace="demo", entry_id="e1", on_message=got.append)

    assert len(got) == 1
    assert "table is ready" in got[0]
    assert mqtt.events.index(("subscribe", "demo/entries/e1/notifications")) < mqtt.events.index(("request", "entry_status"))


def test_waiting_entry_only_reports_its_own_notifications():
    mqtt = FakeMqtt("waiting")
    got = []
    follow_entry(mqtt=mqtt, namespace="demo", entry_id="e1", on_message=got.append)
    assert got == []

    (handler,) = mqtt.handlers
    handler("demo/entries/e2/notifications", {"entry_id": "e2", "message": "not yours"})
    handler("demo/entries/e1/notifications", {"entry_id": "e1", "message": "Your table is ready"})
    assert got == ["Your table is ready"]
