from restaurant_queue.mqtt_topics import entry_notifications, queue_updates, tracker_requests, tracker_responses


def test_topic_helpers():
    ns = "demo/v0"
    assert tracker_requests(ns) == "demo/v0/tracker/requests"
    assert tracker_responses("c1", ns) == "demo/v0/tracker/responses/c1"
    assert queue_updates("Q1", ns) == "demo/v0/queues/Q1/updates"
    assert entry_notifications("e1", ns) == "demo/v0/entries/e1/notifications"


def test_default_namespace():
    assert tracker_requests() == "restaurant/v0/tracker/requests"
