from datetime import datetime, timezone

import pytest

from restaurant_queue.errors import Busy, NotFound
from restaurant_queue.models import Queue, QueueEntry
from restaurant_queue.store import InMemoryQueueStore


def new_entry(entry_id):
    return QueueEntry(
        entry_id=entry_id,
        queue_id="Q",
        merchant_id="m1",
        customer_name="Ana",
        customer_phone="1",
        party_size=2,
        joined_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        verification_code="ABCD",
    )


def make_store():
    store = InMemoryQueueStore()
    store.create_queue(Queue(queue_id="Q", merchant_id="m1", name="Main"))
    return store


def test_commit_makes_changes_visible():
    store = make_store()
    txn = store.begin("Q", timeout=0.1)
    txn.add_entry(new_entry("e1"))
    assert store.queue_entries("Q") == []
    txn.commit()
    assert [e.entry_id for e in store.queue_entries("Q")] == ["e1"]
    assert store.get_entry("e1").sequence > 0


def test_rollback_discards_changes_and_releases_lock():
    store = make_store()
    txn = store.begin("Q", timeout=0.1)
    txn.add_entry(new_entry("e1"))
    txn.queue.is_open = False
    txn.rollback()
    assert store.queue_entries("Q") == []
    assert store.get_queue("Q").is_open

    store.begin("Q", timeout=0.1).rollback()


def test_reads_return_copies():
    store = make_store()
    txn = store.begin("Q", timeout=0.1)
    txn.add_entry(new_entry("e1"))
    txn.commit()
    e = store.get_entry("e1")
    e.customer_name = "changed"
    assert store.get_entry("e1").customer_name == "Ana"


def test_second_begin_times_out_with_busy():
    store = make_store()
    txn = store.begin("Q", timeout=0.1)
    try:
        with pytest.raises(Busy):
            store.begin("Q", timeout=0.01)
    finally:
        txn.rollback()


def test_remove_entry_on_commit():
    store = make_store()
    txn = store.begin("Q", timeout=0.1)
    txn.add_entry(new_entry("e1"))
    txn.commit()

    txn = store.begin("Q", timeout=0.1)
    txn.remove_entry("e1")
    txn.commit()
    with pytest.raises(NotFound):
        store.get_entry("e1")


def test_unknown_queue_and_duplicates():
    store = make_store()
    with pytest.raises(NotFound):
        store.begin("nope", timeout=0.1)
    with pytest.raises(ValueError):
        store.create_queue(Queue(queue_id="Q", merchant_id="m1", name="Again"))
    assert [q.queue_id for q in store.list_queues(merchant_id="m1")] == ["Q"]
    assert store.list_queues(merchant_id="other") == []
