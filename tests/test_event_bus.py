"""Tests for the event bus system."""

import asyncio
import pytest
from honeyguard.events.bus import EventBus, Event, EventType


@pytest.mark.asyncio
async def test_publish_and_subscribe():
    """Basic pub/sub: subscriber receives published events."""
    bus = EventBus()
    queue = bus.subscribe("alert.raised")

    await bus.publish(Event(
        type="alert.raised",
        data={"source_ip": "10.0.0.1"},
        source="test",
    ))

    event = await asyncio.wait_for(queue.get(), timeout=1.0)
    assert event.type == "alert.raised"
    assert event.data["source_ip"] == "10.0.0.1"
    assert event.event_id == 1


@pytest.mark.asyncio
async def test_prefix_subscription():
    """Prefix subscriber receives all matching events."""
    bus = EventBus()
    queue = bus.subscribe("honeypot.*")

    await bus.emit(EventType.HONEYPOT_EVENT, {})
    await bus.emit(EventType.HONEYPOT_FLUSH, {})
    await bus.emit(EventType.ALERT_RAISED, {})  # Should NOT match

    event1 = await asyncio.wait_for(queue.get(), timeout=1.0)
    event2 = await asyncio.wait_for(queue.get(), timeout=1.0)

    assert event1.type == "honeypot.event"
    assert event2.type == "honeypot.flush"
    assert queue.empty()


@pytest.mark.asyncio
async def test_global_wildcard():
    """Global wildcard '*' receives everything."""
    bus = EventBus()
    queue = bus.subscribe("*")

    await bus.emit(EventType.REQUEST_SCORED, {})
    await bus.emit(EventType.ANOMALY_SWEEP, {})

    assert queue.qsize() == 2


@pytest.mark.asyncio
async def test_multiple_subscribers():
    """Multiple subscribers each get their own copy."""
    bus = EventBus()
    q1 = bus.subscribe("pattern.novel")
    q2 = bus.subscribe("pattern.novel")

    delivered = await bus.emit(EventType.NOVEL_PATTERN, {}, source="test")

    assert delivered == 2
    assert q1.qsize() == 1
    assert q2.qsize() == 1


@pytest.mark.asyncio
async def test_unsubscribe():
    """Unsubscribed queue stops receiving events."""
    bus = EventBus()
    queue = bus.subscribe("traffic.scored")

    await bus.emit(EventType.REQUEST_SCORED, {"n": 1})
    assert queue.qsize() == 1

    bus.unsubscribe(queue)

    await bus.emit(EventType.REQUEST_SCORED, {"n": 2})
    assert queue.qsize() == 1


@pytest.mark.asyncio
async def test_event_history():
    """History buffer keeps only the most recent events."""
    bus = EventBus(history_size=5)

    for i in range(10):
        await bus.emit(EventType.REQUEST_SCORED, {"i": i})

    history = bus.get_history()
    assert len(history) == 5
    assert history[0].data["i"] == 5


@pytest.mark.asyncio
async def test_history_since_id_and_type():
    bus = EventBus()

    await bus.emit(EventType.REQUEST_SCORED, {})
    await bus.emit(EventType.HONEYPOT_EVENT, {})
    await bus.emit(EventType.REQUEST_SCORED, {})
    await bus.emit(EventType.HONEYPOT_FLUSH, {})

    since = bus.get_history(since_id=2)
    assert [e.event_id for e in since] == [3, 4]

    honeypot = bus.get_history(event_type="honeypot.*")
    assert [e.type for e in honeypot] == ["honeypot.event", "honeypot.flush"]


@pytest.mark.asyncio
async def test_queue_full_drops_oldest():
    """When queue is full, oldest event is dropped to make room."""
    bus = EventBus()
    queue = bus.subscribe("traffic.scored", queue_size=2)

    for n in range(1, 4):
        await bus.emit(EventType.REQUEST_SCORED, {"n": n})

    events = []
    while not queue.empty():
        events.append(await queue.get())

    assert [e.data["n"] for e in events] == [2, 3]


def test_event_counter():
    bus = EventBus()
    assert bus.event_count == 0
    assert bus.subscriber_count == 0

    bus.subscribe("alert.raised")
    assert bus.subscriber_count == 1
