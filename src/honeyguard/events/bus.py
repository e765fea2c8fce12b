"""In-memory event bus using asyncio queues.

The scoring engine publishes what it decides here; whatever pushes
updates to dashboards or notification channels subscribes. The engine
never waits on a subscriber.

Design:
- Each subscriber gets its own bounded asyncio.Queue; when full, the
  oldest queued event is dropped
- Subscriptions match exactly ("alert.raised") or by prefix ("honeypot.*")
- A bounded history buffer lets late subscribers replay recent events
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class EventType(str, Enum):
    """All event types in the system.

    Naming convention: {area}.{action}
    """

    REQUEST_SCORED = "traffic.scored"
    ALERT_RAISED = "alert.raised"
    NOVEL_PATTERN = "pattern.novel"
    ANOMALY_SWEEP = "anomaly.sweep"
    HONEYPOT_EVENT = "honeypot.event"
    HONEYPOT_FLUSH = "honeypot.flush"


@dataclass
class Event:
    """An event in the system.

    Attributes:
        type: The event type (EventType value or custom string)
        data: JSON-serializable payload
        source: Component that emitted the event (e.g. "threat_engine")
        timestamp: Creation time (epoch seconds)
        event_id: Monotonic ID assigned on publish
    """

    type: str
    data: dict[str, Any]
    source: str = ""
    timestamp: float = field(default_factory=time.time)
    event_id: int = 0


def _matches(pattern: str, event_type: str) -> bool:
    if pattern == "*":
        return True
    if pattern.endswith(".*"):
        return event_type.startswith(pattern[:-1])
    return pattern == event_type


@dataclass
class _Subscription:
    queue: asyncio.Queue[Event]
    pattern: str


class EventBus:
    """In-memory publish/subscribe event bus. Single-process only.

    Usage:
        bus = EventBus()
        queue = bus.subscribe("honeypot.*")
        await bus.publish(Event(type=EventType.HONEYPOT_FLUSH.value, data={...}))
        event = await queue.get()
        bus.unsubscribe(queue)
    """

    def __init__(self, history_size: int = 1000) -> None:
        self._subscriptions: list[_Subscription] = []
        self._history: list[Event] = []
        self._history_size = history_size
        self._event_counter = 0
        self._lock = asyncio.Lock()

    def subscribe(self, pattern: str, queue_size: int = 1000) -> asyncio.Queue[Event]:
        """Subscribe to events matching an exact type, a "prefix.*" or "*"."""
        queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=queue_size)
        self._subscriptions.append(_Subscription(queue=queue, pattern=pattern))
        return queue

    def unsubscribe(self, queue: asyncio.Queue[Event]) -> None:
        self._subscriptions = [s for s in self._subscriptions if s.queue is not queue]

    async def publish(self, event: Event) -> int:
        """Publish an event to all matching subscribers.

        Returns:
            Number of subscribers that received the event
        """
        async with self._lock:
            self._event_counter += 1
            event.event_id = self._event_counter
            self._history.append(event)
            if len(self._history) > self._history_size:
                self._history = self._history[-self._history_size:]

        delivered = 0
        for sub in self._subscriptions:
            if not _matches(sub.pattern, event.type):
                continue
            if sub.queue.full():
                sub.queue.get_nowait()
            sub.queue.put_nowait(event)
            delivered += 1
        return delivered

    async def emit(self, event_type: EventType, data: dict[str, Any], source: str = "") -> int:
        """Shorthand for publishing an EventType with a payload."""
        return await self.publish(Event(type=event_type.value, data=data, source=source))

    def get_history(
        self,
        event_type: Optional[str] = None,
        since_id: int = 0,
        limit: int = 100,
    ) -> list[Event]:
        """Events from the history buffer, oldest first."""
        results = []
        for event in self._history:
            if event.event_id <= since_id:
                continue
            if event_type and not _matches(event_type, event.type):
                continue
            results.append(event)
            if len(results) >= limit:
                break
        return results

    @property
    def event_count(self) -> int:
        """Total events published since bus creation."""
        return self._event_counter

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)
