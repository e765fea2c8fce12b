"""Event system for pushing scoring decisions to subscribers."""

from honeyguard.events.bus import Event, EventBus, EventType

__all__ = ["EventBus", "Event", "EventType"]
