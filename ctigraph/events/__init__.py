from ctigraph.events.bus import Event, EventBus, EventType

__all__ = ["Event", "EventBus", "EventType"]
