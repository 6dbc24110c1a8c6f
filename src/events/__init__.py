"""In-process event bus for calendar changes."""

from src.events.emitter import emit, start_event_system, stop_event_system, subscribe, unsubscribe

__all__ = ["emit", "start_event_system", "stop_event_system", "subscribe", "unsubscribe"]
