"""Event emitter and subscriber registry.

Async pub/sub for SystemEvents. The booking workflow emits an event for
every calendar mutation; the audit logger (and any notification
collaborator) subscribes at startup.

Usage:
    from src.events import emit

    await emit(SystemEvent(
        event_type=EventType.APPOINTMENT_BOOKED,
        doctor_id=appointment.doctor_id,
        appointment_id=appointment.id,
    ))

    # At startup:
    subscribe(audit_on_event)                                   # every event
    subscribe(notify_patient, [EventType.APPOINTMENT_CANCELLED])  # some events
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from src.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[SystemEvent], Coroutine[Any, Any, None]]

# ── Internal state ───────────────────────────────────────────────────

_subscribers: list[EventHandler] = []
_typed_subscribers: dict[EventType, list[EventHandler]] = {}
_queue: asyncio.Queue[SystemEvent] | None = None
_worker: asyncio.Task[None] | None = None


# ── Public API ───────────────────────────────────────────────────────


def subscribe(handler: EventHandler, event_types: list[EventType] | None = None) -> None:
    """Register ``handler`` for ``event_types`` (all events when None)."""
    if event_types is None:
        _subscribers.append(handler)
        logger.info("Registered global event subscriber: %s", handler.__name__)
        return
    for event_type in event_types:
        _typed_subscribers.setdefault(event_type, []).append(handler)
    logger.info(
        "Registered event subscriber %s for: %s",
        handler.__name__,
        [t.value for t in event_types],
    )


def unsubscribe(handler: EventHandler) -> None:
    if handler in _subscribers:
        _subscribers.remove(handler)
    for handlers in _typed_subscribers.values():
        if handler in handlers:
            handlers.remove(handler)


async def emit(event: SystemEvent) -> None:
    """Queue ``event`` for delivery; never waits on subscribers."""
    global _queue
    if _queue is None:
        _queue = asyncio.Queue()
    _ensure_worker()
    await _queue.put(event)
    logger.debug(
        "Event emitted: %s (doctor=%s appointment=%s)",
        event.event_type.value,
        event.doctor_id,
        event.appointment_id,
    )


# ── Background worker ────────────────────────────────────────────────


def _ensure_worker() -> None:
    global _worker
    if _worker is None or _worker.done():
        _worker = asyncio.create_task(_drain())


async def _drain() -> None:
    """Deliver queued events until cancelled."""
    while _queue is not None:
        event = await _queue.get()
        try:
            await _dispatch(event)
        except Exception:
            logger.exception("Error dispatching %s", event.event_type.value)
        finally:
            _queue.task_done()


async def _dispatch(event: SystemEvent) -> None:
    handlers = [*_subscribers, *_typed_subscribers.get(event.event_type, [])]
    if not handlers:
        return
    results = await asyncio.gather(*(handler(event) for handler in handlers), return_exceptions=True)
    for handler, result in zip(handlers, results, strict=True):
        if isinstance(result, Exception):
            logger.error(
                "Event handler %s failed for %s: %s",
                handler.__name__,
                event.event_type.value,
                result,
            )


# ── Lifecycle ────────────────────────────────────────────────────────


async def start_event_system() -> None:
    """Create the queue and worker. Call during FastAPI lifespan startup."""
    global _queue
    _queue = asyncio.Queue()
    _ensure_worker()
    logger.info(
        "Event system started with %d global + %d typed subscribers",
        len(_subscribers),
        sum(len(v) for v in _typed_subscribers.values()),
    )


async def stop_event_system() -> None:
    """Deliver pending events, then stop the worker."""
    global _worker, _queue

    if _queue is not None:
        await _queue.join()

    if _worker is not None and not _worker.done():
        _worker.cancel()
        try:
            await _worker
        except asyncio.CancelledError:
            pass

    _worker = None
    _queue = None
    logger.info("Event system stopped")
