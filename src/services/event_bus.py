"""
Event Bus Service - synchronous fan-out of orchestrator lifecycle events

Key behaviors (tested in tests/test_services/test_event_bus.py):
- Weak references for automatic subscriber cleanup (WeakMethod for bound methods)
- Subscriber list snapshotted before dispatch, so callbacks may (un)subscribe
- Callback ID tracking for proper unsubscribe
- Duplicate subscription prevention
- Callback errors are logged and counted, never propagated to the publisher

Dispatch is synchronous on the publishing thread: the orchestrator is
single-threaded and event-driven, so there is no queue or worker thread.
"""

import logging
import weakref
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class Events(Enum):
    """Lifecycle events published by the effect orchestrator"""

    EFFECT_STARTED = "effect.started"  # New flow accepted
    EFFECT_STEP = "effect.step"  # A step is awaiting input
    EFFECT_SUBMITTED = "effect.submitted"  # POST accepted (2xx)
    EFFECT_SUBMIT_FAILED = "effect.submit_failed"  # Non-2xx, transport error, no endpoint
    EFFECT_RESET = "effect.reset"  # Flow returned to idle
    EFFECT_IGNORED = "effect.ignored"  # Malformed/unknown message or stale answer

    # Push channel
    PUSH_CONNECTION = "push.connection"


class EventBus:
    """
    Publish/subscribe hub for collaborators outside the orchestrator
    (notifier UI, clock overlay, debug log).
    """

    def __init__(self):
        # Subscribers stored as (callback_id, weak_ref_or_callback) tuples
        self._subscribers: dict[Events, list[tuple[int, Any]]] = {}

        self._stats = {
            "events_published": 0,
            "events_processed": 0,
            "errors": 0,
        }

    def subscribe(self, event: Events, callback: Callable, weak: bool = True):
        """
        Subscribe to an event.

        Args:
            event: Event to subscribe to
            callback: Called with {"name": event.value, "data": data}
            weak: Use weak reference for automatic cleanup (default True)
        """
        entries = self._subscribers.setdefault(event, [])
        cb_id = self._callback_id(callback)

        for existing_id, ref in entries:
            if existing_id == cb_id and self._resolve_callback(ref) is not None:
                logger.debug(f"Already subscribed to {event.value}, skipping duplicate")
                return

        # Drop a stale entry with a recycled id before re-subscribing
        entries[:] = [(cid, ref) for cid, ref in entries if cid != cb_id]

        if weak:
            try:
                if hasattr(callback, "__self__") and hasattr(callback, "__func__"):
                    ref = weakref.WeakMethod(callback)
                else:
                    ref = weakref.ref(callback)
            except TypeError:
                # Not weak-referenceable (e.g. builtins), store directly
                ref = callback
        else:
            ref = callback

        entries.append((cb_id, ref))
        logger.debug(f"Subscribed to {event.value}")

    def unsubscribe(self, event: Events, callback: Callable):
        """Unsubscribe from an event using callback ID matching."""
        entries = self._subscribers.get(event)
        if not entries:
            logger.debug(f"No subscribers for {event.value}, nothing to unsubscribe")
            return

        cb_id = self._callback_id(callback)
        remaining = [(cid, ref) for cid, ref in entries if cid != cb_id]
        if remaining:
            self._subscribers[event] = remaining
        else:
            self._subscribers.pop(event, None)
        logger.debug(f"Unsubscribed from {event.value}")

    def publish(self, event: Events, data: Any = None):
        """Dispatch an event to all live subscribers, in subscription order."""
        self._stats["events_published"] += 1

        alive = []
        callbacks = []
        for cb_id, ref in self._subscribers.get(event, []):
            callback = self._resolve_callback(ref)
            if callback is not None:
                alive.append((cb_id, ref))
                callbacks.append(callback)
        if event in self._subscribers:
            self._subscribers[event] = alive

        for callback in callbacks:
            try:
                callback({"name": event.value, "data": data})
                self._stats["events_processed"] += 1
            except Exception as e:
                self._stats["errors"] += 1
                logger.error(f"Error in callback for {event.value}: {e}", exc_info=True)

    @staticmethod
    def _callback_id(callback: Callable) -> int | tuple[int, int]:
        # Bound methods are recreated on every attribute access
        if hasattr(callback, "__self__") and hasattr(callback, "__func__"):
            return (id(callback.__self__), id(callback.__func__))
        return id(callback)

    def _resolve_callback(self, ref):
        """Safely resolve weak or direct callback reference"""
        if isinstance(ref, weakref.ReferenceType):
            return ref()
        if callable(ref):
            return ref
        return None

    def get_stats(self) -> dict[str, Any]:
        """Get event bus statistics."""
        stats = {
            "subscriber_count": sum(len(entries) for entries in self._subscribers.values()),
            "event_types": len(self._subscribers),
        }
        stats.update(self._stats)
        return stats

    def has_subscribers(self, event: Events) -> bool:
        """Return True if there are any live subscribers for an event."""
        return any(
            self._resolve_callback(ref) is not None for _, ref in self._subscribers.get(event, [])
        )

    def clear_all(self):
        """Clear all subscribers (for testing/cleanup)."""
        self._subscribers.clear()
        logger.debug("All subscribers cleared")


# Global instance
event_bus = EventBus()
