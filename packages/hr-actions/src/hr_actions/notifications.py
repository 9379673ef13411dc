"""Lifecycle events for actions.

Listeners run synchronously after the transition has been saved, in
registration order. A listener that raises is logged and skipped. A listener
registered for ``ALL_EVENTS`` sees every event and also receives the event
name as ``event``.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable

import structlog

logger = structlog.get_logger()

EventCallback = Callable[..., None]

ACTION_CREATED = "action_created"
ACTION_STARTED = "action_started"
ACTION_COMPLETED = "action_completed"  # also carries ``recipients``
ACTION_FAILED = "action_failed"  # also carries ``error``
ACTION_CANCELLED = "action_cancelled"
ACTION_APPROVED = "action_approved"  # also carries ``approver``
ALL_EVENTS = "*"


class EventBus:
    """Named lifecycle events with synchronous listeners."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[EventCallback]] = defaultdict(list)

    def on(self, event: str, callback: EventCallback) -> None:
        self._listeners[event].append(callback)

    def off(self, event: str, callback: EventCallback) -> bool:
        """Remove a listener. Returns False if it was not registered."""
        listeners = self._listeners.get(event, [])
        if callback not in listeners:
            return False
        listeners.remove(callback)
        return True

    def emit(self, event: str, **kwargs: Any) -> None:
        action = kwargs.get("action")
        logger.debug("action_event", event_name=event, action_id=getattr(action, "id", None))
        for callback in list(self._listeners.get(event, [])):
            self._call(event, callback, kwargs)
        for callback in list(self._listeners.get(ALL_EVENTS, [])):
            self._call(event, callback, {"event": event, **kwargs})

    @staticmethod
    def _call(event: str, callback: EventCallback, kwargs: dict[str, Any]) -> None:
        # Runs after the save, so listener failures never reach the caller.
        try:
            callback(**kwargs)
        except Exception:
            action = kwargs.get("action")
            logger.exception(
                "action_listener_failed",
                event_name=event,
                action_id=getattr(action, "id", None),
                listener=getattr(callback, "__qualname__", repr(callback)),
            )
