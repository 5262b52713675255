"""
Minimal in-process event emitter.

Listeners own their subscription: `on()` and `once()` return a Subscription
that can be cancelled at any time, including from inside the handler.
"""

from collections.abc import Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

Handler = Callable[..., Any]


class Subscription:
    """Handle returned by EventEmitter.on() / once()."""

    __slots__ = ("_emitter", "event", "handler", "once", "_active")

    def __init__(self, emitter: "EventEmitter", event: str, handler: Handler, *, once: bool) -> None:
        self._emitter = emitter
        self.event = event
        self.handler = handler
        self.once = once
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Detach the handler. Idempotent."""
        if not self._active:
            return
        self._active = False
        self._emitter._remove(self)

    def __repr__(self) -> str:
        state = "active" if self._active else "cancelled"
        return f"Subscription({self.event!r}, once={self.once}, {state})"


class EventEmitter:
    """
    Synchronous observer registry.

    Handlers run in registration order on the emitting call stack. A handler
    raising does not stop the remaining handlers; the error is logged and
    re-raised after all handlers have run.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = {}

    def on(self, event: str, handler: Handler) -> Subscription:
        return self._add(event, handler, once=False)

    def once(self, event: str, handler: Handler) -> Subscription:
        """Subscribe for the next emission of `event` only."""
        return self._add(event, handler, once=True)

    def off(self, event: str, handler: Handler | None = None) -> None:
        """Remove all handlers for `event`, or only `handler` if given."""
        for sub in list(self._subscriptions.get(event, [])):
            if handler is None or sub.handler == handler:
                sub.cancel()

    def emit(self, event: str, *args: Any) -> int:
        """
        Call every handler registered for `event`.

        Returns:
            Number of handlers called.
        """
        subscriptions = list(self._subscriptions.get(event, []))
        first_error: BaseException | None = None
        called = 0

        for sub in subscriptions:
            if not sub.active:
                continue
            if sub.once:
                sub.cancel()
            called += 1
            try:
                sub.handler(*args)
            except Exception as e:
                logger.error("Event handler failed", event_name=event, error_type=type(e).__name__)
                if first_error is None:
                    first_error = e

        if first_error is not None:
            raise first_error
        return called

    def listener_count(self, event: str) -> int:
        return len(self._subscriptions.get(event, []))

    def _add(self, event: str, handler: Handler, *, once: bool) -> Subscription:
        sub = Subscription(self, event, handler, once=once)
        self._subscriptions.setdefault(event, []).append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        subs = self._subscriptions.get(sub.event)
        if not subs:
            return
        try:
            subs.remove(sub)
        except ValueError:
            return
        if not subs:
            del self._subscriptions[sub.event]


def report_error(events: EventEmitter, error: Exception) -> None:
    """
    Emit `error` from a background task.

    Nothing awaits such a task for its result, so a failing `error` handler
    is logged here instead of being raised out of the task.
    """
    try:
        events.emit("error", error)
    except Exception as e:
        logger.error("Error handler failed", error_type=type(e).__name__)
