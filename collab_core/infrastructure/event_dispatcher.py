# collab_core/infrastructure/event_dispatcher.py
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable

from collab_core.domain.events import Event

EventHandler = Callable[[Event], Awaitable[None]]


class EventDispatcher:
    """Fans an event out to every async handler registered for its class name.

    Events are dispatched after the state they describe has been committed,
    so a failing handler is logged and the remaining handlers still run.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self.logger = logger or logging.getLogger("CollabCore")

    def register(self, event_type: str, handler: EventHandler) -> None:
        self.handlers[event_type].append(handler)

    def unregister(self, event_type: str, handler: EventHandler) -> None:
        if handler in self.handlers[event_type]:
            self.handlers[event_type].remove(handler)

    async def dispatch(self, event: Event) -> None:
        event_type = event.__class__.__name__
        for handler in list(self.handlers[event_type]):
            try:
                await handler(event)
            except Exception:
                self.logger.exception(f"Handler {handler!r} failed for {event_type}")
