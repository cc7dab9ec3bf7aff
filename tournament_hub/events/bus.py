"""
Post-commit event bus

In-process publish/subscribe keyed by event type. Publishers call publish()
after their transaction has committed; handlers run either as background
asyncio tasks (default) or inline before publish() returns.

Handler failures are retried up to `attempts` times, then logged and
dropped. They never propagate to the publisher.
"""
import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set, Type

from fastapi import Request

from tournament_hub.config.settings import DispatchMode

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[Any]]


@dataclass(frozen=True)
class StandingUpdated:
    """A group standing row was written and committed."""
    standing_id: str
    group_id: str
    occurred_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class HandlerFailure:
    event: Any
    handler: str
    error: str
    attempts: int


class EventBus:
    """
    Routes committed events to their subscribers.

    Deterministic per event: handlers of one event run in subscription
    order. Nothing is persisted; events published during shutdown after
    close() are dropped.
    """

    def __init__(self, mode: str = DispatchMode.BACKGROUND, attempts: int = 1, failure_history: int = 50):
        if mode not in DispatchMode.ALL:
            raise ValueError(f"Unknown dispatch mode '{mode}'. Must be one of: {', '.join(DispatchMode.ALL)}")
        self.mode = mode
        self.attempts = max(1, attempts)
        self._handlers: Dict[Type, List[Handler]] = {}
        self._pending: Set[asyncio.Task] = set()
        self._closed = False
        self.recent_failures: Deque[HandlerFailure] = deque(maxlen=failure_history)

    def subscribe(self, event_type: Type, handler: Handler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)
        logger.info(f"Subscribed {getattr(handler, '__name__', handler)} to {event_type.__name__}")

    def handlers_for(self, event_type: Type) -> List[Handler]:
        return list(self._handlers.get(event_type, []))

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def publish(self, event: Any) -> None:
        """
        Deliver an event to every subscriber of its type.

        In background mode this only schedules the handlers and returns
        immediately. In inline mode it awaits them, still swallowing errors.
        """
        if self._closed:
            logger.warning(f"Event bus closed; dropping {type(event).__name__}")
            return

        handlers = self.handlers_for(type(event))
        if not handlers:
            return

        for handler in handlers:
            if self.mode == DispatchMode.INLINE:
                await self._dispatch(handler, event)
            else:
                task = asyncio.create_task(self._dispatch(handler, event))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

    async def _dispatch(self, handler: Handler, event: Any) -> Optional[Any]:
        name = getattr(handler, "__name__", repr(handler))
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.attempts + 1):
            try:
                return await handler(event)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                if attempt < self.attempts:
                    logger.warning(f"Handler {name} failed for {event} (attempt {attempt}/{self.attempts}): {e}")

        logger.error(
            f"Handler {name} gave up on {event} after {self.attempts} attempt(s): {last_error}",
            exc_info=last_error,
        )
        self.recent_failures.append(
            HandlerFailure(event=event, handler=name, error=str(last_error), attempts=self.attempts)
        )
        return None

    async def drain(self) -> None:
        """Wait for every scheduled handler, including ones scheduled while waiting."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Finish outstanding work and stop accepting events."""
        await self.drain()
        self._closed = True
        logger.info("Event bus closed")


def get_event_bus(request: Request) -> EventBus:
    """Dependency for the application's event bus"""
    return request.app.state.event_bus
