"""
Dispatch Event Bus

In-process publish/subscribe channel for pipeline events.

WHAT THIS LAYER MUST NOT DO:
============================
- Modify pipeline behavior
- Block or fail the publisher when a subscriber fails

Events are kept in a bounded append-only history for inspection; an
external relay (websocket, log shipper) can subscribe like any other
handler.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Set
import asyncio
import inspect
import logging
import uuid

logger = logging.getLogger(__name__)


class EventType(Enum):
    HANDSHAKE_COMPLETED = "handshake"
    EXECUTION_STARTED = "execution_started"
    EXECUTION_COMPLETED = "execution_completed"
    PROMPT_TRANSFORMED = "prompt_transformed"
    RESPONSE_RECOVERED = "response_recovered"
    AUDIT_COMPLETED = "audit_completed"
    MATERIALIZATION_REQUESTED = "materialization_requested"
    MATERIALIZATION_COMPLETED = "materialization_completed"
    MATERIALIZATION_FAILED = "materialization_failed"
    NODE_REGISTERED = "node_registered"
    NODE_STATUS_CHANGED = "node_status_changed"
    ALERT = "alert"


class AlertLevel(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class DispatchEvent:
    event_id: str
    event_type: EventType
    payload: Any
    emitted_at: datetime


Handler = Callable[[DispatchEvent], Any]


class EventBus:
    """
    Append-only event channel with subscribers.

    Plain callables run inline. Coroutine handlers are scheduled as tasks
    on the running loop; drain() waits for them.
    """

    def __init__(self, history_limit: int = 1000):
        self._history: Deque[DispatchEvent] = deque(maxlen=history_limit)
        self._handlers: Dict[Optional[EventType], List[Handler]] = {}
        self._pending: Set[asyncio.Task] = set()

    def subscribe(
        self,
        handler: Handler,
        event_type: Optional[EventType] = None
    ) -> Callable[[], None]:
        """
        Register handler for one event type (or all when event_type is None).

        Returns a callable that removes the subscription.
        """
        self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe():
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, event_type: EventType, payload: Any = None) -> DispatchEvent:
        event = DispatchEvent(
            event_id=uuid.uuid4().hex,
            event_type=event_type,
            payload=payload,
            emitted_at=datetime.now(timezone.utc),
        )
        self._history.append(event)

        handlers = list(self._handlers.get(event_type, ())) + list(self._handlers.get(None, ()))
        for handler in handlers:
            self._dispatch(handler, event)
        return event

    def alert(self, level: AlertLevel, message: str) -> DispatchEvent:
        return self.publish(EventType.ALERT, {'level': level.value, 'message': message})

    async def drain(self):
        """Wait for all scheduled coroutine handlers to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def history(self, event_type: Optional[EventType] = None) -> List[DispatchEvent]:
        if event_type is None:
            return list(self._history)
        return [e for e in self._history if e.event_type is event_type]

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _dispatch(self, handler: Handler, event: DispatchEvent):
        try:
            if inspect.iscoroutinefunction(handler):
                self._schedule(handler(event), event)
            else:
                handler(event)
        except Exception:
            logger.exception("Event handler failed for %s", event.event_type.value)

    def _schedule(self, coro, event: DispatchEvent):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._guard(coro, event))
            return
        task = loop.create_task(self._guard(coro, event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @staticmethod
    async def _guard(coro, event: DispatchEvent):
        try:
            await coro
        except Exception:
            logger.exception("Async event handler failed for %s", event.event_type.value)
