from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from sitebuilder.core.viewers import get_project_viewers
from sitebuilder.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BuilderEvent(BaseModel):
    type: str = Field(default="event")  # generation.started | generation.completed | generation.failed | ...
    timestamp: str
    project_id: str
    source: str
    level: str = Field(default="info")
    msg: str
    data: Dict[str, Any] = Field(default_factory=dict)


Listener = Callable[[BuilderEvent], Union[None, Awaitable[None]]]


class EventBus:
    """Fan-out of builder events to in-process listeners and WebSocket viewers."""

    def __init__(self, *, broadcast: bool = True) -> None:
        self._listeners: List[Listener] = []
        self._broadcast = broadcast

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def emit(
        self,
        project_id: Optional[str],
        msg: str,
        *,
        event_type: str = "event",
        source: str = "system",
        level: str = "info",
        data: Optional[Dict[str, Any]] = None,
    ) -> BuilderEvent:
        event = BuilderEvent(
            type=event_type,
            timestamp=datetime.now(timezone.utc).isoformat(),
            project_id=project_id or "",
            source=source,
            level=level,
            msg=msg,
            data=data or {},
        )

        for listener in list(self._listeners):
            try:
                result = listener(event)
                if result is not None:
                    await result
            except Exception:
                LOGGER.exception("Event listener failed for %s", event.type)

        # WS (best effort)
        if self._broadcast and project_id:
            try:
                await get_project_viewers().publish(event)
            except Exception as e:
                LOGGER.exception("Failed to broadcast WS event for project %s: %s", project_id, e)

        return event


_event_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus
