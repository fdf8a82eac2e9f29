"""WebSocket viewers of builder sessions, grouped by project id."""
from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Dict, Optional, Set

from fastapi import WebSocket

from sitebuilder.utils.logging import get_logger

if TYPE_CHECKING:
    from sitebuilder.core.event_bus import BuilderEvent

LOGGER = get_logger(__name__)

SEND_TIMEOUT_SECONDS = 2.0


class ProjectViewers:

    def __init__(self, send_timeout: float = SEND_TIMEOUT_SECONDS) -> None:
        self._viewers: Dict[str, Set[WebSocket]] = {}
        self._send_timeout = send_timeout

    def count(self, project_id: str) -> int:
        return len(self._viewers.get(project_id, ()))

    async def attach(self, project_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self._viewers.setdefault(project_id, set()).add(websocket)
        LOGGER.info("Viewer attached to project %s (%d watching)", project_id, self.count(project_id))

    def detach(self, project_id: str, websocket: WebSocket) -> None:
        viewers = self._viewers.get(project_id)
        if viewers is None:
            return
        viewers.discard(websocket)
        if not viewers:
            del self._viewers[project_id]

    async def publish(self, event: BuilderEvent) -> int:
        """Send ``event`` to every viewer of its project and return how many got it.

        Viewers whose send fails or times out are detached.
        """
        viewers = list(self._viewers.get(event.project_id, ()))
        if not viewers:
            return 0

        message = event.model_dump_json()
        delivered = await asyncio.gather(*(self._send(ws, message) for ws in viewers))
        for websocket, ok in zip(viewers, delivered):
            if not ok:
                self.detach(event.project_id, websocket)
        return sum(delivered)

    async def _send(self, websocket: WebSocket, message: str) -> bool:
        try:
            await asyncio.wait_for(websocket.send_text(message), timeout=self._send_timeout)
        except Exception as exc:
            LOGGER.debug("Dropping viewer after failed send: %s", exc)
            return False
        return True


_viewers: Optional[ProjectViewers] = None


def get_project_viewers() -> ProjectViewers:
    global _viewers
    if _viewers is None:
        _viewers = ProjectViewers()
    return _viewers
