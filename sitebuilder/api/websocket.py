from __future__ import annotations

import json
from datetime import datetime, timezone

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from sitebuilder.core.event_bus import BuilderEvent
from sitebuilder.core.session import get_session_registry
from sitebuilder.core.viewers import get_project_viewers

router = APIRouter()


@router.websocket("/ws/builder/{project_id}")
async def builder_socket(websocket: WebSocket, project_id: str) -> None:
    viewers = get_project_viewers()
    await viewers.attach(project_id, websocket)
    try:
        hello = BuilderEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            project_id=project_id,
            source="system",
            msg="WebSocket connected",
        )
        await websocket.send_text(hello.model_dump_json())
        while True:
            payload = await websocket.receive_text()
            try:
                data = json.loads(payload)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict) and data.get("type") == "command" and data.get("command") == "status":
                session = get_session_registry().get(project_id)
                await websocket.send_json({
                    "type": "status",
                    "project_id": project_id,
                    "data": session.summary() if session else None,
                })
    except WebSocketDisconnect:
        pass
    finally:
        viewers.detach(project_id, websocket)
