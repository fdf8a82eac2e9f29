from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from pydantic import BaseModel

from sitebuilder.core.state import StateSnapshot
from sitebuilder.utils.logging import get_logger

from . import utils as db_utils
from .db import get_session

LOGGER = get_logger(__name__)


class ProjectSummary(BaseModel):
    id: str
    name: str
    status: str
    current_step: str


class PersistenceAdapter(ABC):
    """Durable store for project snapshots. Only the snapshot subset is ever saved."""

    @abstractmethod
    async def save(self, snapshot: StateSnapshot) -> None:
        ...

    @abstractmethod
    async def load(self, project_id: str) -> Optional[StateSnapshot]:
        ...

    @abstractmethod
    async def delete(self, project_id: str) -> bool:
        ...

    @abstractmethod
    async def list_projects(self) -> List[ProjectSummary]:
        ...


class SqlPersistenceAdapter(PersistenceAdapter):

    async def save(self, snapshot: StateSnapshot) -> None:
        project = snapshot.project
        async with get_session() as session:
            await db_utils.upsert_snapshot(
                session,
                project_id=project.id,
                name=project.name,
                status=project.status,
                current_step=project.current_step.value,
                payload=snapshot.to_payload(),
            )
        LOGGER.debug("Saved snapshot for project %s", project.id)

    async def load(self, project_id: str) -> Optional[StateSnapshot]:
        async with get_session() as session:
            record = await db_utils.get_snapshot(session, project_id)
        if record is None:
            return None
        return StateSnapshot.model_validate(record.payload)

    async def delete(self, project_id: str) -> bool:
        async with get_session() as session:
            return await db_utils.delete_snapshot(session, project_id)

    async def list_projects(self) -> List[ProjectSummary]:
        async with get_session() as session:
            records = await db_utils.list_snapshots(session)
        return [
            ProjectSummary(id=r.project_id, name=r.name, status=r.status, current_step=r.current_step)
            for r in records
        ]


class InMemoryPersistenceAdapter(PersistenceAdapter):
    """Process-local adapter; payloads are stored serialized so loads never alias live state."""

    def __init__(self) -> None:
        self._payloads: Dict[str, dict] = {}

    async def save(self, snapshot: StateSnapshot) -> None:
        self._payloads[snapshot.project.id] = snapshot.to_payload()

    async def load(self, project_id: str) -> Optional[StateSnapshot]:
        payload = self._payloads.get(project_id)
        return StateSnapshot.model_validate(payload) if payload is not None else None

    async def delete(self, project_id: str) -> bool:
        return self._payloads.pop(project_id, None) is not None

    async def list_projects(self) -> List[ProjectSummary]:
        summaries = []
        for payload in self._payloads.values():
            project = payload["project"]
            summaries.append(ProjectSummary(
                id=project["id"],
                name=project["name"],
                status=project["status"],
                current_step=project["current_step"],
            ))
        return summaries


_persistence: Optional[PersistenceAdapter] = None


def get_persistence() -> PersistenceAdapter:
    global _persistence
    if _persistence is None:
        _persistence = SqlPersistenceAdapter()
    return _persistence


def set_persistence(adapter: Optional[PersistenceAdapter]) -> None:
    global _persistence
    _persistence = adapter
