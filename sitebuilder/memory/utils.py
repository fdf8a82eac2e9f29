from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import ProjectSnapshotRecord, _utcnow


async def get_snapshot(session: AsyncSession, project_id: str) -> Optional[ProjectSnapshotRecord]:
    result = await session.execute(
        select(ProjectSnapshotRecord).where(ProjectSnapshotRecord.project_id == project_id)
    )
    return result.scalar_one_or_none()


async def list_snapshots(session: AsyncSession) -> Sequence[ProjectSnapshotRecord]:
    result = await session.execute(
        select(ProjectSnapshotRecord).order_by(ProjectSnapshotRecord.updated_at.desc())
    )
    return result.scalars().all()


async def upsert_snapshot(
    session: AsyncSession,
    *,
    project_id: str,
    name: str,
    status: str,
    current_step: str,
    payload: Dict[str, Any],
    commit: bool = True,
) -> ProjectSnapshotRecord:
    record = await get_snapshot(session, project_id)
    if record:
        record.name = name
        record.status = status
        record.current_step = current_step
        record.payload = payload
        record.saved_at = _utcnow()
        record.updated_at = _utcnow()
    else:
        record = ProjectSnapshotRecord(
            project_id=project_id,
            name=name,
            status=status,
            current_step=current_step,
            payload=payload,
            saved_at=_utcnow(),
        )
        session.add(record)

    if commit:
        await session.commit()
        await session.refresh(record)
    return record


async def delete_snapshot(session: AsyncSession, project_id: str, commit: bool = True) -> bool:
    result = await session.execute(
        delete(ProjectSnapshotRecord).where(ProjectSnapshotRecord.project_id == project_id)
    )
    if commit:
        await session.commit()
    return bool(result.rowcount)
