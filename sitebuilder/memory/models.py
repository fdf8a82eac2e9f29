from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlmodel import Column, DateTime, Field, JSON, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProjectSnapshotRecord(SQLModel, table=True):
    __tablename__ = "project_snapshots"

    project_id: str = Field(primary_key=True, index=True)
    name: str
    status: str = Field(default="draft")
    current_step: str = Field(default="initial")
    payload: Dict[str, Any] = Field(sa_column=Column(JSON, default=dict, nullable=False))
    saved_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), default=_utcnow)
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow),
    )
