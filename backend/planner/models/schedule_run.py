from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, Float, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from planner.db.base import Base, new_uuid


class ScheduleRunStatus(str, Enum):
    perfect = "perfect"
    best_effort = "best_effort"


class ScheduleRun(Base):
    __tablename__ = "schedule_runs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    status: Mapped[ScheduleRunStatus] = mapped_column(
        SAEnum(ScheduleRunStatus, name="schedule_run_status"),
        nullable=False,
        index=True,
    )
    fitness: Mapped[float] = mapped_column(Float, nullable=False)
    stats: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    result: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    inputs_summary: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    generations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    runtime_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    random_seed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
