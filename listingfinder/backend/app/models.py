# app/models.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class WorkflowRunStatus(str, enum.Enum):
    running = "running"
    success = "success"
    empty = "empty"
    blocked = "blocked"
    failed = "failed"


class WorkflowRun(Base):
    """
    One row per POST /runWorkflow: what was asked, how it ended, what it cost.
    """
    __tablename__ = "workflow_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    query: Mapped[str] = mapped_column(Text)

    status: Mapped[WorkflowRunStatus] = mapped_column(
        Enum(WorkflowRunStatus), default=WorkflowRunStatus.running, index=True
    )
    final_state: Mapped[str | None] = mapped_column(String(32), nullable=True)
    listings_count: Mapped[int] = mapped_column(Integer, default=0)

    # {"searchRealEstateListings": 1, "fetchHtmlPage": 3, ..., "refused": 0}
    tool_calls_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    error: Mapped[str | None] = mapped_column(Text, nullable=True)
