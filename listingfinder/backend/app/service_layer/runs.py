# app/service_layer/runs.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import WorkflowRun, WorkflowRunStatus


async def start_run(session: AsyncSession, query: str) -> WorkflowRun:
    run = WorkflowRun(query=query, started_at=datetime.utcnow(), status=WorkflowRunStatus.running)
    session.add(run)
    await session.flush()
    return run


async def finish_run(
    session: AsyncSession,
    run: WorkflowRun,
    status: WorkflowRunStatus,
    *,
    final_state: str | None = None,
    listings_count: int = 0,
    tool_calls: dict[str, int] | None = None,
) -> None:
    run.status = status
    run.finished_at = datetime.utcnow()
    run.final_state = final_state
    run.listings_count = listings_count
    run.tool_calls_json = json.dumps(tool_calls or {})
    run.error = None
    await session.flush()


async def finish_run_fail(session: AsyncSession, run: WorkflowRun, err: Exception) -> None:
    run.status = WorkflowRunStatus.failed
    run.finished_at = datetime.utcnow()
    run.error = str(err)
    await session.flush()


async def latest_runs(session: AsyncSession, limit: int = 5) -> list[WorkflowRun]:
    stmt = select(WorkflowRun).order_by(WorkflowRun.id.desc()).limit(int(limit))
    return list((await session.execute(stmt)).scalars().all())


def run_to_dict(r: WorkflowRun) -> dict[str, Any]:
    try:
        tool_calls = json.loads(r.tool_calls_json or "{}")
    except ValueError:
        tool_calls = {}
    return {
        "id": r.id,
        "status": r.status.value if isinstance(r.status, WorkflowRunStatus) else str(r.status),
        "query": r.query,
        "final_state": r.final_state,
        "listings_count": r.listings_count or 0,
        "tool_calls": tool_calls,
        "error": (r.error or "")[:1200] or None,
        "started_at": r.started_at,
        "finished_at": r.finished_at,
    }
