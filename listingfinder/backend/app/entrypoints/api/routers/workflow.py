# app/entrypoints/api/routers/workflow.py
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_workflow_deps
from ....db import get_session
from ....models import WorkflowRunStatus
from ....schemas import RunWorkflowIn
from ....service_layer.errors import RunFailed
from ....service_layer.runs import finish_run, finish_run_fail, start_run
from ....service_layer.use_cases.run_workflow import WorkflowDeps, run_workflow

log = logging.getLogger(__name__)

router = APIRouter(tags=["workflow"])


@router.post("/runWorkflow")
async def run_workflow_endpoint(
    body: RunWorkflowIn,
    deps: WorkflowDeps = Depends(get_workflow_deps),
    session: AsyncSession = Depends(get_session),
) -> Any:
    run = await start_run(session, body.input_as_text)
    await session.commit()
    try:
        outcome = await run_workflow(body.input_as_text, deps)
    except RunFailed as e:
        log.warning("run %s failed: %s", run.id, e)
        await finish_run_fail(session, run, e)
        await session.commit()
        return JSONResponse(status_code=500, content={"error": str(e)})
    except Exception as e:
        log.exception("run %s crashed", run.id)
        await finish_run_fail(session, run, e)
        await session.commit()
        return JSONResponse(status_code=500, content={"error": str(e) or e.__class__.__name__})

    if outcome.blocked:
        await finish_run(session, run, WorkflowRunStatus.blocked, final_state=outcome.state)
    else:
        assert outcome.result is not None
        await finish_run(
            session,
            run,
            WorkflowRunStatus.success if outcome.result.listings else WorkflowRunStatus.empty,
            final_state=outcome.state,
            listings_count=len(outcome.result.listings),
            tool_calls=outcome.result.tool_calls,
        )
    await session.commit()
    return outcome.payload
