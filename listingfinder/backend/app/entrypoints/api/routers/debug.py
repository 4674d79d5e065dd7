# app/entrypoints/api/routers/debug.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import require_api_key
from ....config import settings
from ....db import get_session
from ....schemas import WorkflowRunOut
from ....service_layer.runs import latest_runs, run_to_dict

router = APIRouter(tags=["debug"])


@router.get("/debug/config", dependencies=[Depends(require_api_key)])
def debug_config() -> dict[str, Any]:
    """
    Reads the *running server's* settings. Secrets are reported as set/unset only.
    """
    return {
        "ENV": settings.ENV,
        "LISTINGS_DB_URL": settings.LISTINGS_DB_URL,
        "OPENAI_MODEL": settings.OPENAI_MODEL,
        "OPENAI_API_KEY_SET": bool(settings.OPENAI_API_KEY),
        "SERPAPI_KEY_SET": bool(settings.SERPAPI_KEY),
        "GUARDRAILS_ENABLED": settings.GUARDRAILS_ENABLED,
        "MAX_TURNS": settings.MAX_TURNS,
        "MAX_SEARCH_CALLS": settings.MAX_SEARCH_CALLS,
        "MAX_SEARCH_RESULTS": settings.MAX_SEARCH_RESULTS,
        "MAX_FETCH_CALLS": settings.MAX_FETCH_CALLS,
        "MAX_NORMALIZE_CALLS": settings.MAX_NORMALIZE_CALLS,
        "LISTING_CAP": settings.LISTING_CAP,
        "API_KEY_SET": bool(settings.API_KEY),
    }


@router.get("/runs/latest", response_model=list[WorkflowRunOut], dependencies=[Depends(require_api_key)])
async def runs_latest(
    limit: int = Query(default=5, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
) -> list[WorkflowRunOut]:
    rows = await latest_runs(session, limit=limit)
    return [WorkflowRunOut(**run_to_dict(r)) for r in rows]
