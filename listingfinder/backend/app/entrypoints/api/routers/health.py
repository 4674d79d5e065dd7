# app/entrypoints/api/routers/health.py
from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/")
def root() -> dict[str, object]:
    return {"ok": True, "service": "ListingFinder"}


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
