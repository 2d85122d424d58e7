from __future__ import annotations

from fastapi import APIRouter, Query

from pwa_gen.application import get_history_service

router = APIRouter(prefix="/history", tags=["history"])


@router.get("")
def list_history(
    cursor: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=100),
) -> dict:
    page = get_history_service().history(cursor, limit)
    return page.as_dict()


@router.delete("")
def clear_history() -> dict:
    return {"cleared_count": get_history_service().clear_history()}
