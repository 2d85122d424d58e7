from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from pwa_gen.application import get_user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
def list_users(
    cursor: str | None = Query(default=None),
    limit: int = Query(default=10, ge=1, le=100),
) -> dict:
    return get_user_service().list(cursor, limit).as_dict()


@router.post("")
def create_user(payload: dict) -> dict:
    user = get_user_service().create(payload.get("name"))
    return user.model_dump(mode="json")


@router.delete("/{user_id}")
def delete_user(user_id: str) -> dict:
    return {"id": user_id, "deleted": get_user_service().delete(user_id)}


@router.post("/delete-many")
def delete_users(payload: dict) -> dict:
    ids = [item for item in payload.get("ids") or [] if isinstance(item, str) and item]
    if not ids:
        raise HTTPException(status_code=400, detail="ids required")
    return {"deleted_count": get_user_service().delete_many(ids), "ids": ids}
