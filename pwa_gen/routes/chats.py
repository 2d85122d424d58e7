from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from pwa_gen.application import get_chat_service

router = APIRouter(prefix="/chats", tags=["chats"])


@router.get("")
def list_chats(
    cursor: str | None = Query(default=None),
    limit: int = Query(default=10, ge=1, le=100),
) -> dict:
    return get_chat_service().list(cursor, limit).as_dict()


@router.post("")
def create_chat(payload: dict) -> dict:
    board = get_chat_service().create(payload.get("title"))
    return {"id": board.id, "title": board.title}


@router.delete("/{chat_id}")
def delete_chat(chat_id: str) -> dict:
    return {"id": chat_id, "deleted": get_chat_service().delete(chat_id)}


@router.post("/delete-many")
def delete_chats(payload: dict) -> dict:
    ids = [item for item in payload.get("ids") or [] if isinstance(item, str) and item]
    if not ids:
        raise HTTPException(status_code=400, detail="ids required")
    return {"deleted_count": get_chat_service().delete_many(ids), "ids": ids}


@router.get("/{chat_id}/messages")
def list_messages(chat_id: str) -> dict:
    messages = get_chat_service().list_messages(chat_id)
    return {"items": [message.model_dump(mode="json") for message in messages]}


@router.post("/{chat_id}/messages")
def send_message(chat_id: str, payload: dict) -> dict:
    message = get_chat_service().send_message(chat_id, payload.get("user_id"), payload.get("text"))
    return message.model_dump(mode="json")
