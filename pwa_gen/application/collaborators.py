"""Seed-backed demo collaborators: users and chat boards."""
from __future__ import annotations

import time
import uuid
from collections.abc import Iterable

from pwa_gen.core.errors import NotFound, ValidationFailure
from pwa_gen.core.schema import ChatBoardState, ChatMessage, User
from pwa_gen.domain import CHAT, USER
from pwa_gen.infrastructure import EntityCollection, EntityStore, Page


def _require_text(value: str | None, field_name: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationFailure(f"{field_name} required")
    return text


class UserService:
    def __init__(self, store: EntityStore) -> None:
        self._users = EntityCollection(store, USER)

    def list(self, cursor: str | None = None, limit: int = 10) -> Page[User]:
        self._users.ensure_seed()
        return self._users.list(cursor, limit)

    def create(self, name: str | None) -> User:
        return self._users.create(User(id=uuid.uuid4().hex, name=_require_text(name, "name")))

    def delete(self, user_id: str) -> bool:
        return self._users.delete(user_id)

    def delete_many(self, ids: Iterable[str]) -> int:
        return self._users.delete_many(ids)


class ChatService:
    def __init__(self, store: EntityStore) -> None:
        self._chats = EntityCollection(store, CHAT)

    def list(self, cursor: str | None = None, limit: int = 10) -> Page[ChatBoardState]:
        self._chats.ensure_seed()
        return self._chats.list(cursor, limit)

    def create(self, title: str | None) -> ChatBoardState:
        board = ChatBoardState(id=uuid.uuid4().hex, title=_require_text(title, "title"))
        return self._chats.create(board)

    def delete(self, chat_id: str) -> bool:
        return self._chats.delete(chat_id)

    def delete_many(self, ids: Iterable[str]) -> int:
        return self._chats.delete_many(ids)

    def list_messages(self, chat_id: str) -> list[ChatMessage]:
        board = self._chats.entity(chat_id)
        if not board.exists():
            raise NotFound("chat not found")
        return board.get_state().messages

    def send_message(self, chat_id: str, user_id: str | None, text: str | None) -> ChatMessage:
        board = self._chats.entity(chat_id)
        if not board.exists():
            raise NotFound("chat not found")
        message = ChatMessage(
            id=uuid.uuid4().hex,
            chat_id=chat_id,
            user_id=_require_text(user_id, "user_id"),
            text=_require_text(text, "text"),
            ts=int(time.time() * 1000),
        )
        board.mutate(lambda state: state.model_copy(update={"messages": [*state.messages, message]}))
        return message
