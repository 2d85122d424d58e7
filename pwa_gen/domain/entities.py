"""Entity kinds stored in the generic entity store."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from pydantic import BaseModel

from pwa_gen.core.schema import ArchiveBlob, ChatBoardState, ChatMessage, JobState, User

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class EntityConfig(Generic[T]):
    """Binds a kind tag to its record model and optional seed records."""

    kind: str
    model: type[T]
    seed: tuple[T, ...] = field(default_factory=tuple)


SEED_USERS: tuple[User, ...] = (
    User(id="u1", name="User A"),
    User(id="u2", name="User B"),
)

SEED_CHATS: tuple[ChatBoardState, ...] = (
    ChatBoardState(
        id="c1",
        title="General",
        messages=[
            ChatMessage(id="m1", chat_id="c1", user_id="u1", text="Hello", ts=1_700_000_000_000),
        ],
    ),
)

USER = EntityConfig(kind="user", model=User, seed=SEED_USERS)
CHAT = EntityConfig(kind="chat", model=ChatBoardState, seed=SEED_CHATS)
JOB = EntityConfig(kind="job", model=JobState)
ARCHIVE = EntityConfig(kind="archive", model=ArchiveBlob)
