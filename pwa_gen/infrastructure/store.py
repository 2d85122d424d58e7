"""Infrastructure layer for entity persistence."""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar

from pydantic import BaseModel

from pwa_gen.core.errors import DuplicateId, NotFound, PreconditionFailed
from pwa_gen.domain.entities import EntityConfig

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass(slots=True)
class Page(Generic[T]):
    """One page of a cursor-paginated listing."""

    items: list[T] = field(default_factory=list)
    next: str | None = None

    def as_dict(self) -> dict[str, object]:
        return {"items": [item.model_dump(mode="json") for item in self.items], "next": self.next}


class EntityStore(Protocol):
    """Persistence contract for kind-tagged records."""

    def create(self, kind: str, state: BaseModel) -> BaseModel: ...

    def get(self, kind: str, entity_id: str) -> BaseModel: ...

    def exists(self, kind: str, entity_id: str) -> bool: ...

    def mutate(self, kind: str, entity_id: str, transform: Callable[[BaseModel], BaseModel]) -> BaseModel: ...

    def delete(self, kind: str, entity_id: str) -> bool: ...

    def delete_many(self, kind: str, ids: Iterable[str]) -> int: ...

    def list(self, kind: str, cursor: str | None = None, limit: int = 10) -> Page: ...

    def ensure_seed(self, kind: str, seed: Sequence[BaseModel]) -> int: ...

    def clear_all(self, kind: str) -> int: ...

    def reset(self) -> None: ...


class InMemoryEntityStore:
    """Thread-safe in-memory store keyed by ``(kind, id)``.

    A single structure lock guards the record map and the per-kind indexes.
    ``mutate`` additionally holds a per-record lock while its transform runs,
    so writers on the same id serialise and writers on different ids do not
    wait for each other.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: dict[tuple[str, str], BaseModel] = {}
        # live ids per kind in insertion order, mapped to their position
        self._index: dict[str, dict[str, int]] = {}
        # positions of every id created since the kind was last cleared, so cursors
        # on deleted ids still resolve
        self._positions: dict[str, dict[str, int]] = {}
        self._record_locks: dict[tuple[str, str], threading.Lock] = {}
        self._sequence = 0

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _copy(state: BaseModel) -> BaseModel:
        return state.model_copy(deep=True)

    def _insert(self, kind: str, state: BaseModel) -> None:
        entity_id = str(getattr(state, "id"))
        key = (kind, entity_id)
        if key in self._records:
            raise DuplicateId(f"{kind} {entity_id} already exists")
        self._sequence += 1
        self._records[key] = self._copy(state)
        self._index.setdefault(kind, {})[entity_id] = self._sequence
        self._positions.setdefault(kind, {})[entity_id] = self._sequence

    def _remove(self, kind: str, entity_id: str) -> bool:
        key = (kind, entity_id)
        if key not in self._records:
            return False
        del self._records[key]
        self._index.get(kind, {}).pop(entity_id, None)
        self._record_locks.pop(key, None)
        return True

    def _record_lock(self, kind: str, entity_id: str) -> threading.Lock:
        with self._lock:
            key = (kind, entity_id)
            if key not in self._records:
                raise NotFound(f"{kind} {entity_id} not found")
            lock = self._record_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._record_locks[key] = lock
            return lock

    # ------------------------------------------------------------------
    # CRUD operations
    # ------------------------------------------------------------------
    def create(self, kind: str, state: BaseModel) -> BaseModel:
        with self._lock:
            self._insert(kind, state)
        return self._copy(state)

    def get(self, kind: str, entity_id: str) -> BaseModel:
        with self._lock:
            state = self._records.get((kind, entity_id))
            if state is None:
                raise NotFound(f"{kind} {entity_id} not found")
            return self._copy(state)

    def exists(self, kind: str, entity_id: str) -> bool:
        with self._lock:
            return (kind, entity_id) in self._records

    def mutate(self, kind: str, entity_id: str, transform: Callable[[BaseModel], BaseModel]) -> BaseModel:
        lock = self._record_lock(kind, entity_id)
        with lock:
            current = self.get(kind, entity_id)
            updated = transform(current)
            if str(getattr(updated, "id")) != entity_id:
                raise PreconditionFailed(f"{kind} {entity_id} cannot change its id")
            with self._lock:
                key = (kind, entity_id)
                # a record deleted and re-created meanwhile is a different record
                if key not in self._records or self._record_locks.get(key) is not lock:
                    raise NotFound(f"{kind} {entity_id} was deleted")
                self._records[key] = self._copy(updated)
            return self._copy(updated)

    def delete(self, kind: str, entity_id: str) -> bool:
        with self._lock:
            return self._remove(kind, entity_id)

    def delete_many(self, kind: str, ids: Iterable[str]) -> int:
        deleted = 0
        with self._lock:
            for entity_id in ids:
                if self._remove(kind, entity_id):
                    deleted += 1
        return deleted

    def list(self, kind: str, cursor: str | None = None, limit: int = 10) -> Page:
        limit = max(1, int(limit))
        with self._lock:
            after = 0
            if cursor:
                position = self._positions.get(kind, {}).get(cursor)
                if position is None:
                    raise NotFound(f"unknown cursor {cursor} for {kind}")
                after = position

            items: list[BaseModel] = []
            has_more = False
            for entity_id, position in self._index.get(kind, {}).items():
                if position <= after:
                    continue
                if len(items) == limit:
                    has_more = True
                    break
                items.append(self._copy(self._records[(kind, entity_id)]))

        next_cursor = str(getattr(items[-1], "id")) if has_more and items else None
        return Page(items=items, next=next_cursor)

    def ensure_seed(self, kind: str, seed: Sequence[BaseModel]) -> int:
        with self._lock:
            if self._index.get(kind):
                return 0
            for state in seed:
                self._insert(kind, state)
        if seed:
            logger.info(f"Seeded {len(seed)} {kind} record(s)")
        return len(seed)

    def clear_all(self, kind: str) -> int:
        with self._lock:
            ids = list(self._index.get(kind, {}))
            for entity_id in ids:
                self._remove(kind, entity_id)
            self._positions.pop(kind, None)
        return len(ids)

    def reset(self) -> None:
        with self._lock:
            self._records.clear()
            self._index.clear()
            self._positions.clear()
            self._record_locks.clear()
            self._sequence = 0


class Entity(Generic[T]):
    """Handle on one record; every read goes back to the store."""

    def __init__(self, store: EntityStore, config: EntityConfig[T], entity_id: str) -> None:
        self._store = store
        self._config = config
        self.id = entity_id

    @property
    def kind(self) -> str:
        return self._config.kind

    def exists(self) -> bool:
        return self._store.exists(self.kind, self.id)

    def get_state(self) -> T:
        return self._store.get(self.kind, self.id)  # type: ignore[return-value]

    def mutate(self, transform: Callable[[T], T]) -> T:
        return self._store.mutate(self.kind, self.id, transform)  # type: ignore[arg-type, return-value]

    def delete(self) -> bool:
        return self._store.delete(self.kind, self.id)


class EntityCollection(Generic[T]):
    """All records of one kind, parametrised by an :class:`EntityConfig`."""

    def __init__(self, store: EntityStore, config: EntityConfig[T]) -> None:
        self._store = store
        self.config = config

    @property
    def kind(self) -> str:
        return self.config.kind

    def entity(self, entity_id: str) -> Entity[T]:
        return Entity(self._store, self.config, entity_id)

    def create(self, state: T) -> T:
        return self._store.create(self.kind, state)  # type: ignore[return-value]

    def get(self, entity_id: str) -> T:
        return self._store.get(self.kind, entity_id)  # type: ignore[return-value]

    def exists(self, entity_id: str) -> bool:
        return self._store.exists(self.kind, entity_id)

    def mutate(self, entity_id: str, transform: Callable[[T], T]) -> T:
        return self._store.mutate(self.kind, entity_id, transform)  # type: ignore[arg-type, return-value]

    def delete(self, entity_id: str) -> bool:
        return self._store.delete(self.kind, entity_id)

    def delete_many(self, ids: Iterable[str]) -> int:
        return self._store.delete_many(self.kind, ids)

    def list(self, cursor: str | None = None, limit: int = 10) -> Page[T]:
        return self._store.list(self.kind, cursor, limit)

    def ensure_seed(self) -> int:
        return self._store.ensure_seed(self.kind, self.config.seed)

    def clear_all(self) -> int:
        return self._store.clear_all(self.kind)
