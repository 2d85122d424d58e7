import sys
import threading
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from pwa_gen.core.errors import DuplicateId, NotFound, PreconditionFailed
from pwa_gen.core.schema import User
from pwa_gen.domain import CHAT, USER
from pwa_gen.infrastructure import EntityCollection, InMemoryEntityStore


@pytest.fixture()
def store():
    return InMemoryEntityStore()


@pytest.fixture()
def users(store):
    return EntityCollection(store, USER)


def _fill(users, count: int) -> list[str]:
    ids = [f"user-{index:03d}" for index in range(count)]
    for user_id in ids:
        users.create(User(id=user_id, name=user_id.upper()))
    return ids


def _walk(users, limit: int) -> list[str]:
    seen: list[str] = []
    cursor = None
    while True:
        page = users.list(cursor, limit)
        assert len(page.items) <= limit
        seen.extend(item.id for item in page.items)
        if page.next is None:
            return seen
        cursor = page.next


def test_create_get_and_exists(users):
    created = users.create(User(id="u-1", name="Ada"))
    assert created.name == "Ada"
    assert users.exists("u-1")
    assert not users.exists("u-2")
    assert users.get("u-1") == User(id="u-1", name="Ada")

    with pytest.raises(NotFound):
        users.get("u-2")

    with pytest.raises(DuplicateId):
        users.create(User(id="u-1", name="Other"))
    assert users.get("u-1").name == "Ada"


def test_reads_return_copies(users):
    users.create(User(id="u-1", name="Ada"))
    snapshot = users.get("u-1")
    snapshot.name = "changed outside the store"
    assert users.get("u-1").name == "Ada"


def test_mutate_applies_transform_and_keeps_id(users):
    users.create(User(id="u-1", name="Ada"))
    updated = users.mutate("u-1", lambda state: state.model_copy(update={"name": "Grace"}))
    assert updated.name == "Grace"
    assert users.entity("u-1").get_state().name == "Grace"

    with pytest.raises(PreconditionFailed):
        users.mutate("u-1", lambda state: state.model_copy(update={"id": "u-9"}))
    assert users.get("u-1").name == "Grace"
    assert not users.exists("u-9")

    with pytest.raises(NotFound):
        users.mutate("missing", lambda state: state)


def test_failing_transform_leaves_record_unchanged(users):
    users.create(User(id="u-1", name="Ada"))

    def explode(state):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        users.mutate("u-1", explode)
    assert users.get("u-1").name == "Ada"


def test_concurrent_mutations_on_same_id_do_not_lose_updates(users):
    users.create(User(id="counter", name="0"))
    barrier = threading.Barrier(8)

    def bump():
        barrier.wait()
        for _ in range(50):
            users.mutate("counter", lambda state: state.model_copy(update={"name": str(int(state.name) + 1)}))

    threads = [threading.Thread(target=bump) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert users.get("counter").name == "400"


def test_mutation_on_other_id_is_not_blocked(users):
    users.create(User(id="slow", name="slow"))
    users.create(User(id="fast", name="fast"))
    entered = threading.Event()
    release = threading.Event()

    def hold(state):
        entered.set()
        release.wait(timeout=5)
        return state

    worker = threading.Thread(target=lambda: users.mutate("slow", hold))
    worker.start()
    assert entered.wait(timeout=5)
    try:
        updated = users.mutate("fast", lambda state: state.model_copy(update={"name": "done"}))
        assert updated.name == "done"
    finally:
        release.set()
        worker.join()


def test_mutate_fails_when_record_deleted_mid_flight(store, users):
    users.create(User(id="u-1", name="Ada"))

    def delete_then_rename(state):
        users.delete("u-1")
        return state.model_copy(update={"name": "ghost"})

    with pytest.raises(NotFound):
        users.mutate("u-1", delete_then_rename)
    assert not users.exists("u-1")
    assert store._record_locks == {}


def test_delete_is_idempotent(users):
    users.create(User(id="u-1", name="Ada"))
    assert users.delete("u-1") is True
    assert users.delete("u-1") is False
    assert users.list().items == []


def test_delete_many_counts_only_existing(users):
    ids = _fill(users, 4)
    users.delete(ids[1])

    assert users.delete_many([ids[0], ids[1], ids[2], "never-existed"]) == 2
    assert users.delete_many([ids[0], ids[1], ids[2]]) == 0
    assert [item.id for item in users.list(limit=10).items] == [ids[3]]


def test_pages_cover_index_in_insertion_order(store, users):
    chats = EntityCollection(store, CHAT)
    ids = _fill(users, 7)
    first = users.list(None, 3)
    assert [item.id for item in first.items] == ids[:3]
    assert first.next == ids[2]

    # records of another kind arriving between pages do not disturb the walk
    chats.create(CHAT.model(id="c-x", title="elsewhere"))
    assert _walk(users, 3) == ids
    assert _walk(users, 7) == ids
    assert _walk(users, 100) == ids


def test_last_page_has_no_next_cursor(users):
    ids = _fill(users, 4)
    page = users.list(ids[1], 2)
    assert [item.id for item in page.items] == ids[2:]
    assert page.next is None


def test_cursor_survives_deletions(users):
    ids = _fill(users, 6)
    page = users.list(None, 2)

    users.delete(ids[4])
    users.delete(page.next)

    rest = users.list(page.next, 10)
    assert [item.id for item in rest.items] == [ids[2], ids[3], ids[5]]


def test_unknown_cursor_is_rejected(users):
    _fill(users, 2)
    with pytest.raises(NotFound):
        users.list("no-such-id", 5)


def test_missing_kind_behaves_as_empty(store):
    page = store.list("nothing-here", None, 5)
    assert page.items == [] and page.next is None
    assert store.exists("nothing-here", "x") is False
    assert store.delete("nothing-here", "x") is False
    assert store.delete_many("nothing-here", ["x", "y"]) == 0
    assert store.clear_all("nothing-here") == 0


def test_ensure_seed_is_idempotent(users):
    assert users.ensure_seed() == len(USER.seed)
    for _ in range(5):
        assert users.ensure_seed() == 0

    items = users.list(limit=50).items
    assert [item.id for item in items] == [seed.id for seed in USER.seed]


def test_ensure_seed_skips_populated_kind(users):
    users.create(User(id="mine", name="Mine"))
    assert users.ensure_seed() == 0
    assert [item.id for item in users.list().items] == ["mine"]


def test_concurrent_seeding_inserts_one_copy(users):
    barrier = threading.Barrier(6)
    results: list[int] = []

    def seed():
        barrier.wait()
        results.append(users.ensure_seed())

    threads = [threading.Thread(target=seed) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(results) == [0] * 5 + [len(USER.seed)]
    assert len(users.list(limit=50).items) == len(USER.seed)


def test_clear_all_only_touches_one_kind(store, users):
    chats = EntityCollection(store, CHAT)
    _fill(users, 3)
    chats.ensure_seed()

    assert users.clear_all() == 3
    assert users.clear_all() == 0
    assert users.list().items == []
    assert len(chats.list().items) == len(CHAT.seed)


def test_mutate_on_missing_id_leaves_no_lock_behind(store, users):
    for _ in range(3):
        with pytest.raises(NotFound):
            users.mutate("ghost", lambda state: state)
    assert store._record_locks == {}

    users.create(User(id="u-1", name="Ada"))
    users.mutate("u-1", lambda state: state.model_copy(update={"name": "Grace"}))
    users.delete("u-1")
    assert store._record_locks == {}


def test_recreated_record_is_not_overwritten_by_old_writer(users):
    users.create(User(id="u-1", name="Ada"))

    def recreate_then_rename(state):
        users.delete("u-1")
        users.create(User(id="u-1", name="Fresh"))
        return state.model_copy(update={"name": "stale write"})

    with pytest.raises(NotFound):
        users.mutate("u-1", recreate_then_rename)
    assert users.get("u-1").name == "Fresh"


def test_cursors_do_not_survive_clear_all(store, users):
    ids = _fill(users, 4)
    page = users.list(None, 2)
    assert page.next == ids[1]

    users.clear_all()
    assert store._positions.get(users.kind) is None
    with pytest.raises(NotFound):
        users.list(page.next, 2)

    fresh = _fill(users, 2)
    assert [item.id for item in users.list(limit=10).items] == fresh
