import asyncio
from datetime import timedelta

import pytest

from conftest import make_record, make_user
from salesflow.models.account import Role
from salesflow.services.sessions import (
    DatabaseSessionStore,
    MemorySessionStore,
    SessionSweeper,
    create_session_store,
    utcnow,
)

pytestmark = pytest.mark.unit


@pytest.fixture(params=["memory", "database"])
async def store(request, database):
    if request.param == "memory":
        return MemorySessionStore()
    return DatabaseSessionStore(database)


async def test_put_then_get_returns_snapshot(store):
    user = make_user(id=5, username="ana", role=Role.SDR, staff_id="7")
    await store.put(make_record(user, token="abc"))

    record = await store.get("abc")

    assert record is not None
    assert record.token == "abc"
    assert record.user == user


async def test_get_unknown_token_is_absent(store):
    assert await store.get("missing") is None
    assert await store.get("") is None


async def test_put_overwrites_same_token(store):
    await store.put(make_record(make_user(username="first"), token="same"))
    await store.put(make_record(make_user(username="second"), token="same"))

    record = await store.get("same")
    assert record.user.username == "second"


async def test_delete_is_idempotent(store):
    await store.put(make_record(make_user(), token="t"))

    await store.delete("t")
    await store.delete("t")

    assert await store.get("t") is None


async def test_expired_session_is_absent_before_sweep(store):
    await store.put(make_record(make_user(), token="old", ttl=timedelta(seconds=-1)))
    assert await store.get("old") is None


async def test_sweep_removes_only_expired(store):
    await store.put(make_record(make_user(), token="old", ttl=timedelta(seconds=-5)))
    await store.put(make_record(make_user(), token="fresh", ttl=timedelta(hours=1)))

    removed = await store.sweep(utcnow())

    assert removed == 1
    assert await store.get("fresh") is not None


async def test_sweep_in_the_future_removes_everything(store):
    await store.put(make_record(make_user(), token="a", ttl=timedelta(minutes=10)))
    await store.put(make_record(make_user(), token="b", ttl=timedelta(minutes=20)))

    removed = await store.sweep(utcnow() + timedelta(hours=1))

    assert removed == 2
    assert await store.get("a") is None
    assert await store.get("b") is None


async def test_concurrent_delete_and_sweep_do_not_fail(store):
    await store.put(make_record(make_user(), token="race", ttl=timedelta(seconds=-1)))

    await asyncio.gather(store.delete("race"), store.sweep(utcnow()), store.delete("race"))

    assert await store.get("race") is None


async def test_database_store_removes_rows_on_sweep(database):
    store = DatabaseSessionStore(database)
    await store.put(make_record(make_user(), token="old", ttl=timedelta(seconds=-1)))
    assert await store.count() == 1

    await store.sweep(utcnow())

    assert await store.count() == 0


async def test_sweeper_run_once(memory_store):
    await memory_store.put(make_record(make_user(), token="old", ttl=timedelta(seconds=-1)))
    sweeper = SessionSweeper(memory_store, interval=900)

    assert await sweeper.run_once() == 1
    assert len(memory_store) == 0


async def test_sweeper_runs_on_interval(memory_store):
    await memory_store.put(make_record(make_user(), token="old", ttl=timedelta(seconds=-1)))
    sweeper = SessionSweeper(memory_store, interval=0.01)

    sweeper.start()
    await asyncio.sleep(0.1)
    await sweeper.stop()

    assert len(memory_store) == 0


async def test_sweeper_survives_store_errors(memory_store):
    calls = []

    async def broken_sweep(now=None):
        calls.append(now)
        raise RuntimeError("db down")

    memory_store.sweep = broken_sweep
    sweeper = SessionSweeper(memory_store, interval=0.01)

    sweeper.start()
    await asyncio.sleep(0.1)
    await sweeper.stop()

    assert len(calls) >= 2


async def test_create_session_store_selects_backend(settings, database):
    assert isinstance(create_session_store(settings, database), DatabaseSessionStore)
    memory = settings.model_copy(update={"SESSION_BACKEND": "memory"})
    assert isinstance(create_session_store(memory, database), MemorySessionStore)
    broken = settings.model_copy(update={"SESSION_BACKEND": "redis"})
    with pytest.raises(ValueError):
        create_session_store(broken, database)
