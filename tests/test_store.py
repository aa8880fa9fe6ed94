"""Tests for StylistStore: users, daily quota, session records, memories."""

import pytest

from livestylist.errors import ConflictError, NotFoundError
from livestylist.session.models import SessionMemory

DEVICE = "6f1c2a9e-3b7d-4e2f-9a1b-0c5d8e7f6a21"


# ─── Users ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_and_get_user(store):
    await store.create_user(DEVICE, name="Ada", favorite_color="green", language="de")
    user = await store.get_user(DEVICE)

    assert user.name == "Ada"
    assert user.favorite_color == "green"
    assert user.language == "de"
    assert user.stylist_name is None
    assert user.sessions_used_today == 0


@pytest.mark.asyncio
async def test_get_user_missing(store):
    assert await store.get_user(DEVICE) is None


@pytest.mark.asyncio
async def test_duplicate_user_conflicts(store):
    await store.create_user(DEVICE, name="Ada", favorite_color="green")
    with pytest.raises(ConflictError):
        await store.create_user(DEVICE, name="Ada", favorite_color="blue")


@pytest.mark.asyncio
async def test_update_user_ignores_none_and_unknown(store):
    await store.create_user(DEVICE, name="Ada", favorite_color="green")

    user = await store.update_user(
        DEVICE, {"stylist_name": "Mira", "name": None, "sessions_used_today": 99}
    )

    assert user.stylist_name == "Mira"
    assert user.name == "Ada"
    assert user.sessions_used_today == 0


@pytest.mark.asyncio
async def test_update_unknown_user(store):
    with pytest.raises(NotFoundError):
        await store.update_user(DEVICE, {"name": "Ada"})


# ─── Quota ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_quota_free_tier(store):
    await store.create_user(DEVICE, name="Ada", favorite_color="green")

    first = await store.increment_session_count(DEVICE, limit=1, today="2026-03-01")
    second = await store.increment_session_count(DEVICE, limit=1, today="2026-03-01")

    assert (first.allowed, first.sessions_used_today, first.remaining) == (True, 1, 0)
    assert (second.allowed, second.sessions_used_today, second.remaining) == (False, 1, 0)


@pytest.mark.asyncio
async def test_quota_resets_on_new_day(store):
    await store.create_user(DEVICE, name="Ada", favorite_color="green")
    for _ in range(5):
        await store.increment_session_count(DEVICE, limit=5, today="2026-03-01")

    denied = await store.increment_session_count(DEVICE, limit=5, today="2026-03-01")
    next_day = await store.increment_session_count(DEVICE, limit=5, today="2026-03-02")

    assert denied.allowed is False
    assert next_day.allowed is True
    assert next_day.sessions_used_today == 1
    assert next_day.remaining == 4


@pytest.mark.asyncio
async def test_quota_unknown_user(store):
    with pytest.raises(NotFoundError):
        await store.increment_session_count(DEVICE, limit=1)


# ─── Session records ──────────────────────────────────────────


@pytest.mark.asyncio
async def test_session_record_lifecycle(store):
    await store.create_session_record("s-1", DEVICE, "free")
    record = await store.get_session_record("s-1")
    assert record["status"] == "active"
    assert record["end_time"] is None

    await store.complete_session_record("s-1", 42, "completed")
    record = await store.get_session_record("s-1")
    assert record["status"] == "completed"
    assert record["duration_seconds"] == 42
    assert record["end_time"] is not None


@pytest.mark.asyncio
async def test_complete_unknown_record(store):
    with pytest.raises(NotFoundError):
        await store.complete_session_record("missing", 10, "expired")


# ─── Memories ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_recent_memories_newest_first(store):
    for i in range(4):
        await store.save_session_memory(
            DEVICE,
            SessionMemory(
                session_id=f"s-{i}",
                summary=f"Session {i}",
                tips=[f"tip {i}"],
                created_at=1_700_000_000.0 + i,
            ),
        )

    memories = await store.get_recent_memories(DEVICE, limit=3)

    assert [m.session_id for m in memories] == ["s-3", "s-2", "s-1"]
    assert memories[0].tips == ["tip 3"]


@pytest.mark.asyncio
async def test_memories_are_per_device(store):
    await store.save_session_memory(DEVICE, SessionMemory(session_id="s-1", summary="x"))

    assert await store.get_recent_memories("someone-else") == []


@pytest.mark.asyncio
async def test_ping(store):
    assert await store.ping() is True
