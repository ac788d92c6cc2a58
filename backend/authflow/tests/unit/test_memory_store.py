"""
Unit tests for the in-memory session store.
"""

import asyncio

import pytest

from ...core.session_id import SessionId
from ...schemas.oauth import TransientOAuthState
from ...stores.base import SessionRecord
from ...stores.memory import MemorySessionStore


@pytest.fixture
def store(clock) -> MemorySessionStore[TransientOAuthState]:
    return MemorySessionStore(clock)


@pytest.fixture
def state() -> TransientOAuthState:
    return TransientOAuthState(csrf_token="csrf-token", pkce_verifier="pkce-verifier")


class TestMemorySessionStore:
    """Test storage, one-shot removal and sweeping."""

    @pytest.mark.asyncio
    async def test_create_and_load(self, store, state, clock):
        session_id = await store.create(state)

        record = await store.load(session_id)

        assert record is not None
        assert record.id == session_id
        assert record.state == state
        assert record.created_at == clock.now

    @pytest.mark.asyncio
    async def test_load_does_not_consume(self, store, state):
        session_id = await store.create(state)

        await store.load(session_id)

        assert await store.load(session_id) is not None

    @pytest.mark.asyncio
    async def test_remove_is_one_shot(self, store, state):
        session_id = await store.create(state)

        first = await store.remove(session_id)
        second = await store.remove(session_id)

        assert first is not None and first.state == state
        assert second is None
        assert await store.load(session_id) is None

    @pytest.mark.asyncio
    async def test_unknown_id(self, store):
        assert await store.load(SessionId("missing")) is None
        assert await store.remove(SessionId("missing")) is None

    @pytest.mark.asyncio
    async def test_concurrent_removes_hand_out_one_record(self, store, state):
        session_id = await store.create(state)

        results = await asyncio.gather(*(store.remove(session_id) for _ in range(100)))

        assert sum(result is not None for result in results) == 1

    @pytest.mark.asyncio
    async def test_concurrent_removes_across_threads(self, store, state):
        session_id = await store.create(state)

        def take():
            return asyncio.run(store.remove(session_id))

        results = await asyncio.gather(*(asyncio.to_thread(take) for _ in range(20)))

        assert sum(result is not None for result in results) == 1

    @pytest.mark.asyncio
    async def test_sweep_removes_strictly_older_records(self, store, state):
        old = SessionRecord(id=SessionId("old"), created_at=100, state=state)
        boundary = SessionRecord(id=SessionId("boundary"), created_at=101, state=state)
        await store.persist(old)
        await store.persist(boundary)

        removed = await store.sweep(101)

        assert removed == 1
        assert await store.load(old.id) is None
        assert await store.load(boundary.id) is not None
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_sweep_empty_store(self, store):
        assert await store.sweep(10**10) == 0

    def test_wants_maintenance(self, store):
        assert store.wants_maintenance_task() is True
