"""
Unit tests for expiry maintenance and session context ownership.
"""

import asyncio
import gc
from typing import List

import pytest

from ...core.errors import ConfigError, StoreError
from ...core.signed_state import SignedStateCodec
from ...schemas.oauth import TransientOAuthState
from ...services.maintenance import spawn_maintenance_task, sweep_once
from ...services.session_context import SessionContext
from ...stores.memory import MemorySessionStore
from ...stores.signed_cookie import SignedCookieStore


class RecordingStore(MemorySessionStore):
    """Memory store that records sweep deadlines and can fail on demand."""

    def __init__(self, failures: int = 0):
        super().__init__()
        self.deadlines: List[int] = []
        self.failures = failures

    async def sweep(self, deadline: int) -> int:
        self.deadlines.append(deadline)
        if self.failures:
            self.failures -= 1
            raise StoreError("database unavailable")
        return await super().sweep(deadline)


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        assert loop.time() < deadline, "condition not reached"
        await asyncio.sleep(0.005)


class TestSweep:
    """Test single sweep passes and the maintenance loop."""

    @pytest.mark.asyncio
    async def test_deadline_is_now_minus_expiry(self, clock):
        store = RecordingStore()

        await sweep_once(store, 100, clock)

        assert store.deadlines == [clock.now - 100]

    @pytest.mark.asyncio
    async def test_failed_sweep_is_swallowed(self, clock):
        store = RecordingStore(failures=1)

        assert await sweep_once(store, 100, clock) == 0

    @pytest.mark.asyncio
    async def test_loop_sweeps_immediately_and_survives_failures(self, clock):
        store = RecordingStore(failures=2)

        task = spawn_maintenance_task(store, 100, interval=0.01, clock=clock)
        try:
            await _wait_for(lambda: len(store.deadlines) >= 4)
        finally:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        assert task.cancelled()
        assert store.failures == 0

    @pytest.mark.asyncio
    async def test_loop_removes_expired_records(self, clock):
        store = MemorySessionStore(clock)
        await store.create(TransientOAuthState(csrf_token="old"))
        clock.advance(101)
        await store.create(TransientOAuthState(csrf_token="new"))

        task = spawn_maintenance_task(store, 100, interval=60, clock=clock)
        try:
            await _wait_for(lambda: len(store) == 1)
        finally:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)


class TestSessionContextOwnership:
    """Test that only the owner stops maintenance."""

    @pytest.mark.asyncio
    async def test_owner_starts_task_inside_running_loop(self):
        context = SessionContext(MemorySessionStore(), expires_after=60)
        try:
            assert context.maintenance_task is not None
            assert not context.maintenance_task.done()
        finally:
            await context.aclose()

    @pytest.mark.asyncio
    async def test_dropping_a_handle_keeps_task_running(self):
        context = SessionContext(MemorySessionStore(), expires_after=60)
        task = context.maintenance_task

        handle = context.handle()
        assert handle.store is context.store
        del handle
        gc.collect()
        await asyncio.sleep(0.01)

        assert not task.done()
        await context.aclose()
        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_collecting_the_owner_cancels_task(self):
        context = SessionContext(MemorySessionStore(), expires_after=60)
        task = context.maintenance_task
        handle = context.handle()

        del context
        gc.collect()
        await asyncio.gather(task, return_exceptions=True)

        assert task.cancelled()
        # The handle still works against the shared store.
        assert await handle.store.sweep(0) == 0

    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        async with SessionContext(MemorySessionStore(), expires_after=60) as context:
            task = context.maintenance_task
            assert not task.done()

        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        context = SessionContext(MemorySessionStore(), expires_after=60)

        await context.aclose()
        await context.aclose()
        context.close()

        assert context.maintenance_task.cancelled()

    @pytest.mark.asyncio
    async def test_no_task_without_expiry(self):
        context = SessionContext(MemorySessionStore())

        assert context.maintenance_task is None
        await context.aclose()

    @pytest.mark.asyncio
    async def test_no_task_for_signed_cookies(self):
        store = SignedCookieStore(SignedStateCodec("github", 600))
        context = SessionContext(store, expires_after=600)

        assert context.wants_maintenance is False
        assert context.maintenance_task is None
        await context.aclose()

    def test_no_task_outside_event_loop(self):
        context = SessionContext(MemorySessionStore(), expires_after=60)

        assert context.maintenance_task is None

    def test_non_positive_expiry_is_rejected(self):
        with pytest.raises(ConfigError):
            SessionContext(MemorySessionStore(), expires_after=0)
