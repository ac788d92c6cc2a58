"""
Periodic expiry sweep for session stores.
"""

import asyncio
from typing import Any, Optional

from ..core.logging import get_logger
from ..stores.base import SessionStore
from ..utils.clock import Clock, utc_now_secs

logger = get_logger(__name__)


async def sweep_once(store: SessionStore[Any], expires_after: int, clock: Clock = utc_now_secs) -> int:
    """
    Delete records older than ``expires_after`` seconds.

    A failing sweep is logged and reported as zero removals; it never
    propagates, so one bad pass cannot stop the maintenance loop.
    """
    deadline = clock() - expires_after
    try:
        return await store.sweep(deadline)
    except Exception as e:
        logger.error(
            "session_sweep_failed",
            store=type(store).__name__,
            deadline=deadline,
            error=str(e),
            error_type=type(e).__name__,
        )
        return 0


async def maintenance_loop(
    store: SessionStore[Any],
    expires_after: int,
    interval: Optional[float] = None,
    clock: Clock = utc_now_secs,
) -> None:
    """Sweep immediately, then once per ``interval`` (defaults to ``expires_after``)."""
    interval = expires_after if interval is None else interval
    logger.info(
        "session_maintenance_started",
        store=type(store).__name__,
        expires_after=expires_after,
        interval=interval,
    )
    try:
        while True:
            await sweep_once(store, expires_after, clock)
            await asyncio.sleep(interval)
    finally:
        logger.info("session_maintenance_stopped", store=type(store).__name__)


def spawn_maintenance_task(
    store: SessionStore[Any],
    expires_after: int,
    interval: Optional[float] = None,
    clock: Clock = utc_now_secs,
) -> "asyncio.Task[None]":
    return asyncio.get_running_loop().create_task(
        maintenance_loop(store, expires_after, interval, clock),
        name=f"session-maintenance-{type(store).__name__}",
    )


def cancel_task(task: "asyncio.Task[Any]") -> None:
    if not task.done() and not task.get_loop().is_closed():
        task.cancel()
