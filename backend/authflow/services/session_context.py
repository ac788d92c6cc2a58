"""
Cookie-backed session contexts.

A context pairs a :class:`SessionStore` with the cookie that carries the
session id. :class:`SessionContext` is the owner: it starts the expiry
maintenance task and is the only object able to stop it. Handles obtained
through :meth:`SessionContext.handle` share the store and cookie options but
never cancel anything, whatever their lifetime.
"""

import asyncio
import weakref
from typing import Any, Generic, Mapping, Optional

from ..core.cookies import Cookie, CookieJar, CookieOptions
from ..core.errors import ConfigError
from ..core.logging import get_logger
from ..core.session_id import SessionId
from ..stores.base import SessionRecord, SessionStore, T
from ..utils.clock import Clock, utc_now_secs
from .maintenance import cancel_task, spawn_maintenance_task

logger = get_logger(__name__)

DEFAULT_SESSION_COOKIE_NAME = "session"


def default_cookie_options(name: str = DEFAULT_SESSION_COOKIE_NAME, dev: bool = False) -> CookieOptions:
    """Production cookies are Secure; development cookies work over plain http."""
    if dev:
        return CookieOptions(name=name, path="/", secure=False, httponly=True, samesite="lax")
    return CookieOptions(name=name, path="/", secure=True, httponly=True, samesite="strict")


class SessionContextHandle(Generic[T]):
    """Shared, non-owning view of a session context."""

    def __init__(self, store: SessionStore[T], cookie_options: CookieOptions):
        self._store = store
        self._cookie_options = cookie_options

    @property
    def store(self) -> SessionStore[T]:
        return self._store

    @property
    def cookie_options(self) -> CookieOptions:
        return self._cookie_options

    def cookie(self, session_id: SessionId) -> Cookie:
        return self._cookie_options.with_value(str(session_id))

    def build_cookie(self, name: str) -> CookieOptions:
        """Cookie options of this context under another name."""
        return self._cookie_options.named(name)

    def session_id_from_cookies(self, cookies: Mapping[str, str]) -> Optional[SessionId]:
        value = cookies.get(self._cookie_options.name)
        if not value:
            return None
        return SessionId.from_cookie(value)

    async def create_session(self, state: T) -> Cookie:
        session_id = await self._store.create(state)
        return self.cookie(session_id)

    async def load_session(self, cookies: Mapping[str, str]) -> Optional[SessionRecord[T]]:
        session_id = self.session_id_from_cookies(cookies)
        if session_id is None:
            return None
        return await self._store.load(session_id)

    async def remove_session(self, jar: CookieJar) -> Optional[SessionRecord[T]]:
        """Take the session named by the jar's cookie and schedule the cookie's deletion."""
        value = jar.remove(self._cookie_options)
        if not value:
            return None
        return await self._store.remove(SessionId.from_cookie(value))

    async def sweep(self, deadline: int) -> int:
        return await self._store.sweep(deadline)


class SessionContext(SessionContextHandle[T]):
    """Owning session context; runs and cancels the maintenance task."""

    def __init__(
        self,
        store: SessionStore[T],
        cookie_options: Optional[CookieOptions] = None,
        expires_after: Optional[int] = None,
        maintenance_interval: Optional[float] = None,
        clock: Clock = utc_now_secs,
    ):
        if expires_after is not None and expires_after <= 0:
            raise ConfigError("session expiry must be positive")
        super().__init__(store, cookie_options or default_cookie_options())
        self._expires_after = expires_after
        self._maintenance_interval = maintenance_interval
        self._clock = clock
        self._task: Optional["asyncio.Task[None]"] = None
        self._finalizer: Optional[weakref.finalize] = None

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet: the owner calls start() from inside one.
            return
        self.start()

    @property
    def wants_maintenance(self) -> bool:
        return self._expires_after is not None and self._store.wants_maintenance_task()

    @property
    def maintenance_task(self) -> Optional["asyncio.Task[None]"]:
        return self._task

    def start(self) -> Optional["asyncio.Task[None]"]:
        """Spawn the maintenance task if an expiry is configured and the store wants one."""
        if self._task is not None or not self.wants_maintenance:
            return self._task

        task = spawn_maintenance_task(
            self._store, self._expires_after, self._maintenance_interval, self._clock
        )
        # The task only references the store, so collecting the owner runs this.
        self._finalizer = weakref.finalize(self, cancel_task, task)
        self._finalizer.atexit = False
        self._task = task
        return task

    def handle(self) -> SessionContextHandle[T]:
        return SessionContextHandle(self._store, self._cookie_options)

    def close(self) -> None:
        if self._finalizer is not None:
            self._finalizer()

    async def aclose(self) -> None:
        self.close()
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def __aenter__(self) -> "SessionContext[T]":
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
