"""
Cookie descriptions and a small jar that records mutations for a response.
"""

from dataclasses import dataclass, replace
from typing import Dict, List, Literal, Mapping, Optional

from starlette.responses import Response

SameSite = Literal["lax", "strict", "none"]


@dataclass(frozen=True)
class CookieOptions:
    """Attributes shared by every cookie a context emits; the value is added later."""

    name: str
    path: str = "/"
    domain: Optional[str] = None
    max_age: Optional[int] = None
    secure: bool = True
    httponly: bool = True
    samesite: SameSite = "lax"

    def named(self, name: str) -> "CookieOptions":
        return replace(self, name=name)

    def with_path(self, path: str) -> "CookieOptions":
        return replace(self, path=path)

    def with_max_age(self, max_age: Optional[int]) -> "CookieOptions":
        return replace(self, max_age=max_age)

    def with_value(self, value: str) -> "Cookie":
        return Cookie(value=value, options=self)


@dataclass(frozen=True)
class Cookie:
    value: str
    options: CookieOptions

    @property
    def name(self) -> str:
        return self.options.name

    def set_on(self, response: Response) -> None:
        opts = self.options
        response.set_cookie(
            key=opts.name,
            value=self.value,
            max_age=opts.max_age,
            path=opts.path,
            domain=opts.domain,
            secure=opts.secure,
            httponly=opts.httponly,
            samesite=opts.samesite,
        )

    def delete_on(self, response: Response) -> None:
        opts = self.options
        response.delete_cookie(
            key=opts.name,
            path=opts.path,
            domain=opts.domain,
            secure=opts.secure,
            httponly=opts.httponly,
            samesite=opts.samesite,
        )


class CookieJar:
    """Incoming request cookies plus the additions and removals for the response."""

    def __init__(self, cookies: Optional[Mapping[str, str]] = None):
        self._incoming: Dict[str, str] = dict(cookies or {})
        self._added: Dict[str, Cookie] = {}
        self._removed: Dict[str, Cookie] = {}

    def get(self, name: str) -> Optional[str]:
        if name in self._added:
            return self._added[name].value
        if name in self._removed:
            return None
        return self._incoming.get(name)

    def add(self, cookie: Cookie) -> None:
        self._removed.pop(cookie.name, None)
        self._added[cookie.name] = cookie

    def remove(self, options: CookieOptions) -> Optional[str]:
        """Drop a cookie and schedule its deletion on the client; return its last value."""
        value = self.get(options.name)
        self._added.pop(options.name, None)
        self._removed[options.name] = Cookie(value="", options=options)
        return value

    @property
    def additions(self) -> List[Cookie]:
        return list(self._added.values())

    @property
    def removals(self) -> List[Cookie]:
        return list(self._removed.values())

    def apply(self, response: Response) -> Response:
        for cookie in self._removed.values():
            cookie.delete_on(response)
        for cookie in self._added.values():
            cookie.set_on(response)
        return response
