"""
FastAPI dependencies for request tracing and session-protected routes.
"""

from typing import Annotated, Awaitable, Callable, Optional

from fastapi import Depends, Header, Request

from ..core.errors import StoreError, create_auth_required_error
from ..core.logging import get_correlation_id as current_correlation_id
from ..core.logging import get_logger
from ..services.session_context import SessionContextHandle
from ..stores.base import SessionRecord, T

logger = get_logger(__name__)


async def get_correlation_id(
    request: Request,
    x_correlation_id: Optional[str] = Header(None, alias="X-Correlation-ID")
) -> str:
    """
    Get or generate correlation ID for request tracing.
    """
    if x_correlation_id:
        return x_correlation_id

    if hasattr(request.state, "correlation_id"):
        return request.state.correlation_id

    correlation_id = current_correlation_id()
    request.state.correlation_id = correlation_id
    return correlation_id


CorrelationID = Annotated[str, Depends(get_correlation_id)]


def require_session(
    sessions: SessionContextHandle[T],
) -> Callable[..., Awaitable[SessionRecord[T]]]:
    """
    Build a dependency that loads the caller's session from its cookie.
    Raises 401 when the cookie is missing, unknown or its store is unavailable.
    """

    async def dependency(request: Request, correlation_id: CorrelationID) -> SessionRecord[T]:
        try:
            record = await sessions.load_session(request.cookies)
        except StoreError as e:
            logger.error("session_load_failed", error=str(e), error_type=type(e).__name__)
            record = None

        if record is None:
            logger.warning(
                "session_required",
                path=request.url.path,
                has_cookie=sessions.cookie_options.name in request.cookies,
            )
            raise create_auth_required_error(correlation_id)
        return record

    return dependency
