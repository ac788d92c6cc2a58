"""
Error taxonomy for the login flow and standardized error responses.

Every rejection during the callback collapses into one of two public answers:
401 with an identical body, or 500. Detail stays in the server logs.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse

from .logging import get_logger

logger = get_logger(__name__)


class AuthFlowError(Exception):
    """Base error for the login flow and its stores."""


class ConfigError(AuthFlowError):
    """Missing or invalid configuration, raised at construction time."""


class Unauthorized(AuthFlowError):
    """Transient state missing, tampered with, expired or not matching."""


class MissingVerifier(Unauthorized):
    """PKCE is mandated but no code verifier survived the round trip."""


class InternalError(AuthFlowError):
    """Server-side failure; detail is logged, never returned."""


class StoreError(InternalError):
    """A session store could not complete an I/O operation."""


class ExchangeError(InternalError):
    """The token endpoint could not be reached or rejected the exchange."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ErrorCode(str, Enum):
    """Error codes returned to clients."""

    # 401 on protected routes: no or unknown application session
    AUTH_REQUIRED = "auth_required"
    # 401 on the callback: restart the login flow
    AUTH_FAILED = "auth_failed"
    # 500: restart the login flow later
    INTERNAL_SERVER_ERROR = "internal_server_error"


# One fixed message per code keeps every rejection byte-identical.
ERROR_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.AUTH_REQUIRED: "Please log in to continue",
    ErrorCode.AUTH_FAILED: "Authentication failed. Please log in again",
    ErrorCode.INTERNAL_SERVER_ERROR: "Something went wrong. Please try again",
}


@dataclass(frozen=True)
class ErrorResponse:
    """Standardized error response body."""

    error: str
    message: str
    correlation_id: Optional[str] = None

    @classmethod
    def for_code(cls, error_code: ErrorCode, correlation_id: Optional[str] = None) -> "ErrorResponse":
        return cls(error=error_code.value, message=ERROR_MESSAGES[error_code], correlation_id=correlation_id)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def create_error_response(
    error_code: ErrorCode,
    status_code: int,
    correlation_id: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """
    Create a standardized JSON error response.

    Args:
        error_code: Standardized error code, which also selects the message
        status_code: HTTP status code
        correlation_id: Correlation ID for tracing
        headers: Additional HTTP headers
    """
    logger.info("error_response_created", error_code=error_code.value, status_code=status_code)
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse.for_code(error_code, correlation_id).to_dict(),
        headers=headers,
    )


def create_unauthorized_response(correlation_id: Optional[str] = None) -> JSONResponse:
    """The single 401 answer used for every rejected callback."""
    return create_error_response(ErrorCode.AUTH_FAILED, status.HTTP_401_UNAUTHORIZED, correlation_id)


def create_internal_error_response(correlation_id: Optional[str] = None) -> JSONResponse:
    return create_error_response(
        ErrorCode.INTERNAL_SERVER_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR, correlation_id
    )


def create_auth_required_error(correlation_id: Optional[str] = None) -> HTTPException:
    """Authentication required error for session-protected routes."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=ErrorResponse.for_code(ErrorCode.AUTH_REQUIRED, correlation_id).to_dict(),
    )
