"""
Routes for the OAuth 2.0 login flow.
"""

from typing import Optional

from fastapi import APIRouter, Query, Request
from starlette.responses import Response

from ...core.logging import get_logger
from ...services.login_flow import OAuth2LoginFlow

logger = get_logger(__name__)


def create_oauth_router(flow: OAuth2LoginFlow) -> APIRouter:
    """
    Mount the login flow: an optional start route and the callback route
    derived from the configured redirect URI.
    """
    router = APIRouter(tags=["authentication"])

    async def start_login() -> Response:
        """
        Start the login flow.

        Stores fresh CSRF and PKCE state, sets the transient cookie and
        redirects (303) to the provider's authorization endpoint.
        """
        return await flow.start_challenge()

    async def oauth_callback(
        request: Request,
        code: Optional[str] = Query(None),
        state: Optional[str] = Query(None),
        error: Optional[str] = Query(None),
    ) -> Response:
        """
        Handle the provider's redirect back.

        Missing parameters are not rejected up front: the transient state is
        consumed first, so every outcome destroys it.
        """
        if error:
            logger.warning(
                "oauth_provider_error",
                provider=flow.provider_name,
                error=error,
                error_description=request.query_params.get("error_description"),
            )
        return await flow.handle_callback(
            code=code,
            state=state or "",
            cookies=request.cookies,
            error=error,
        )

    if flow.login_path:
        router.add_api_route(flow.login_path, start_login, methods=["GET"], name="oauth_login")
    router.add_api_route(flow.callback_path, oauth_callback, methods=["GET"], name="oauth_callback")
    return router
