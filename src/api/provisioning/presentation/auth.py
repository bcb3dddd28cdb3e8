"""Admin authentication for provisioning routes.

Admin routes require ``Authorization: Bearer <token>`` matching the
configured admin token. With no token configured every admin request is
refused.
"""

from __future__ import annotations

import hmac
from typing import Annotated

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from infrastructure.settings import AdminSettings, get_admin_settings
from provisioning.application.envelope import ApiResponse, StatusCode
from provisioning.presentation.models import envelope_response

_bearer = HTTPBearer(auto_error=False, description="Admin bearer token")


class AdminAuthenticationError(Exception):
    """Raised when an admin request carries no valid bearer token."""

    pass


def require_admin(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
    settings: Annotated[AdminSettings, Depends(get_admin_settings)],
) -> None:
    """Reject requests without the configured admin token.

    Raises:
        AdminAuthenticationError: If admin routes are disabled or the token
            is missing or wrong
    """
    if not settings.enabled or credentials is None:
        raise AdminAuthenticationError("Admin token required")

    expected = settings.token.get_secret_value().encode()
    if not hmac.compare_digest(credentials.credentials.encode(), expected):
        raise AdminAuthenticationError("Admin token rejected")


async def admin_authentication_error_handler(
    request: Request, exc: AdminAuthenticationError
) -> JSONResponse:
    """Render AdminAuthenticationError as a 401 envelope."""
    response = envelope_response(ApiResponse.error(StatusCode.ADMIN_UNAUTHORIZED))
    response.headers["WWW-Authenticate"] = "Bearer"
    return response
