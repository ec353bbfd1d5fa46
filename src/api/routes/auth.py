"""
Admin login and Google Drive connection endpoints.

Two separate steps:
1. The admin logs in with the configured username/password.
2. The admin connects Google Drive through the OAuth consent screen.

Both results live in the signed session cookie. Uploads and deletes need
both; the public video lookup needs neither.
"""

import logging
import secrets
from typing import Annotated, Optional

from fastapi import APIRouter, Form, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from ...infrastructure.drive.credentials import build_authorization_url, exchange_code
from ..dependencies import (
    SESSION_TOKENS_KEY,
    AdminUser,
    DriveCredentialsDep,
    OAuthConfigDep,
    SettingsDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ADMIN_PANEL_PATH = "/admin"


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class LoginResponse(BaseModel):
    """Response after a successful login."""
    success: bool = True
    username: str = Field(description="Logged-in admin")


class AuthStatusResponse(BaseModel):
    """Drive connection state shown in the admin panel."""
    connected: bool = Field(description="True if the session holds usable Drive credentials")
    client_id_configured: bool = Field(serialization_alias="clientIdConfigured")
    redirect_uri: str = Field(serialization_alias="redirectUri")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Admin login",
)
async def login(
    request: Request,
    username: Annotated[str, Form()],
    password: Annotated[str, Form()],
    settings: SettingsDep,
) -> LoginResponse:
    """Check the admin credentials and mark the session as authenticated."""
    valid = (
        bool(settings.admin_username)
        and secrets.compare_digest(username.encode(), settings.admin_username.encode())
        and secrets.compare_digest(password.encode(), settings.admin_password.encode())
    )
    if not valid:
        logger.warning("Failed admin login", extra={"username": username})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"success": False, "error": "Invalid username or password"},
        )

    request.session["authenticated"] = True
    request.session["username"] = username
    logger.info("Admin logged in", extra={"username": username})

    return LoginResponse(username=username)


@router.api_route(
    "/logout",
    methods=["GET", "POST"],
    summary="Admin logout",
)
async def logout(request: Request) -> dict:
    """Forget the admin session, including any Drive tokens."""
    request.session.clear()
    return {"success": True}


@router.get(
    "/auth/google",
    summary="Connect Google Drive",
    description="Redirects to the Google consent screen.",
)
async def connect_google_drive(
    request: Request,
    admin: AdminUser,
    settings: SettingsDep,
    oauth_config: OAuthConfigDep,
) -> RedirectResponse:
    if settings.drive_mock_mode:
        request.session[SESSION_TOKENS_KEY] = request.app.state.mock_credentials.to_session()
        logger.info("Connected mock Drive")
        return RedirectResponse(ADMIN_PANEL_PATH, status_code=status.HTTP_303_SEE_OTHER)

    url, state, code_verifier = build_authorization_url(oauth_config)
    request.session["oauth_state"] = state
    request.session["oauth_code_verifier"] = code_verifier

    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


@router.get(
    "/auth/google/callback",
    summary="OAuth callback",
)
async def google_callback(
    request: Request,
    admin: AdminUser,
    oauth_config: OAuthConfigDep,
    code: Optional[str] = None,
    state: Optional[str] = None,
) -> RedirectResponse:
    """
    Trade the authorization code for tokens.

    Any failure sends the admin back to the panel with auth_error=1.
    """
    expected_state = request.session.pop("oauth_state", None)
    code_verifier = request.session.pop("oauth_code_verifier", None)

    try:
        if not code:
            raise ValueError("Authorization code missing")
        if expected_state and state != expected_state:
            raise ValueError("OAuth state mismatch")

        provider = await exchange_code(oauth_config, code, state=state, code_verifier=code_verifier)
    except Exception as e:
        logger.error("Auth callback error", extra={"error": str(e)})
        return RedirectResponse(
            f"{ADMIN_PANEL_PATH}?auth_error=1",
            status_code=status.HTTP_303_SEE_OTHER,
        )

    request.session[SESSION_TOKENS_KEY] = provider.to_session()
    logger.info("Google Drive connected")

    return RedirectResponse(ADMIN_PANEL_PATH, status_code=status.HTTP_303_SEE_OTHER)


@router.get(
    "/auth/status",
    response_model=AuthStatusResponse,
    summary="Drive connection status",
)
async def auth_status(
    admin: AdminUser,
    settings: SettingsDep,
    credentials: DriveCredentialsDep,
) -> AuthStatusResponse:
    return AuthStatusResponse(
        connected=credentials is not None,
        client_id_configured=bool(settings.google_client_id) or settings.drive_mock_mode,
        redirect_uri=settings.google_redirect_uri,
    )
