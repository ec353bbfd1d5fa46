"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be mocked for testing
- Configuration is centralized

Long-lived components (registry, broadcaster, store handles) are built
once in the application lifespan and kept on app.state. Drive clients are
per request because they depend on the admin's session tokens.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status

from ..config.settings import Settings
from ..core.videos.broadcaster import ChangeBroadcaster
from ..core.videos.registry import VideoRegistry
from ..core.videos.service import BlobStore, CredentialProvider, VideoService
from ..infrastructure.drive.client import GoogleDriveBlobStore
from ..infrastructure.drive.credentials import GoogleCredentialProvider, OAuthConfig

logger = logging.getLogger(__name__)

SESSION_TOKENS_KEY = "tokens"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def get_app_settings(request: Request) -> Settings:
    """
    Settings the running app was created with.

    Read from app.state rather than the environment so tests can build
    apps with their own configuration.
    """
    return request.app.state.settings


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def require_admin(request: Request) -> str:
    """
    Only let logged-in admins through.

    Login state lives in the signed session cookie set by POST /login.
    Raises 401 otherwise.
    """
    if not request.session.get("authenticated"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"success": False, "error": "Authentication required"},
        )
    return request.session.get("username", "")


# ---------------------------------------------------------------------------
# Application Components
# ---------------------------------------------------------------------------

def get_registry(request: Request) -> VideoRegistry:
    return request.app.state.registry


def get_broadcaster(request: Request) -> ChangeBroadcaster:
    return request.app.state.broadcaster


def get_oauth_config(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> OAuthConfig:
    return OAuthConfig(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        redirect_uri=settings.google_redirect_uri,
        scopes=settings.google_drive_scopes_list,
    )


# ---------------------------------------------------------------------------
# Drive Dependencies
# ---------------------------------------------------------------------------

async def get_drive_credentials(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
    oauth_config: Annotated[OAuthConfig, Depends(get_oauth_config)],
) -> Optional[CredentialProvider]:
    """
    Credentials for the admin's Drive connection, or None if not connected.

    Tokens close to expiry are refreshed here and written back to the
    session. A failed refresh drops the tokens so the admin panel shows
    Drive as disconnected.
    """
    if settings.drive_mock_mode:
        if not request.session.get(SESSION_TOKENS_KEY):
            return None
        return request.app.state.mock_credentials

    tokens = request.session.get(SESSION_TOKENS_KEY)
    if not tokens:
        return None

    try:
        provider = GoogleCredentialProvider.from_session(tokens, oauth_config)
        if provider.is_expiring() and provider.can_refresh:
            request.session[SESSION_TOKENS_KEY] = await provider.refresh()
    except Exception as e:
        logger.error("Token refresh error", extra={"error": str(e)})
        request.session.pop(SESSION_TOKENS_KEY, None)
        return None

    return provider


def get_blob_store(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
    credentials: Annotated[Optional[CredentialProvider], Depends(get_drive_credentials)],
) -> Optional[BlobStore]:
    """
    Drive client bound to the session's credentials.

    In mock mode, we reuse the same in-memory Drive across requests so
    that uploaded files persist during the testing session.
    """
    if credentials is None:
        return None

    if settings.drive_mock_mode:
        return request.app.state.mock_drive

    return GoogleDriveBlobStore.from_credentials(credentials.credentials)


def get_video_service(
    settings: Annotated[Settings, Depends(get_app_settings)],
    registry: Annotated[VideoRegistry, Depends(get_registry)],
    broadcaster: Annotated[ChangeBroadcaster, Depends(get_broadcaster)],
    blob_store: Annotated[Optional[BlobStore], Depends(get_blob_store)],
    credentials: Annotated[Optional[CredentialProvider], Depends(get_drive_credentials)],
) -> VideoService:
    return VideoService(
        registry=registry,
        broadcaster=broadcaster,
        blob_store=blob_store,
        folder_id=settings.google_drive_folder_id,
        base_url=settings.public_base_url,
        credentials=credentials,
    )


def get_public_video_service(
    settings: Annotated[Settings, Depends(get_app_settings)],
    registry: Annotated[VideoRegistry, Depends(get_registry)],
    broadcaster: Annotated[ChangeBroadcaster, Depends(get_broadcaster)],
) -> VideoService:
    """Read-only service for viewer requests, never touches Drive credentials."""
    return VideoService(
        registry=registry,
        broadcaster=broadcaster,
        blob_store=None,
        folder_id=settings.google_drive_folder_id,
        base_url=settings.public_base_url,
    )


def store_refreshed_tokens(request: Request, credentials: Optional[CredentialProvider]) -> None:
    """Write tokens back after an operation that may have refreshed them."""
    if isinstance(credentials, GoogleCredentialProvider):
        request.session[SESSION_TOKENS_KEY] = credentials.to_session()


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AdminUser = Annotated[str, Depends(require_admin)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
RegistryDep = Annotated[VideoRegistry, Depends(get_registry)]
OAuthConfigDep = Annotated[OAuthConfig, Depends(get_oauth_config)]
DriveCredentialsDep = Annotated[Optional[CredentialProvider], Depends(get_drive_credentials)]
VideoServiceDep = Annotated[VideoService, Depends(get_video_service)]
PublicVideoServiceDep = Annotated[VideoService, Depends(get_public_video_service)]
