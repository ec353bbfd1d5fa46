"""
Google OAuth credentials for the Drive connection.

The admin connects Drive once through the consent screen; the resulting
tokens live in the signed session cookie. Before each request the API
rebuilds credentials from the session and refreshes them when they are
about to expire.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

# Refresh this long before the access token actually expires
EXPIRY_THRESHOLD = timedelta(minutes=5)


@dataclass
class OAuthConfig:
    """OAuth client registration used for the Drive connection."""
    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: list[str] = field(default_factory=lambda: ["https://www.googleapis.com/auth/drive.file"])

    def client_config(self) -> dict[str, Any]:
        """Client config in the shape google-auth-oauthlib expects."""
        return {
            "web": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
                "redirect_uris": [self.redirect_uri],
            }
        }


def _utcnow() -> datetime:
    # google-auth keeps expiry as a naive UTC datetime
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _parse_expiry(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    expiry = datetime.fromisoformat(value)
    if expiry.tzinfo is not None:
        expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)
    return expiry


class GoogleCredentialProvider:
    """
    Wraps google.oauth2 credentials.

    Refreshing mutates the wrapped credentials, so a Drive client built
    from them picks up the new token without being rebuilt.
    """

    def __init__(self, credentials) -> None:
        self._credentials = credentials

    @classmethod
    def from_session(cls, tokens: dict[str, Any], config: OAuthConfig) -> "GoogleCredentialProvider":
        """Rebuild credentials from the token data stored in the session."""
        from google.oauth2.credentials import Credentials

        credentials = Credentials(
            token=tokens.get("token"),
            refresh_token=tokens.get("refresh_token"),
            token_uri=GOOGLE_TOKEN_URI,
            client_id=config.client_id,
            client_secret=config.client_secret,
            scopes=tokens.get("scopes") or config.scopes,
            expiry=_parse_expiry(tokens.get("expiry")),
        )
        return cls(credentials)

    @property
    def credentials(self):
        return self._credentials

    @property
    def can_refresh(self) -> bool:
        return bool(self._credentials.refresh_token)

    def is_expiring(self) -> bool:
        """True when the access token is missing or expires within five minutes."""
        if not self._credentials.token:
            return True
        expiry = self._credentials.expiry
        if expiry is None:
            return False
        return expiry - _utcnow() <= EXPIRY_THRESHOLD

    async def refresh(self) -> dict[str, Any]:
        """
        Exchange the refresh token for a new access token.

        Raises google.auth.exceptions.RefreshError when the grant has been
        revoked or expired.
        """
        from google.auth.transport.requests import Request

        await asyncio.to_thread(self._credentials.refresh, Request())
        logger.info("Google Drive token refreshed")
        return self.to_session()

    def to_session(self) -> dict[str, Any]:
        """Token data safe to keep in the session cookie (no client secret)."""
        expiry = self._credentials.expiry
        return {
            "token": self._credentials.token,
            "refresh_token": self._credentials.refresh_token,
            "scopes": list(self._credentials.scopes or []),
            "expiry": expiry.isoformat() if expiry else None,
        }


# ---------------------------------------------------------------------------
# Consent flow
# ---------------------------------------------------------------------------

def build_authorization_url(config: OAuthConfig) -> tuple[str, str, Optional[str]]:
    """
    Start the consent flow.

    Returns the URL to redirect to, the state value and the PKCE code
    verifier; the caller keeps the last two in the session for the
    callback.
    """
    from google_auth_oauthlib.flow import Flow

    flow = Flow.from_client_config(
        config.client_config(),
        scopes=config.scopes,
        redirect_uri=config.redirect_uri,
    )
    url, state = flow.authorization_url(access_type="offline", prompt="consent")
    return url, state, flow.code_verifier


async def exchange_code(
    config: OAuthConfig,
    code: str,
    state: Optional[str] = None,
    code_verifier: Optional[str] = None,
) -> GoogleCredentialProvider:
    """Finish the consent flow by trading the authorization code for tokens."""
    from google_auth_oauthlib.flow import Flow

    flow = Flow.from_client_config(
        config.client_config(),
        scopes=config.scopes,
        redirect_uri=config.redirect_uri,
        state=state,
        code_verifier=code_verifier,
    )
    await asyncio.to_thread(flow.fetch_token, code=code)
    return GoogleCredentialProvider(flow.credentials)


# ---------------------------------------------------------------------------
# Mock Credentials for Local Development
# ---------------------------------------------------------------------------

class MockCredentialProvider:
    """Always-valid credentials for mock mode. Counts refreshes for tests."""

    def __init__(self, can_refresh: bool = True) -> None:
        self._can_refresh = can_refresh
        self.refresh_count = 0

    @property
    def can_refresh(self) -> bool:
        return self._can_refresh

    def is_expiring(self) -> bool:
        return False

    async def refresh(self) -> dict[str, Any]:
        self.refresh_count += 1
        return self.to_session()

    def to_session(self) -> dict[str, Any]:
        return {"token": f"mock-token-{self.refresh_count}", "refresh_token": "mock-refresh"}
