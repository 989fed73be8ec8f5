import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import httpx

from .config import ZohoConfig

logger = logging.getLogger(__name__)

AUTH_BASE = "https://accounts.zoho.com/oauth/v2"


@dataclass(frozen=True)
class TokenRefreshed:
    """Emitted after the access token has been replaced."""

    refreshed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class CredentialStore:
    """Current Zoho Desk credentials shared by every outbound call.

    The access token is the only mutable field and changes through
    ``replace_access_token``. ``refresh_lock`` serializes refresh attempts.
    """

    def __init__(
        self,
        access_token: str,
        org_id: str,
        refresh_token: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
    ):
        if not access_token or not org_id:
            raise ValueError("access_token and org_id are required")
        self._access_token = access_token
        self.org_id = org_id
        self.refresh_token = refresh_token
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: ZohoConfig) -> "CredentialStore":
        return cls(
            access_token=config.access_token,
            org_id=config.org_id,
            refresh_token=config.refresh_token,
            client_id=config.client_id,
            client_secret=config.client_secret,
        )

    @property
    def access_token(self) -> str:
        return self._access_token

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token and self.client_id and self.client_secret)

    def replace_access_token(self, token: str) -> None:
        if not token:
            raise ValueError("Refusing to replace the access token with an empty value")
        self._access_token = token


async def refresh_access_token(
    client_id: str,
    client_secret: str,
    refresh_token: str,
    *,
    auth_base: str = AUTH_BASE,
) -> Optional[str]:
    """Exchange a refresh token for a new access token.

    Returns the new token, or None if the token endpoint rejected the request,
    could not be reached, or answered with something other than a JSON body
    carrying ``access_token``. Never retries.
    """
    data = {
        "refresh_token": refresh_token,
        "client_id": client_id,
        "client_secret": client_secret,
        "grant_type": "refresh_token",
    }

    async with httpx.AsyncClient() as client:
        try:
            response = await client.post(f"{auth_base}/token", data=data)
        except httpx.RequestError as e:
            logger.warning("Token refresh request failed: %s", e)
            return None

    if not response.is_success:
        logger.warning("Token refresh rejected with HTTP %s", response.status_code)
        return None

    try:
        payload = response.json()
    except ValueError:
        logger.warning("Token refresh returned a body that is not JSON")
        return None

    token = payload.get("access_token") if isinstance(payload, dict) else None
    if not token:
        # Zoho answers 200 with {"error": "invalid_code"} for revoked refresh tokens
        logger.warning("Token refresh response has no access_token: %s", payload)
        return None
    return token
