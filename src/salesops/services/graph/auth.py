"""Microsoft Graph authentication with app-only client credentials.

Acquires tokens from the Entra ID v2.0 token endpoint and caches the
current token until shortly before it expires. A single lock guards
refreshes so concurrent provisioning calls share one token request.
"""

from __future__ import annotations

import asyncio
import time

import httpx
import structlog

from src.salesops.errors import RemoteAuthError
from src.salesops.services.graph.models import AccessToken

logger = structlog.get_logger(__name__)

GRAPH_SCOPE = "https://graph.microsoft.com/.default"

# Refresh this many seconds before the reported expiry
EXPIRY_SKEW_SECONDS = 60.0


class GraphAuthManager:
    """Acquires and caches Graph access tokens via the client-credentials grant.

    Args:
        tenant_id: Entra ID tenant (directory) id.
        client_id: Application (client) id.
        client_secret: Application client secret.
        authority_host: Token authority base URL.
        timeout: Timeout in seconds for the token request.
        transport: Optional httpx transport (tests inject a MockTransport).
    """

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        authority_host: str = "https://login.microsoftonline.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._tenant_id = tenant_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = f"{authority_host.rstrip('/')}/{tenant_id}/oauth2/v2.0/token"
        self._timeout = timeout
        self._transport = transport
        self._token: AccessToken | None = None
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        """Return a valid bearer token, acquiring a new one when needed."""
        if self._token is not None and not self._token.is_expired(EXPIRY_SKEW_SECONDS):
            return self._token.value

        async with self._lock:
            # Another task may have refreshed while we waited
            if self._token is not None and not self._token.is_expired(EXPIRY_SKEW_SECONDS):
                return self._token.value
            self._token = await self.acquire_token()
            return self._token.value

    def invalidate(self) -> None:
        """Drop the cached token so the next call re-acquires."""
        self._token = None

    async def acquire_token(self) -> AccessToken:
        """Request a fresh token from the token endpoint.

        Raises:
            RemoteAuthError: If the endpoint is unreachable, rejects the
                credentials, or returns no access token.
        """
        form = {
            "grant_type": "client_credentials",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "scope": GRAPH_SCOPE,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(self._token_url, data=form)
        except httpx.HTTPError as exc:
            raise RemoteAuthError(
                f"Token request failed: {exc}", tenant_id=self._tenant_id
            ) from exc

        if response.status_code != 200:
            raise RemoteAuthError(
                "Failed to acquire application token for Microsoft Graph",
                status_code=response.status_code,
                tenant_id=self._tenant_id,
            )

        payload = response.json()
        value = payload.get("access_token")
        if not value:
            raise RemoteAuthError(
                "Token response did not include an access token",
                tenant_id=self._tenant_id,
            )

        expires_in = float(payload.get("expires_in", 3600))
        logger.info(
            "graph.token_acquired",
            tenant_id=self._tenant_id,
            expires_in=expires_in,
        )
        return AccessToken(value=value, expires_at=time.monotonic() + expires_in)
