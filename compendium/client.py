"""
Compendium API client.

Thin async HTTP layer over the Compendium bot API. Status handling follows the
service convention: ``[200, 400)`` is success, ``[400, 500)`` is an
application error whose JSON body carries an ``error`` message, and anything
else (or a transport failure) is a server error.
"""

import logging
from typing import Any, Optional, Union

import httpx

from .errors import ApiError, ServerError
from .models import Identity, Profile, ProfileSyncState, SyncMode, TechLevels, tech_levels_to_dict

logger = logging.getLogger("compendium.client")

DEFAULT_API_URL = "https://compendiumnew.mentalisit.myds.me/compendium"


class CompendiumApiClient:
    """Async client for the Compendium bot API."""

    def __init__(
        self,
        url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    def get_url(self) -> str:
        return self.url

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        token: Optional[str] = None,
        **kwargs,
    ) -> Any:
        """Make an API request and return the decoded JSON body."""
        client = await self._get_http_client()
        url = f"{self.url}{endpoint}"

        headers = kwargs.pop("headers", {})
        headers["Content-Type"] = "application/json"
        if token is not None:
            headers["Authorization"] = token

        try:
            response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.RequestError as e:
            logger.warning(f"Network error on {method} {endpoint}: {e}")
            raise ServerError(f"Network error: {e}") from e

        status = response.status_code
        if status < 200 or status >= 500:
            logger.warning(f"Server error {status} on {method} {endpoint}")
            raise ServerError("Server Error", status_code=status)

        try:
            data = response.json()
        except ValueError as e:
            if status >= 400:
                raise ApiError(response.text or f"HTTP {status}", status_code=status) from e
            raise ServerError(f"Invalid JSON response from {endpoint}", status_code=status) from e

        if status >= 400:
            message = data.get("error") if isinstance(data, dict) else None
            raise ApiError(message or f"HTTP {status}", status_code=status)

        return data

    @staticmethod
    def _parse_identity(data: Any) -> Identity:
        try:
            return Identity.from_dict(data)
        except (TypeError, ValueError) as e:
            raise ServerError(f"Malformed identity in response: {e}") from e

    # === Identity ===

    async def check_identity(self, code: str) -> Identity:
        """Resolve a connect code into the identity it would grant."""
        data = await self._request("GET", "/identities", params={"ident": code})
        return self._parse_identity(data)

    async def connect(self, identity: Identity) -> Identity:
        """Confirm an identity obtained from check_identity."""
        data = await self._request(
            "POST",
            "/connect",
            token=identity.token,
            json=identity.to_dict(),
        )
        logger.info(f"Connected as {identity.user.username}")
        return self._parse_identity(data)

    async def refresh_connection(self, token: str) -> Identity:
        """Exchange the current token for a fresh identity."""
        data = await self._request("GET", "/refresh", token=token)
        return self._parse_identity(data)

    # === Sync ===

    async def sync(
        self,
        profile: str,
        token: str,
        mode: Union[SyncMode, str],
        tech_levels: TechLevels,
    ) -> ProfileSyncState:
        """Send a profile's tech levels and return the server's state for it."""
        mode = SyncMode(mode)
        params = {"mode": mode.value}
        if profile != Profile.DEFAULT:
            params["twin"] = profile

        payload = {
            "ver": 1,
            "inSync": 1,
            "techLevels": tech_levels_to_dict(tech_levels),
        }
        data = await self._request("POST", "/sync", token=token, params=params, json=payload)

        try:
            return ProfileSyncState.from_dict(data)
        except (TypeError, ValueError) as e:
            raise ServerError(f"Malformed sync response: {e}") from e

    # === Read-only queries ===

    async def corpdata(
        self,
        token: str,
        corp_id: Optional[str] = None,
        role_id: Optional[str] = None,
    ) -> dict:
        """Fetch corporation data, filtered by corporation or role."""
        params = {}
        if corp_id is not None:
            params["corpId"] = corp_id
        elif role_id is not None:
            params["roleId"] = role_id
        return await self._request("GET", "/cmd/corpdata", token=token, params=params)

    async def get_user_corporations(self, token: str) -> dict:
        """List the corporations the user belongs to."""
        return await self._request("GET", "/user/corporations", token=token)
