"""Session state from the hosted auth provider.

The ledger only needs to know whether someone is signed in. This module
wraps the provider's token endpoints and reduces every answer to that
boolean, notifying listeners whenever it flips.
"""

from collections.abc import Callable
from typing import Any

import httpx
import structlog

from hotel_ledger.config import get_settings
from hotel_ledger.remote import AuthenticationError, RemoteStoreError

logger = structlog.get_logger(__name__)

SessionListener = Callable[[bool], None]


class AuthSession:
    """Tracks whether the current user holds a valid session."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.resolved_auth_url).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.remote_store_key.get_secret_value()
        self._timeout = timeout if timeout is not None else settings.remote_store_timeout
        self._client: httpx.AsyncClient | None = None

        self._access_token: str | None = None
        self._authenticated = False
        self._listeners: list[SessionListener] = []
        self._logger = logger.bind(component="auth_session")

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    @property
    def access_token(self) -> str | None:
        return self._access_token

    def on_change(self, listener: SessionListener) -> None:
        """Call ``listener(authenticated)`` whenever the session state flips."""
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _set_authenticated(self, value: bool) -> None:
        if value == self._authenticated:
            return
        self._authenticated = value
        self._logger.info("session_changed", authenticated=value)
        for listener in list(self._listeners):
            listener(value)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def sign_in(self, email: str, password: str) -> bool:
        """Exchange credentials for a session token.

        Raises:
            AuthenticationError: The provider rejected the credentials.
            RemoteStoreError: The provider could not be reached.
        """
        client = await self._get_client()
        try:
            response = await client.post(
                "/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
                headers=self._headers(),
            )
        except httpx.RequestError as e:
            raise RemoteStoreError(f"Auth request failed: {e}") from e

        if response.status_code in (400, 401):
            self._access_token = None
            self._set_authenticated(False)
            raise AuthenticationError("Invalid login credentials", status_code=response.status_code)
        if response.status_code >= 400:
            raise RemoteStoreError(
                f"Auth error: {response.status_code}", status_code=response.status_code
            )

        data: Any = response.json()
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise RemoteStoreError("Invalid sign-in response format")
        self._access_token = token
        self._set_authenticated(True)
        return True

    async def refresh(self) -> bool:
        """Ask the provider whether the held token is still a valid session."""
        if not self._access_token:
            self._set_authenticated(False)
            return False

        client = await self._get_client()
        try:
            response = await client.get("/auth/v1/user", headers=self._headers())
            valid = response.status_code == 200
        except httpx.HTTPError as e:
            self._logger.warning("session_check_failed", error=str(e))
            valid = False

        if not valid:
            self._access_token = None
        self._set_authenticated(valid)
        return valid

    async def sign_out(self) -> None:
        """Drop the session locally, telling the provider if we can."""
        if self._access_token:
            client = await self._get_client()
            try:
                await client.post("/auth/v1/logout", headers=self._headers())
            except httpx.HTTPError as e:
                self._logger.warning("sign_out_request_failed", error=str(e))
        self._access_token = None
        self._set_authenticated(False)
