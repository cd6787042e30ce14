"""HTTP client for the hosted table store that mirrors the local ledger."""

import asyncio
from typing import Any

import httpx
import structlog

from hotel_ledger.config import get_settings
from hotel_ledger.errors import LedgerError

logger = structlog.get_logger(__name__)


class RemoteStoreError(LedgerError):
    """Base exception for remote store errors."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class AuthenticationError(RemoteStoreError):
    """The remote store rejected our credentials."""

    pass


class RemoteStoreClient:
    """Async client for upsert/delete by table name and record id."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        access_token: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.remote_store_url).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.remote_store_key.get_secret_value()
        self._access_token = access_token
        self._timeout = timeout if timeout is not None else settings.remote_store_timeout
        self._max_retries = (
            max_retries if max_retries is not None else settings.remote_store_max_retries
        )
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RemoteStoreClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def set_access_token(self, token: str | None) -> None:
        """Use the signed-in user's token instead of the anonymous key."""
        self._access_token = token

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
        bearer = self._access_token or self._api_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        retry_count: int = 0,
    ) -> Any:
        """Make a request, retrying transport errors with backoff."""
        client = await self._get_client()
        request_headers = {**self._get_headers(), **(headers or {})}

        try:
            response = await client.request(
                method=method,
                url=path,
                params=params,
                json=json,
                headers=request_headers,
            )
        except httpx.RequestError as e:
            if retry_count < self._max_retries:
                await asyncio.sleep(2**retry_count)  # Exponential backoff
                return await self._request(method, path, params, json, headers, retry_count + 1)
            raise RemoteStoreError(f"Request failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthenticationError(
                "Remote store rejected credentials", status_code=response.status_code
            )

        if response.status_code >= 400:
            try:
                error_detail = response.json() if response.content else {}
            except Exception:
                error_detail = {"raw": response.text[:500] if response.text else "empty response"}
            raise RemoteStoreError(
                f"Remote store error: {response.status_code}",
                status_code=response.status_code,
                details=error_detail,
            )

        return response.json() if response.content else {}

    async def upsert(self, table: str, record: dict[str, Any]) -> Any:
        """Insert or update ``record`` in ``table``, keyed by its id."""
        result = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=record,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
        logger.debug("remote_upsert", table=table, record_id=record.get("id"))
        return result

    async def delete(self, table: str, record_id: str) -> Any:
        """Delete the row with ``record_id`` from ``table``."""
        result = await self._request(
            "DELETE", f"/rest/v1/{table}", params={"id": f"eq.{record_id}"}
        )
        logger.debug("remote_delete", table=table, record_id=record_id)
        return result
