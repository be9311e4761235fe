"""Async HTTP client for the identity provider's user management API.

Only account deletion is needed by the erasure engine. The call is made
after the local cascade has committed, so failures are reported in the
result (and recorded in the audit journal) rather than raised.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from oblivio.foundation.domain.ports import AccountDeletionResult

if TYPE_CHECKING:
    from oblivio.domain.identity.settings import IdentityProviderSettings

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 10.0


class IdentityProviderError(Exception):
    """Raised when the identity provider returns an unexpected status.

    Attributes:
        status_code: HTTP status from the identity provider.
        detail: Response body excerpt.
    """

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Identity provider returned {status_code}: {detail}")


class IdentityProviderClient:
    """Implements ``IdentityProviderPort`` over the provider's REST API.

    Supports both per-request and shared httpx.AsyncClient modes:
    - If ``client`` is provided, it is reused across calls (caller manages lifecycle).
    - If ``client`` is omitted, an internal client is created lazily on first use.
      Call :meth:`aclose` to release the internal client when done.

    Args:
        base_url: Management API base URL (e.g., "https://api.idp.example.com").
        secret_key: Management API secret, sent as a bearer token.
        timeout: HTTP request timeout in seconds.
        client: Optional shared httpx.AsyncClient instance.
    """

    def __init__(
        self,
        base_url: str,
        secret_key: str,
        timeout: float = _DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._secret_key = secret_key
        self._timeout = timeout
        self._external_client = client is not None
        self._client: httpx.AsyncClient | None = client

    @classmethod
    def from_settings(
        cls,
        settings: IdentityProviderSettings,
        client: httpx.AsyncClient | None = None,
    ) -> IdentityProviderClient:
        return cls(
            base_url=settings.base_url,
            secret_key=settings.secret_key,
            timeout=settings.timeout,
            client=client,
        )

    async def delete_account(self, external_id: str) -> AccountDeletionResult:
        """Delete the provider account for ``external_id``.

        A 404 means the account is already gone and counts as success.

        Returns:
            AccountDeletionResult describing the outcome. Never raises for
            HTTP or transport failures.
        """
        try:
            await self._delete(f"/v1/users/{external_id}")
        except IdentityProviderError as exc:
            if exc.status_code == 404:
                logger.info("idp_account_already_absent")
                return AccountDeletionResult(deleted=True, already_absent=True)
            logger.error("idp_account_delete_failed", extra={"status": exc.status_code})
            return AccountDeletionResult(deleted=False, error=str(exc))
        except httpx.HTTPError as exc:
            logger.error("idp_account_delete_connection_error", extra={"error": str(exc)})
            return AccountDeletionResult(deleted=False, error=f"Connection error: {exc}")
        logger.info("idp_account_deleted")
        return AccountDeletionResult(deleted=True)

    async def _delete(self, path: str) -> None:
        client = self._get_client()
        response = await client.delete(
            f"{self._base_url}{path}",
            headers={
                "Authorization": f"Bearer {self._secret_key}",
                "Content-Type": "application/json",
            },
            timeout=self._timeout,
        )
        if response.is_success:
            return
        raise IdentityProviderError(response.status_code, response.text[:200])

    def _get_client(self) -> httpx.AsyncClient:
        """Return the shared or lazily-created httpx.AsyncClient."""
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        """Close the internal httpx.AsyncClient if we own it.

        No-op if the client was provided externally or not yet created.
        """
        if self._client is not None and not self._external_client:
            await self._client.aclose()
            self._client = None
