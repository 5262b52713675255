"""
Async HTTP client for the account API.

Provides a clean interface for making API requests with basic-auth
credentials, error mapping, and retry logic.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from vault_identity.config import VaultIdentityConfig
from vault_identity.exceptions import (
    APIError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    RemoteAuthRejectedError,
    ServerError,
)

logger = structlog.get_logger(__name__)

# Methods that may be sent again after a transport error or 5xx
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})

SENSITIVE_KEYS = frozenset(
    {
        "auth",
        "token",
        "password",
        "key",
        "k",
        "a",
        "privkey",
        "body",
        "data",
        "keychain",
        "sealed_key",
    }
)


def sanitize_for_log(data: dict[str, Any]) -> dict[str, Any]:
    """
    Remove sensitive fields from a dict before logging.

    Recursively sanitizes nested dictionaries and lists.

    Args:
        data: Dictionary that may contain sensitive values.

    Returns:
        Copy with sensitive values replaced by "***".
    """
    result = {}
    for key, value in data.items():
        if key in SENSITIVE_KEYS:
            result[key] = "***"
        elif isinstance(value, dict):
            result[key] = sanitize_for_log(value)
        elif isinstance(value, list):
            result[key] = [
                sanitize_for_log(item) if isinstance(item, dict) else item for item in value
            ]
        else:
            result[key] = value
    return result


@dataclass(frozen=True, slots=True)
class Credentials:
    """Immutable basic-auth pair for atomic updates."""

    username: str
    token: str


class AsyncHttpClient:
    """Async HTTP client for the account API."""

    def __init__(
        self,
        config: VaultIdentityConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            config: Client configuration.
            transport: Optional transport for testing (mock transport).
        """
        self._config = config
        self._transport = transport

        self._credentials: Credentials | None = None
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def __aenter__(self) -> "AsyncHttpClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self._config.api_url,
                    timeout=self._config.timeout,
                    transport=self._transport,
                    headers={
                        "Accept": "application/json",
                        "User-Agent": self._config.user_agent,
                    },
                )
        return self._client

    async def close(self) -> None:
        async with self._client_lock:
            if self._client is None:
                logger.debug("Client not open.")
                return
            await self._client.aclose()
            self._client = None

    def set_credentials(self, username: str, token: str) -> None:
        """
        Set the basic-auth credentials used for authenticated requests.

        Note:
            Internal use only. Called by SessionManager once a session is
            established.
        """
        self._credentials = Credentials(username=username, token=token)

    def clear_credentials(self) -> None:
        self._credentials = None

    @property
    def is_authenticated(self) -> bool:
        """Check if credentials are set."""
        return self._credentials is not None

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        authenticated: bool = True,
        auth: tuple[str, str] | None = None,
        retry: bool | None = None,
    ) -> Any:
        """
        Make an API request.

        Args:
            method: HTTP method (GET, POST, etc.).
            endpoint: API endpoint (e.g., "/accounts/123").
            json: JSON body for POST/PUT requests.
            params: Query parameters.
            authenticated: Whether to send the session credentials.
            auth: Explicit (username, token) pair, overriding the session.
            retry: Whether transport errors and 5xx are retried. Defaults to
                True for idempotent methods only.

        Returns:
            Decoded JSON body, or None for an empty body.

        Raises:
            RemoteAuthRejectedError: On 401/403.
            NotFoundError: On 404.
            RateLimitError: On 429.
            ServerError: On 5xx after retries are exhausted.
            APIError: On any other non-2xx response or invalid JSON.
            NetworkError: If the request fails after retries are exhausted.
        """
        client = await self._ensure_client()

        if auth is None and authenticated:
            credentials = self._credentials  # Capture atomically for consistent reads
            if credentials is not None:
                auth = (credentials.username, credentials.token)

        if json is not None:
            logger.debug("API request", method=method, endpoint=endpoint, body=sanitize_for_log(json))
        else:
            logger.debug("API request", method=method, endpoint=endpoint)

        if retry is None:
            retry = method.upper() in IDEMPOTENT_METHODS
        max_retries = self._config.max_retries if retry else 0

        attempt = 0
        while True:
            try:
                response = await client.request(
                    method=method,
                    url=endpoint,
                    json=json,
                    params=params,
                    auth=httpx.BasicAuth(*auth) if auth is not None else httpx.USE_CLIENT_DEFAULT,
                )
            except httpx.TransportError as e:
                if attempt < max_retries:
                    attempt += 1
                    await self._backoff(attempt, endpoint, error_type=type(e).__name__)
                    continue
                msg = f"Request to {endpoint} failed"
                raise NetworkError(msg, endpoint=endpoint) from e

            if response.status_code >= 500 and attempt < max_retries:
                attempt += 1
                await self._backoff(attempt, endpoint, status=response.status_code)
                continue
            break

        if response.is_success:
            return self._decode(response, endpoint)

        self._raise_api_error(response, endpoint)

    async def _backoff(self, attempt: int, endpoint: str, **context: Any) -> None:
        delay = self._config.retry_delay * attempt
        logger.warning("Retrying request", endpoint=endpoint, attempt=attempt, delay=delay, **context)
        await asyncio.sleep(delay)

    @staticmethod
    def _decode(response: httpx.Response, endpoint: str) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise APIError(
                "Invalid JSON response from API",
                code=response.status_code,
                endpoint=endpoint,
            ) from e

    @staticmethod
    def _raise_api_error(response: httpx.Response, endpoint: str) -> None:
        status = response.status_code
        try:
            data = response.json()
        except ValueError:
            data = {}
        error_msg = data.get("error", "Unknown error") if isinstance(data, dict) else "Unknown error"

        if status in (httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN):
            raise RemoteAuthRejectedError(error_msg, code=status, endpoint=endpoint)
        if status == httpx.codes.NOT_FOUND:
            raise NotFoundError(error_msg, endpoint=endpoint)
        if status == httpx.codes.TOO_MANY_REQUESTS:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                error_msg, retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None
            )
        if status >= 500:
            raise ServerError(error_msg, code=status, endpoint=endpoint)

        msg = f"{error_msg} (status={status})"
        raise APIError(msg, code=status, endpoint=endpoint)
