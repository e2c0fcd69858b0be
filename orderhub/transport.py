"""
JSON API capability used by every adapter.

The adapters only need "send a request, get JSON and headers back". JsonApi
is that capability; HttpJsonApi implements it over httpx. Tests substitute
their own JsonApi or hand HttpJsonApi an httpx.MockTransport.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import httpx

from .config import Settings
from .errors import MalformedResponseError, NetworkError

logger = logging.getLogger(__name__)


@dataclass
class ApiResponse:
    """Decoded response from an upstream API."""
    status_code: int
    data: Any
    headers: Mapping[str, str] = field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    def header_int(self, name: str, default: int = 0) -> int:
        value = self.header(name)
        try:
            return int(value) if value is not None else default
        except ValueError:
            return default


class JsonApi(ABC):
    """
    Abstract fetch capability for one upstream API.

    Implementations raise NetworkError for transport failures and non-2xx
    responses and MalformedResponseError for bodies that are not JSON.
    """

    source: str  # e.g. "firebase", "woocommerce", "tracking"

    @abstractmethod
    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Any = None,
        retry: bool = False,
    ) -> ApiResponse:
        """
        Send a request relative to the API base URL.

        Args:
            method: HTTP method
            path: Path relative to the base URL, e.g. "firebase/orders"
            params: Query parameters; None values are dropped
            json: JSON body
            retry: Retry transient failures with backoff. Only read paths
                   pass True; writes carry no dedupe token upstream.
        """
        pass

    async def get(self, path: str, *, params: Optional[dict] = None) -> ApiResponse:
        return await self.request("GET", path, params=params, retry=True)

    async def aclose(self) -> None:
        pass


class HttpJsonApi(JsonApi):
    """httpx-backed JsonApi with API-key and Basic auth."""

    def __init__(
        self,
        source: str,
        base_url: str,
        api_key: str = "",
        auth: Optional[httpx.Auth] = None,
        timeout: float = 15.0,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.source = source
        self._base_url = base_url.rstrip("/")
        self._retry_attempts = max(1, retry_attempts)
        self._retry_backoff_seconds = retry_backoff_seconds

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["x-api-key"] = api_key

        self._client = httpx.AsyncClient(
            base_url=self._base_url + "/",
            headers=headers,
            auth=auth,
            timeout=timeout,
            transport=transport,
        )

        logger.info("%s API client initialized: %s", self.source, self._base_url)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Any = None,
        retry: bool = False,
    ) -> ApiResponse:
        attempts = self._retry_attempts if retry else 1

        for attempt in range(attempts):
            try:
                return await self._send(method, path, params, json)
            except NetworkError as e:
                if attempt + 1 >= attempts or not e.is_retryable:
                    raise
                delay = self._retry_backoff_seconds * (2 ** attempt)
                logger.warning(
                    "%s %s %s failed (%s), retry %d/%d in %.2fs",
                    self.source, method, path, e.message, attempt + 1, attempts - 1, delay
                )
                await asyncio.sleep(delay)

        raise AssertionError("unreachable")

    async def _send(self, method: str, path: str, params: Optional[dict], json: Any) -> ApiResponse:
        start_time = time.time()
        query = {k: v for k, v in (params or {}).items() if v is not None}

        try:
            response = await self._client.request(method, path, params=query or None, json=json)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{method} {path} timed out", source=self.source) from e
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {path} failed: {e}", source=self.source) from e

        latency_ms = int((time.time() - start_time) * 1000)

        if not response.is_success:
            message = _error_message(response) or (
                f"{method} {path} failed with HTTP {response.status_code}"
            )
            logger.error(
                "%s %s %s -> HTTP %d after %dms: %s",
                self.source, method, path, response.status_code, latency_ms, message
            )
            raise NetworkError(message, source=self.source, status_code=response.status_code)

        logger.debug(
            "%s %s %s -> HTTP %d in %dms",
            self.source, method, path, response.status_code, latency_ms
        )

        try:
            data = response.json() if response.content else None
        except ValueError as e:
            raise MalformedResponseError(
                f"{method} {path} returned invalid JSON", source=self.source
            ) from e

        return ApiResponse(status_code=response.status_code, data=data, headers=response.headers)

    async def aclose(self) -> None:
        await self._client.aclose()


def _error_message(response: httpx.Response) -> Optional[str]:
    """Best-effort error text from a failed response body."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        error = body.get("error") or body.get("message")
        if error:
            return str(error)
    return None


def create_api(
    source: str,
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> HttpJsonApi:
    """Build an HttpJsonApi for one upstream from settings."""
    auth = None
    if settings.has_basic_auth:
        auth = httpx.BasicAuth(settings.basic_auth_email, settings.basic_auth_password)

    return HttpJsonApi(
        source=source,
        base_url=settings.api_base_url,
        api_key=settings.api_key,
        auth=auth,
        timeout=settings.request_timeout_seconds,
        retry_attempts=settings.retry_attempts,
        retry_backoff_seconds=settings.retry_backoff_seconds,
        transport=transport,
    )
