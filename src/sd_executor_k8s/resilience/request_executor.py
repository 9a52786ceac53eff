"""HTTP calls to the cluster and build API, behind a breaker and retries."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field

from sd_executor_k8s.core.exceptions import RequestTimeoutError, RequestTransportError
from sd_executor_k8s.core.types import HttpResult
from sd_executor_k8s.resilience.circuit_breaker import CircuitBreaker
from sd_executor_k8s.resilience.retry import PollingPolicy, RetryPolicy

logger = structlog.get_logger(__name__)


class HttpRequest(BaseModel):
    method: str
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    params: dict[str, str] | None = None
    json_body: Any = None


class RequestExecutor:
    """Uniform call contract for every outbound request.

    Each single HTTP exchange goes through the shared
    :class:`CircuitBreaker`; transport failures are retried by the
    :class:`RetryPolicy`; callers that need to wait for a state supply a
    :class:`PollingPolicy` on top.

    Non-2xx responses are *not* errors at this layer.  They are returned as
    an :class:`HttpResult` and each caller decides what they mean.
    """

    def __init__(
        self,
        *,
        breaker: CircuitBreaker | None = None,
        retry_policy: RetryPolicy | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._breaker = breaker or CircuitBreaker(timeout_errors=(RequestTimeoutError,))
        self._retry = retry_policy or RetryPolicy()
        self._timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    async def run(
        self,
        request: HttpRequest,
        polling: PollingPolicy | None = None,
    ) -> HttpResult:
        """Issue *request*, polling with *polling* when given.

        Raises:
            RequestTransportError: Transport failures once retries are exhausted.
            CircuitOpenError: When the breaker is rejecting calls.
        """
        if polling is None:
            return await self._attempt(request)
        return await polling.run(lambda: self._attempt(request))

    async def aclose(self) -> None:
        """Close the HTTP client if this executor created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _attempt(self, request: HttpRequest) -> HttpResult:
        return await self._retry.execute(self._breaker.execute, self._send, request)

    async def _send(self, request: HttpRequest) -> HttpResult:
        client = self._get_client()
        try:
            resp = await client.request(
                request.method,
                request.url,
                headers=request.headers,
                params=request.params,
                json=request.json_body,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(
                f"{request.method} {request.url} timed out: {exc}",
                code="TIMEOUT",
            ) from exc
        except httpx.RequestError as exc:
            raise RequestTransportError(
                f"{request.method} {request.url} failed: {exc}",
                code="TRANSPORT",
            ) from exc

        try:
            body: Any = resp.json()
        except ValueError:
            body = resp.text

        logger.debug(
            "http_response",
            method=request.method,
            url=request.url,
            status_code=resp.status_code,
        )
        return HttpResult(status_code=resp.status_code, body=body)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            # In-cluster API servers present a self-signed certificate.
            self._client = httpx.AsyncClient(verify=False, timeout=self._timeout)
            self._owns_client = True
        return self._client
