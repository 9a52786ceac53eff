"""Retry policies: transport retries with backoff, and bounded status polling."""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable, TypeVar

import structlog
from pydantic import BaseModel, Field

from sd_executor_k8s.core.exceptions import ExecutorError, RequestTransportError
from sd_executor_k8s.core.types import HttpResult

logger = structlog.get_logger(__name__)

_T = TypeVar("_T")


class RetryPolicy(BaseModel):
    """Retry a call on transient transport failures with exponential backoff.

    Attributes:
        max_retries: Maximum number of retry attempts (0 = no retries).
        backoff_base: Base delay in seconds for exponential backoff.
        backoff_max: Maximum delay in seconds.
        jitter: If ``True``, the delay is drawn uniformly from ``[0, delay]``.
        retryable_exceptions: Exception types eligible for retry when they
            do not state their own ``is_retryable``.
    """

    max_retries: int = Field(default=4, ge=0, le=50)
    backoff_base: float = Field(default=1.0, ge=0.0)
    backoff_max: float = Field(default=30.0, ge=0.0)
    jitter: bool = True
    retryable_exceptions: tuple[type[Exception], ...] = (RequestTransportError,)

    model_config = {"arbitrary_types_allowed": True}

    def is_retryable(self, exc: Exception) -> bool:
        # Executor errors decide for themselves; everything else goes by type.
        if isinstance(exc, ExecutorError):
            return exc.is_retryable
        return isinstance(exc, self.retryable_exceptions)

    def compute_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1`` (``attempt`` is 0-indexed)."""
        delay: float = min(self.backoff_base * (2**attempt), self.backoff_max)
        if self.jitter:
            delay = random.uniform(0, delay)  # noqa: S311
        return delay

    async def execute(
        self,
        fn: Callable[..., Awaitable[_T]],
        *args: Any,
        **kwargs: Any,
    ) -> _T:
        """Call ``await fn(*args, **kwargs)``, retrying retryable failures.

        Raises:
            Exception: The last exception once retries are exhausted, or the
                first non-retryable one immediately.
        """
        attempt = 0
        while True:
            try:
                return await fn(*args, **kwargs)
            except Exception as exc:
                if not self.is_retryable(exc):
                    raise
                if attempt >= self.max_retries:
                    logger.warning("retry_exhausted", attempts=attempt + 1, error=str(exc))
                    raise
                delay = self.compute_delay(attempt)
                logger.info(
                    "retry_attempt",
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    delay=round(delay, 2),
                    error=str(exc),
                )
                await asyncio.sleep(delay)
                attempt += 1


class PollingPolicy(BaseModel):
    """Re-issue a request while ``should_retry`` says the answer is not final.

    Unlike :class:`RetryPolicy`, polling looks at successful responses: a
    pod that is still pending is a perfectly good HTTP 200 that nevertheless
    needs asking again.

    Attributes:
        max_attempts: Total number of requests, including the first.
        delay: Fixed seconds to sleep between attempts.
        should_retry: Predicate over the latest response.
    """

    max_attempts: int = Field(default=5, ge=1)
    delay: float = Field(default=3.0, ge=0.0)
    should_retry: Callable[[HttpResult], bool]

    async def run(self, fn: Callable[[], Awaitable[HttpResult]]) -> HttpResult:
        """Poll ``fn`` and return the first accepted or the last response."""
        result = await fn()
        for attempt in range(1, self.max_attempts):
            if not self.should_retry(result):
                break
            logger.debug(
                "poll_retry",
                attempt=attempt,
                max_attempts=self.max_attempts,
                status_code=result.status_code,
            )
            await asyncio.sleep(self.delay)
            result = await fn()
        return result
