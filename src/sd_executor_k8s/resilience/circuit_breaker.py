"""Circuit breaker shared by every call an executor makes to the cluster."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, TypeVar

from sd_executor_k8s.core.exceptions import CircuitOpenError

_T = TypeVar("_T")

_CLOSED = "closed"
_OPEN = "open"
_HALF_OPEN = "half_open"


class CircuitBreaker:
    """Fail fast once the orchestrator API looks unhealthy.

    One breaker is shared across all concurrent start / stop / verify tasks
    of an executor, so a run of failures in one build makes the others
    fail immediately until ``recovery_timeout`` has passed.

    States:
        - **closed**: calls pass through.
        - **open**: calls are rejected with :class:`CircuitOpenError`.
        - **half_open**: a single trial call is let through; its outcome
          closes or re-opens the circuit.

    Args:
        failure_threshold: Consecutive failures that open the circuit.
        recovery_timeout: Seconds to stay open before probing.
        timeout_errors: Exception types counted as timeouts in :meth:`stats`.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        timeout_errors: tuple[type[BaseException], ...] = (),
    ) -> None:
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._timeout_errors = timeout_errors

        self._state: str = _CLOSED
        self._failure_count = 0
        self._opened_at = 0.0
        self._probing = False

        self._total = 0
        self._success = 0
        self._failure = 0
        self._timeouts = 0
        self._concurrent = 0
        self._elapsed_total = 0.0

    @property
    def state(self) -> str:
        """Current state; an expired *open* circuit reads as *half_open*."""
        if self._state == _OPEN:
            if time.monotonic() - self._opened_at >= self._recovery_timeout:
                self._state = _HALF_OPEN
                self._probing = False
        return self._state

    @property
    def is_closed(self) -> bool:
        return self.state == _CLOSED

    async def execute(
        self,
        fn: Callable[..., Awaitable[_T]],
        *args: Any,
        **kwargs: Any,
    ) -> _T:
        """Run ``await fn(*args, **kwargs)`` unless the circuit is open.

        Raises:
            CircuitOpenError: If the circuit is open or a half-open trial call
                is already in flight.
        """
        current = self.state
        if current == _OPEN or (current == _HALF_OPEN and self._probing):
            raise CircuitOpenError(
                "Circuit breaker is open, calls to the cluster are being rejected",
                code="CIRCUIT_OPEN",
            )
        trial = current == _HALF_OPEN
        if trial:
            self._probing = True

        self._total += 1
        self._concurrent += 1
        started = time.monotonic()
        try:
            result: _T = await fn(*args, **kwargs)
        except Exception as exc:
            if isinstance(exc, self._timeout_errors):
                self._timeouts += 1
            self._on_failure()
            raise
        except asyncio.CancelledError:
            # A cancelled trial call reopens the circuit.
            if trial:
                self._trip()
            raise
        else:
            self._on_success()
            return result
        finally:
            self._concurrent -= 1
            self._elapsed_total += time.monotonic() - started

    def stats(self) -> dict[str, Any]:
        """Request counters and breaker state, in the executor's wire format."""
        finished = self._success + self._failure
        average_ms = (self._elapsed_total * 1000.0 / finished) if finished else 0
        return {
            "requests": {
                "total": self._total,
                "timeouts": self._timeouts,
                "success": self._success,
                "failure": self._failure,
                "concurrent": self._concurrent,
                "averageTime": average_ms,
            },
            "breaker": {"isClosed": self.is_closed},
        }

    def reset(self) -> None:
        """Manually close the circuit."""
        self._state = _CLOSED
        self._failure_count = 0
        self._opened_at = 0.0
        self._probing = False

    def _on_success(self) -> None:
        self._success += 1
        if self._state == _HALF_OPEN:
            self.reset()
        else:
            self._failure_count = 0

    def _on_failure(self) -> None:
        self._failure += 1
        if self._state == _HALF_OPEN:
            self._trip()
            return
        self._failure_count += 1
        if self._failure_count >= self._failure_threshold:
            self._trip()

    def _trip(self) -> None:
        self._state = _OPEN
        self._opened_at = time.monotonic()
        self._failure_count = 0
        self._probing = False
