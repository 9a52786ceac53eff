from __future__ import annotations

from typing import Any


class ExecutorError(Exception):
    """Base exception for all Kubernetes executor errors.

    Attributes:
        code: Optional machine-readable error code (e.g. ``"POD_CREATE"``).
        details: Arbitrary key/value context about the error.  Errors raised
            from an orchestrator response carry the raw body under ``"body"``.
        status_code: HTTP status code when the error originates from an
            orchestrator / API response (``None`` when not applicable).
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.status_code = status_code

    @property
    def is_retryable(self) -> bool:
        """Whether the operation that raised this error can be retried."""
        return False


class ConfigurationError(ExecutorError): ...


class TemplateError(ConfigurationError):
    """The pod manifest template could not be rendered or parsed.

    Never retried: the same template will fail the same way again.
    """


class PodCreationError(ExecutorError): ...


class PodStatusError(ExecutorError): ...


class PodDeletionError(ExecutorError): ...


class BuildStartError(ExecutorError):
    """The orchestrator reported a terminal phase or a fatal waiting reason."""


class BuildUpdateError(ExecutorError): ...


# ---------------------------------------------------------------------------
# Retryable / non-retryable specialisations
# ---------------------------------------------------------------------------


class RequestTransportError(ExecutorError):
    """A transport-level failure (DNS, TCP, TLS, timeout).

    Always retryable; transient network issues are common.
    """

    @property
    def is_retryable(self) -> bool:  # noqa: D102
        return True


class CircuitOpenError(ExecutorError):
    """Raised when the circuit breaker is open and rejecting calls.

    Not retryable: the caller should wait for the breaker to move to
    half-open before trying again.
    """

    @property
    def is_retryable(self) -> bool:  # noqa: D102
        return False


class PodInitializingError(ExecutorError):
    """Every pod for the build is still initializing.

    Retryable: an outer polling loop is expected to verify again later.
    """

    @property
    def is_retryable(self) -> bool:  # noqa: D102
        return True


class RequestTimeoutError(RequestTransportError):
    """The orchestrator or API did not answer within the request deadline."""
