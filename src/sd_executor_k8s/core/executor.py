from __future__ import annotations

from typing import Any

import httpx
import structlog

from sd_executor_k8s.core.config import ExecutorConfig
from sd_executor_k8s.core.exceptions import RequestTimeoutError
from sd_executor_k8s.core.types import BuildDescriptor, HttpResult, StartResult
from sd_executor_k8s.orchestration.start import StartOrchestrator
from sd_executor_k8s.orchestration.stop import StopOrchestrator
from sd_executor_k8s.orchestration.verify import VerifyOrchestrator
from sd_executor_k8s.reporting.build_api import BuildStatusReporter
from sd_executor_k8s.resilience.circuit_breaker import CircuitBreaker
from sd_executor_k8s.resilience.request_executor import RequestExecutor
from sd_executor_k8s.resilience.retry import RetryPolicy
from sd_executor_k8s.workload.builder import WorkloadSpecBuilder
from sd_executor_k8s.workload.template import ManifestTemplate

logger = structlog.get_logger(__name__)


class K8sExecutor:
    """Run Screwdriver builds as Kubernetes pods.

    Build one per process and share it::

        config = ExecutorConfig.from_env()
        async with K8sExecutor(config) as executor:
            result = await executor.start(descriptor)
            if result.pending:
                message = await executor.verify(descriptor.build_id)

    All requests, to the cluster and to the build API alike, go through a
    single circuit breaker, so :meth:`stats` describes the whole executor.
    """

    def __init__(
        self,
        config: ExecutorConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        template: ManifestTemplate | None = None,
    ) -> None:
        self._config = config
        self._breaker = CircuitBreaker(
            failure_threshold=config.breaker_failure_threshold,
            recovery_timeout=config.breaker_recovery_timeout,
            timeout_errors=(RequestTimeoutError,),
        )
        self._requests = RequestExecutor(
            breaker=self._breaker,
            retry_policy=RetryPolicy(
                max_retries=config.request_retries,
                backoff_base=config.request_backoff,
            ),
            http_client=http_client,
            timeout=config.request_timeout,
        )
        self._builder = WorkloadSpecBuilder(config, template=template)
        self._reporter = BuildStatusReporter(self._requests, config.ecosystem.api)
        self._start = StartOrchestrator(config, self._builder, self._requests, self._reporter)
        self._stop = StopOrchestrator(config, self._requests)
        self._verify = VerifyOrchestrator(config, self._requests)

    @property
    def config(self) -> ExecutorConfig:
        return self._config

    @property
    def builder(self) -> WorkloadSpecBuilder:
        return self._builder

    async def start(self, descriptor: BuildDescriptor) -> StartResult:
        """Create the build pod and wait for it to be scheduled and running."""
        logger.info("build_start", build_id=descriptor.build_id)
        return await self._start.run(descriptor)

    async def stop(self, build_id: int) -> None:
        """Delete every pod belonging to *build_id*."""
        logger.info("build_stop", build_id=build_id)
        await self._stop.run(build_id)

    async def verify(self, build_id: int) -> str | None:
        """Return a fatal status message for *build_id*, or ``None``."""
        return await self._verify.run(build_id)

    async def update_build(
        self,
        build_id: int,
        token: str,
        *,
        stats: dict[str, Any] | None = None,
        status_message: str | None = None,
    ) -> HttpResult:
        return await self._reporter.report(
            build_id, token, stats=stats, status_message=status_message
        )

    def stats(self) -> dict[str, Any]:
        """Request counters and breaker state, e.g. for a health endpoint."""
        return self._breaker.stats()

    # Periodic and frozen builds are scheduled elsewhere; these hooks exist
    # so callers can treat every executor alike.

    async def start_periodic(self, *_: Any, **__: Any) -> None:
        return None

    async def stop_periodic(self, *_: Any, **__: Any) -> None:
        return None

    async def start_frozen(self, *_: Any, **__: Any) -> None:
        return None

    async def stop_frozen(self, *_: Any, **__: Any) -> None:
        return None

    async def close(self) -> None:
        """Release the HTTP client if the executor created it."""
        await self._requests.aclose()

    async def __aenter__(self) -> "K8sExecutor":
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()
