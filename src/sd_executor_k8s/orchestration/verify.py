from __future__ import annotations

from typing import Any

import structlog

from sd_executor_k8s.core.config import ExecutorConfig
from sd_executor_k8s.core.constants import MSG_POD_INITIALIZING
from sd_executor_k8s.core.exceptions import PodInitializingError, PodStatusError
from sd_executor_k8s.core.types import WorkloadStatusSnapshot
from sd_executor_k8s.orchestration.status import classify
from sd_executor_k8s.resilience.request_executor import HttpRequest, RequestExecutor

logger = structlog.get_logger(__name__)


class VerifyOrchestrator:
    """One-shot health check over all pods of a build."""

    def __init__(self, config: ExecutorConfig, executor: RequestExecutor) -> None:
        self._config = config
        self._executor = executor

    async def run(self, build_id: int) -> str | None:
        """Return the first fatal message found, or ``None`` if nothing is wrong.

        Exactly one list call is made; there is no polling here.

        Raises:
            PodStatusError: The pod list could not be read.
            PodInitializingError: Every pod is still initializing. The error
                is retryable so the caller can verify again later.
        """
        result = await self._executor.run(
            HttpRequest(
                method="GET",
                url=self._config.pods_url,
                headers=self._config.auth_headers,
                params={"labelSelector": self._config.label_selector(build_id)},
            )
        )
        if result.status_code != 200:
            raise PodStatusError(
                f"Failed to get pod status:{result.body_text}",
                code="POD_STATUS",
                details={"body": result.body},
                status_code=result.status_code,
            )

        items: list[Any] = []
        if isinstance(result.body, dict):
            items = result.body.get("items") or []

        initializing = 0
        for item in items:
            outcome = classify(WorkloadStatusSnapshot.from_pod(item))
            if outcome.failed:
                logger.info("verify_failed", build_id=build_id, message=outcome.message)
                return outcome.message
            if outcome.initializing:
                initializing += 1

        if items and initializing == len(items):
            raise PodInitializingError(MSG_POD_INITIALIZING, code="POD_INITIALIZING")

        logger.debug("verify_ok", build_id=build_id, pods=len(items))
        return None
