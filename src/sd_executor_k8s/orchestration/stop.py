from __future__ import annotations

import structlog

from sd_executor_k8s.core.config import ExecutorConfig
from sd_executor_k8s.core.exceptions import PodDeletionError
from sd_executor_k8s.resilience.request_executor import HttpRequest, RequestExecutor

logger = structlog.get_logger(__name__)


class StopOrchestrator:
    """Delete every pod labelled with a build's id.

    A selector that matches nothing is still a success: stopping a build
    whose pods are already gone is a no-op.
    """

    def __init__(self, config: ExecutorConfig, executor: RequestExecutor) -> None:
        self._config = config
        self._executor = executor

    async def run(self, build_id: int) -> None:
        """Issue one delete-by-selector call for *build_id*.

        Raises:
            PodDeletionError: If the cluster answers with anything but 200.
        """
        selector = self._config.label_selector(build_id)
        result = await self._executor.run(
            HttpRequest(
                method="DELETE",
                url=self._config.pods_url,
                headers=self._config.auth_headers,
                params={"labelSelector": selector},
            )
        )
        if result.status_code != 200:
            logger.warning(
                "pod_delete_failed",
                build_id=build_id,
                selector=selector,
                status_code=result.status_code,
            )
            raise PodDeletionError(
                f"Failed to delete pod:{result.body_text}",
                code="POD_DELETE",
                details={"body": result.body},
                status_code=result.status_code,
            )
        logger.info("pods_deleted", build_id=build_id, selector=selector)
