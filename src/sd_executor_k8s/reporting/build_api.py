"""Build status updates sent to the Screwdriver API."""

from __future__ import annotations

from typing import Any

import structlog

from sd_executor_k8s.core.exceptions import BuildUpdateError
from sd_executor_k8s.core.types import HttpResult
from sd_executor_k8s.resilience.request_executor import HttpRequest, RequestExecutor

logger = structlog.get_logger(__name__)


class BuildStatusReporter:
    """Thin pass-through to ``PUT /v4/builds/<id>``."""

    def __init__(self, executor: RequestExecutor, api_uri: str) -> None:
        self._executor = executor
        self._api_uri = api_uri.rstrip("/")

    async def report(
        self,
        build_id: int,
        token: str,
        *,
        stats: dict[str, Any] | None = None,
        status_message: str | None = None,
    ) -> HttpResult:
        """Send whichever of *stats* / *status_message* is present.

        Raises:
            BuildUpdateError: If the API answers with a non-2xx status.
        """
        body: dict[str, Any] = {}
        if status_message:
            body["statusMessage"] = status_message
        if stats:
            body["stats"] = stats

        result = await self._executor.run(
            HttpRequest(
                method="PUT",
                url=f"{self._api_uri}/v4/builds/{build_id}",
                headers={"Authorization": f"Bearer {token}"},
                json_body=body,
            )
        )
        if not result.ok:
            raise BuildUpdateError(
                f"Failed to update build {build_id}:{result.body_text}",
                details={"body": result.body},
                status_code=result.status_code,
            )
        logger.debug("build_updated", build_id=build_id, fields=sorted(body))
        return result
