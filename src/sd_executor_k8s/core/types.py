from __future__ import annotations

import json
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sd_executor_k8s.core.constants import PR_JOB_NAME_PATTERN, PodPhase

_PR_JOB_NAME = re.compile(PR_JOB_NAME_PATTERN)


def _section(parent: Any, key: str) -> dict[str, Any]:
    value = parent.get(key) if isinstance(parent, dict) else None
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


class BuildDescriptor(BaseModel):
    """A single "run this build" request.

    ``parent_job_id`` is only meaningful for pull-request jobs: it names the
    job whose cache the PR build may read but never write.
    """

    model_config = ConfigDict(frozen=True)

    build_id: int
    event_id: int | None = None
    job_id: int | None = None
    pipeline_id: int | None = None
    job_name: str | None = None
    parent_job_id: int | None = None
    container: str
    token: str
    annotations: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_pr(self) -> bool:
        return bool(self.job_name and _PR_JOB_NAME.match(self.job_name))


class ResolvedResources(BaseModel):
    cpu: int
    """Build container CPU in millicores."""
    memory: int | float
    """Build container memory in GB."""
    docker_enabled: bool = False
    docker_cpu: int = 0
    docker_memory: int | float = 0


class HttpResult(BaseModel):
    """Status code and decoded body of one orchestrator / API response."""

    status_code: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def body_text(self) -> str:
        """The body as compact JSON, the way it is quoted in error messages."""
        return json.dumps(self.body, separators=(",", ":"), default=str)


class WorkloadStatusSnapshot(BaseModel):
    """Point-in-time read of a submitted pod."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    phase: str | None = None
    scheduled: bool = False
    waiting_reason: str | None = None
    terminated_reason: str | None = None
    node_name: str | None = None

    @classmethod
    def from_pod(cls, body: Any) -> WorkloadStatusSnapshot:
        """Extract the fields the executor cares about from a pod document.

        Missing or malformed sections are treated as absent; a pod that has
        not been picked up yet simply has no phase.
        """
        if not isinstance(body, dict):
            return cls()

        status = _section(body, "status")
        spec = _section(body, "spec")
        metadata = _section(body, "metadata")

        phase = _text(status.get("phase"))
        conditions = status.get("conditions")
        scheduled = isinstance(conditions, list) and any(
            c.get("type") == "PodScheduled" and str(c.get("status")) == "True"
            for c in conditions
            if isinstance(c, dict)
        )

        waiting_reason = None
        terminated_reason = None
        container_statuses = status.get("containerStatuses")
        if isinstance(container_statuses, list) and container_statuses:
            state = _section(container_statuses[0], "state")
            waiting_reason = _text(_section(state, "waiting").get("reason"))
            terminated_reason = _text(_section(state, "terminated").get("reason"))

        return cls(
            name=_text(metadata.get("name")),
            phase=phase.lower() if phase else None,
            scheduled=scheduled,
            waiting_reason=waiting_reason,
            terminated_reason=terminated_reason,
            node_name=_text(spec.get("nodeName")),
        )

    @property
    def is_pending(self) -> bool:
        return self.phase == PodPhase.PENDING


class StartResult(BaseModel):
    """What :meth:`K8sExecutor.start` hands back to the caller.

    ``pending`` is ``True`` when the pod was still pending once the polling
    budget ran out; callers use it to schedule a later ``verify``.
    """

    pod_name: str
    pending: bool = False
