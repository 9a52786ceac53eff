"""Start protocol: submit -> await schedule -> interim report -> await ready."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import structlog

from sd_executor_k8s.core.config import ExecutorConfig
from sd_executor_k8s.core.constants import MSG_WAITING_FOR_RESOURCES
from sd_executor_k8s.core.exceptions import (
    BuildStartError,
    ExecutorError,
    PodCreationError,
    PodStatusError,
)
from sd_executor_k8s.core.types import (
    BuildDescriptor,
    HttpResult,
    StartResult,
    WorkloadStatusSnapshot,
)
from sd_executor_k8s.orchestration.status import (
    CONTINUE,
    SUCCEED,
    Outcome,
    OutcomeKind,
    PollDecision,
    StartState,
    next_state,
    pending_wait,
    schedule_wait,
)
from sd_executor_k8s.reporting.build_api import BuildStatusReporter
from sd_executor_k8s.resilience.request_executor import HttpRequest, RequestExecutor
from sd_executor_k8s.resilience.retry import PollingPolicy
from sd_executor_k8s.workload.builder import WorkloadSpecBuilder

logger = structlog.get_logger(__name__)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def status_retry(predicate: Callable[[WorkloadStatusSnapshot], PollDecision]) -> Callable[[HttpResult], bool]:
    """Lift a snapshot predicate to a response predicate.

    Non-200 status reads are always retried; the final one is reported by
    the caller once the attempt budget is spent.
    """

    def should_retry(result: HttpResult) -> bool:
        if result.status_code != 200:
            return True
        return predicate(WorkloadStatusSnapshot.from_pod(result.body)).retry

    return should_retry


class _StartRun:
    """State carried through one start call; discarded afterwards."""

    def __init__(self, descriptor: BuildDescriptor) -> None:
        self.descriptor = descriptor
        self.pod: dict[str, Any] = {}
        self.pod_name = ""
        self.snapshot = WorkloadStatusSnapshot()
        self.last_outcome: Outcome = CONTINUE
        self.error: ExecutorError | None = None


class StartOrchestrator:
    """Drive a build pod from submission to running (or a classified failure).

    Each state has one handler returning an :class:`Outcome`;
    :func:`next_state` alone decides where to go next.  Handlers that fail
    record the error on the run and return a FAIL outcome; the error is
    raised once the machine reaches ``FAILED``.
    """

    def __init__(
        self,
        config: ExecutorConfig,
        builder: WorkloadSpecBuilder,
        executor: RequestExecutor,
        reporter: BuildStatusReporter,
    ) -> None:
        self._config = config
        self._builder = builder
        self._executor = executor
        self._reporter = reporter
        self._handlers: dict[StartState, Callable[[_StartRun], Awaitable[Outcome]]] = {
            StartState.SUBMITTING: self._submit,
            StartState.AWAITING_SCHEDULE: self._await_schedule,
            StartState.REPORTING_INTERIM: self._report_interim,
            StartState.AWAITING_READY: self._await_ready,
        }

    async def run(self, descriptor: BuildDescriptor) -> StartResult:
        """Start the build described by *descriptor*.

        Returns:
            A :class:`StartResult`; ``pending`` tells whether the pod was
            still pending when the polling budget ran out.

        Raises:
            TemplateError: The pod manifest could not be built.
            PodCreationError: The cluster refused the pod.
            PodStatusError: The pod status could not be read.
            BuildStartError: The pod failed or hit a fatal waiting reason.
        """
        run = _StartRun(descriptor)
        run.pod = self._builder.build(descriptor)

        state = StartState.SUBMITTING
        while state not in (StartState.DONE, StartState.FAILED):
            outcome = await self._handlers[state](run)
            run.last_outcome = outcome
            new_state = next_state(state, outcome)
            logger.debug(
                "start_transition",
                build_id=descriptor.build_id,
                from_state=state.value,
                to_state=new_state.value,
            )
            state = new_state

        if state == StartState.FAILED:
            error = run.error or BuildStartError(
                run.last_outcome.message or "Build failed to start.",
                code="BUILD_START",
            )
            logger.warning(
                "build_start_failed",
                build_id=descriptor.build_id,
                pod=run.pod_name or None,
                error=error.message,
            )
            raise error

        return StartResult(pod_name=run.pod_name, pending=run.snapshot.is_pending)

    # ------------------------------------------------------------------ #
    # State handlers
    # ------------------------------------------------------------------ #

    async def _submit(self, run: _StartRun) -> Outcome:
        result = await self._executor.run(
            HttpRequest(
                method="POST",
                url=self._config.pods_url,
                headers=self._config.auth_headers,
                json_body=run.pod,
            )
        )
        if not result.ok:
            return self._fail(
                run,
                PodCreationError(
                    f"Failed to create pod:{result.body_text}",
                    code="POD_CREATE",
                    details={"body": result.body},
                    status_code=result.status_code,
                ),
            )

        created = WorkloadStatusSnapshot.from_pod(result.body)
        run.pod_name = created.name or run.pod["metadata"]["name"]
        logger.info("pod_created", build_id=run.descriptor.build_id, pod=run.pod_name)
        return SUCCEED

    async def _await_schedule(self, run: _StartRun) -> Outcome:
        return await self._poll_status(run, schedule_wait)

    async def _report_interim(self, run: _StartRun) -> Outcome:
        descriptor = run.descriptor
        if run.snapshot.node_name:
            kwargs: dict[str, Any] = {
                "stats": {"hostname": run.snapshot.node_name, "imagePullStartTime": _iso_now()}
            }
        else:
            kwargs = {"status_message": MSG_WAITING_FOR_RESOURCES}

        try:
            await self._reporter.report(descriptor.build_id, descriptor.token, **kwargs)
        except ExecutorError as exc:
            # Status reports are telemetry; the build itself is unaffected.
            logger.warning("build_update_failed", build_id=descriptor.build_id, error=str(exc))

        if run.last_outcome.kind == OutcomeKind.SUCCEED:
            return SUCCEED
        if self._config.inter_phase_delay > 0:
            await asyncio.sleep(self._config.inter_phase_delay)
        return CONTINUE

    async def _await_ready(self, run: _StartRun) -> Outcome:
        return await self._poll_status(run, pending_wait)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    async def _poll_status(
        self,
        run: _StartRun,
        predicate: Callable[[WorkloadStatusSnapshot], PollDecision],
    ) -> Outcome:
        policy = PollingPolicy(
            max_attempts=self._config.max_attempts,
            delay=self._config.retry_delay,
            should_retry=status_retry(predicate),
        )
        result = await self._executor.run(
            HttpRequest(
                method="GET",
                url=f"{self._config.pods_url}/{run.pod_name}/status",
                headers=self._config.auth_headers,
            ),
            polling=policy,
        )
        if result.status_code != 200:
            return self._fail(
                run,
                PodStatusError(
                    f"Failed to get pod status:{result.body_text}",
                    code="POD_STATUS",
                    details={"body": result.body},
                    status_code=result.status_code,
                ),
            )

        run.snapshot = WorkloadStatusSnapshot.from_pod(result.body)
        outcome = predicate(run.snapshot).outcome
        logger.info(
            "pod_status",
            build_id=run.descriptor.build_id,
            pod=run.pod_name,
            phase=run.snapshot.phase,
            waiting_reason=run.snapshot.waiting_reason,
            node=run.snapshot.node_name,
        )
        if outcome.failed:
            return self._fail(
                run,
                BuildStartError(
                    outcome.message or "Build failed to start.",
                    code="BUILD_START",
                    details={"body": result.body},
                ),
            )
        return outcome

    @staticmethod
    def _fail(run: _StartRun, error: ExecutorError) -> Outcome:
        run.error = error
        return Outcome(kind=OutcomeKind.FAIL, message=error.message)
