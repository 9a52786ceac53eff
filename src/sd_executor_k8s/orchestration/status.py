"""Pod status classification, polling predicates and the start state machine.

Everything here is pure: no I/O, no clocks.  The orchestrators feed in
:class:`WorkloadStatusSnapshot` values and act on the returned decisions.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel

from sd_executor_k8s.core.constants import (
    CONFIG_ERROR_REASONS,
    IMAGE_ERROR_REASONS,
    INITIALIZING_REASONS,
    MSG_CLUSTER_ADMIN,
    MSG_INVALID_IMAGE,
    PodPhase,
)
from sd_executor_k8s.core.types import WorkloadStatusSnapshot


class OutcomeKind(StrEnum):
    CONTINUE = "continue"
    SUCCEED = "succeed"
    FAIL = "fail"


class Outcome(BaseModel):
    """Tagged result of looking at one snapshot."""

    kind: OutcomeKind
    message: str | None = None
    initializing: bool = False

    @property
    def failed(self) -> bool:
        return self.kind == OutcomeKind.FAIL


class PollDecision(BaseModel):
    retry: bool
    outcome: Outcome


class StartState(StrEnum):
    SUBMITTING = "submitting"
    AWAITING_SCHEDULE = "awaiting_schedule"
    REPORTING_INTERIM = "reporting_interim"
    AWAITING_READY = "awaiting_ready"
    DONE = "done"
    FAILED = "failed"


CONTINUE = Outcome(kind=OutcomeKind.CONTINUE)
SUCCEED = Outcome(kind=OutcomeKind.SUCCEED)


def classify(snapshot: WorkloadStatusSnapshot) -> Outcome:
    """Map a snapshot onto continue / succeed / fail.

    ============================================  ==================================
    condition                                     outcome
    ============================================  ==================================
    phase failed / unknown                        fail, "Pod status is: <phase>"
    waiting reason in CONFIG_ERROR_REASONS        fail, ask the cluster admin
    waiting reason in IMAGE_ERROR_REASONS         fail, check the image
    waiting reason PodInitializing et al.         continue (initializing)
    phase pending / missing                       continue
    phase running / succeeded                     succeed
    ============================================  ==================================
    """
    phase = snapshot.phase
    if phase in (PodPhase.FAILED, PodPhase.UNKNOWN):
        return Outcome(
            kind=OutcomeKind.FAIL,
            message=f"Failed to create pod. Pod status is: {phase}",
        )

    reason = snapshot.waiting_reason
    if reason in CONFIG_ERROR_REASONS:
        return Outcome(kind=OutcomeKind.FAIL, message=MSG_CLUSTER_ADMIN)
    if reason in IMAGE_ERROR_REASONS:
        return Outcome(kind=OutcomeKind.FAIL, message=MSG_INVALID_IMAGE)
    if reason in INITIALIZING_REASONS:
        return Outcome(kind=OutcomeKind.CONTINUE, initializing=True)

    if phase in (PodPhase.RUNNING, PodPhase.SUCCEEDED):
        return SUCCEED
    return CONTINUE


def schedule_wait(snapshot: WorkloadStatusSnapshot) -> PollDecision:
    """Keep polling until the pod is scheduled, or has already failed."""
    outcome = classify(snapshot)
    if outcome.kind != OutcomeKind.CONTINUE:
        return PollDecision(retry=False, outcome=outcome)
    scheduled = snapshot.scheduled or snapshot.node_name is not None
    return PollDecision(retry=not scheduled, outcome=outcome)


def pending_wait(snapshot: WorkloadStatusSnapshot) -> PollDecision:
    """Keep polling while the pod is pending and nothing fatal has shown up."""
    outcome = classify(snapshot)
    return PollDecision(retry=outcome.kind == OutcomeKind.CONTINUE, outcome=outcome)


def next_state(state: StartState, outcome: Outcome) -> StartState:
    """The single transition function of the start protocol.

    ``FAILED`` is reachable from every live state and, like ``DONE``, is
    absorbing.  A pod that is already running when the interim report is
    sent skips the readiness wait.
    """
    if state in (StartState.DONE, StartState.FAILED):
        return state
    if outcome.failed:
        return StartState.FAILED

    if state == StartState.SUBMITTING:
        return StartState.AWAITING_SCHEDULE
    if state == StartState.AWAITING_SCHEDULE:
        return StartState.REPORTING_INTERIM
    if state == StartState.REPORTING_INTERIM:
        if outcome.kind == OutcomeKind.SUCCEED:
            return StartState.DONE
        return StartState.AWAITING_READY
    return StartState.DONE
