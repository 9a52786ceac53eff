"""Start / stop / verify protocols and the pod status rules they share."""

from sd_executor_k8s.orchestration.start import StartOrchestrator
from sd_executor_k8s.orchestration.status import (
    Outcome,
    OutcomeKind,
    PollDecision,
    StartState,
    classify,
    next_state,
    pending_wait,
    schedule_wait,
)
from sd_executor_k8s.orchestration.stop import StopOrchestrator
from sd_executor_k8s.orchestration.verify import VerifyOrchestrator

__all__ = [
    "Outcome",
    "OutcomeKind",
    "PollDecision",
    "StartOrchestrator",
    "StartState",
    "StopOrchestrator",
    "VerifyOrchestrator",
    "classify",
    "next_state",
    "pending_wait",
    "schedule_wait",
]
