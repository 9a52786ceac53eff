"""Tests for orchestration/status.py: classification and the start state machine."""
from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from sd_executor_k8s.core.constants import MSG_CLUSTER_ADMIN, MSG_INVALID_IMAGE
from sd_executor_k8s.core.types import WorkloadStatusSnapshot
from sd_executor_k8s.orchestration.status import (
    CONTINUE,
    SUCCEED,
    Outcome,
    OutcomeKind,
    StartState,
    classify,
    next_state,
    pending_wait,
    schedule_wait,
)

FAIL = Outcome(kind=OutcomeKind.FAIL, message="boom")

Snap = Callable[..., WorkloadStatusSnapshot]


@pytest.fixture
def snap(make_pod: Callable[..., dict[str, Any]]) -> Snap:
    def _snap(*args: Any, **kwargs: Any) -> WorkloadStatusSnapshot:
        return WorkloadStatusSnapshot.from_pod(make_pod(*args, **kwargs))

    return _snap


# ---------------------------------------------------------------------------
# WorkloadStatusSnapshot.from_pod
# ---------------------------------------------------------------------------


def test_snapshot_extracts_fields(snap: Snap) -> None:
    s = snap("Running", node="node1", scheduled=True, waiting="PodInitializing")
    assert s.name == "beta_15-abcde"
    assert s.phase == "running"
    assert s.node_name == "node1"
    assert s.scheduled is True
    assert s.waiting_reason == "PodInitializing"


def test_snapshot_tolerates_garbage() -> None:
    assert WorkloadStatusSnapshot.from_pod("not json") == WorkloadStatusSnapshot()
    assert WorkloadStatusSnapshot.from_pod({}).phase is None


@pytest.mark.parametrize(
    "body",
    [
        {"status": {"phase": "Pending", "containerStatuses": ["x"]}},
        {"status": {"phase": "Pending", "containerStatuses": [{"state": "waiting"}]}},
        {"status": {"phase": "Pending", "containerStatuses": {"state": {}}}},
        {"status": {"phase": "Pending", "conditions": 5}},
        {"status": "Pending", "spec": ["node1"], "metadata": "pod"},
        {"status": {"phase": 3}, "spec": {"nodeName": 7}, "metadata": {"name": 1}},
    ],
)
def test_snapshot_treats_malformed_sections_as_absent(body: dict[str, Any]) -> None:
    snap = WorkloadStatusSnapshot.from_pod(body)
    assert snap.waiting_reason is None
    assert snap.node_name is None
    assert snap.name is None
    assert snap.scheduled is False
    assert snap.phase in ("pending", None)


def test_snapshot_terminated_reason() -> None:
    body = {"status": {"containerStatuses": [{"state": {"terminated": {"reason": "Error"}}}]}}
    assert WorkloadStatusSnapshot.from_pod(body).terminated_reason == "Error"


# ---------------------------------------------------------------------------
# classify()
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("phase", ["failed", "unknown"])
def test_terminal_phases_fail(snap: Snap, phase: str) -> None:
    outcome = classify(snap(phase))
    assert outcome.failed
    assert outcome.message == f"Failed to create pod. Pod status is: {phase}"


@pytest.mark.parametrize(
    "reason",
    ["CrashLoopBackOff", "CreateContainerConfigError", "CreateContainerError", "StartError"],
)
def test_config_errors_fail(snap: Snap, reason: str) -> None:
    outcome = classify(snap("pending", waiting=reason))
    assert outcome.failed
    assert outcome.message == MSG_CLUSTER_ADMIN


@pytest.mark.parametrize("reason", ["ErrImagePull", "ImagePullBackOff", "InvalidImageName"])
def test_image_errors_fail(snap: Snap, reason: str) -> None:
    outcome = classify(snap("pending", waiting=reason))
    assert outcome.failed
    assert outcome.message == MSG_INVALID_IMAGE


def test_pod_initializing_continues(snap: Snap) -> None:
    outcome = classify(snap("pending", waiting="PodInitializing"))
    assert outcome.kind == OutcomeKind.CONTINUE
    assert outcome.initializing is True


@pytest.mark.parametrize("phase", ["pending", None])
def test_pending_continues(snap: Snap, phase: str | None) -> None:
    assert classify(snap(phase)) == CONTINUE


@pytest.mark.parametrize("phase", ["running", "succeeded"])
def test_running_succeeds(snap: Snap, phase: str) -> None:
    assert classify(snap(phase)) == SUCCEED


# ---------------------------------------------------------------------------
# Polling predicates
# ---------------------------------------------------------------------------


def test_schedule_wait_retries_until_scheduled(snap: Snap) -> None:
    assert schedule_wait(snap("pending")).retry is True
    assert schedule_wait(snap("pending", scheduled=False)).retry is True
    assert schedule_wait(snap("pending", scheduled=True)).retry is False
    assert schedule_wait(snap("pending", node="node1")).retry is False


def test_schedule_wait_stops_on_fatal_reason(snap: Snap) -> None:
    decision = schedule_wait(snap("pending", waiting="ErrImagePull"))
    assert decision.retry is False
    assert decision.outcome.failed


def test_pending_wait(snap: Snap) -> None:
    assert pending_wait(snap("pending", node="node1")).retry is True
    assert pending_wait(snap("pending", waiting="PodInitializing")).retry is True
    assert pending_wait(snap("running")).retry is False
    assert pending_wait(snap("pending", waiting="CrashLoopBackOff")).retry is False


# ---------------------------------------------------------------------------
# next_state()
# ---------------------------------------------------------------------------


def test_happy_path_with_readiness_wait() -> None:
    state = StartState.SUBMITTING
    path = [state]
    for outcome in (SUCCEED, CONTINUE, CONTINUE, SUCCEED):
        state = next_state(state, outcome)
        path.append(state)
    assert path == [
        StartState.SUBMITTING,
        StartState.AWAITING_SCHEDULE,
        StartState.REPORTING_INTERIM,
        StartState.AWAITING_READY,
        StartState.DONE,
    ]


def test_running_pod_skips_readiness_wait() -> None:
    assert next_state(StartState.REPORTING_INTERIM, SUCCEED) == StartState.DONE


@pytest.mark.parametrize(
    "state",
    [
        StartState.SUBMITTING,
        StartState.AWAITING_SCHEDULE,
        StartState.REPORTING_INTERIM,
        StartState.AWAITING_READY,
    ],
)
def test_failure_from_any_live_state(state: StartState) -> None:
    assert next_state(state, FAIL) == StartState.FAILED


@pytest.mark.parametrize("state", [StartState.DONE, StartState.FAILED])
@pytest.mark.parametrize("outcome", [SUCCEED, CONTINUE, FAIL])
def test_terminal_states_are_absorbing(state: StartState, outcome: Outcome) -> None:
    assert next_state(state, outcome) == state
