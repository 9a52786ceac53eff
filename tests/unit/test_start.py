"""Tests for orchestration/start.py via K8sExecutor.start()."""
from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from sd_executor_k8s.core.config import ExecutorConfig
from sd_executor_k8s.core.constants import MSG_INVALID_IMAGE, MSG_WAITING_FOR_RESOURCES
from sd_executor_k8s.core.exceptions import (
    BuildStartError,
    PodCreationError,
    PodStatusError,
    TemplateError,
)
from sd_executor_k8s.core.executor import K8sExecutor
from sd_executor_k8s.core.types import BuildDescriptor
from sd_executor_k8s.orchestration.status import Outcome, OutcomeKind, StartState
from sd_executor_k8s.workload.template import ManifestTemplate

PODS_PATH = "/api/v1/namespaces/default/pods"
STATUS_PATH = f"{PODS_PATH}/beta_15-abcde/status"
BUILD_PATH = "/v4/builds/15"

MakePod = Callable[..., dict[str, Any]]


def _methods(cluster: Any) -> list[str]:
    return [r.method for r in cluster.requests]


def _put_body(cluster: Any) -> dict[str, Any]:
    (put,) = cluster.calls("PUT")
    return json.loads(put.content)


@pytest.fixture
def created(cluster: Any, make_pod: MakePod) -> None:
    cluster.add("POST", PODS_PATH, httpx.Response(201, json=make_pod("pending")))
    cluster.add("PUT", BUILD_PATH, {"id": 15})


# ---------------------------------------------------------------------------
# Success paths
# ---------------------------------------------------------------------------


async def test_running_on_first_read(
    executor: K8sExecutor, cluster: Any, make_pod: MakePod, descriptor: BuildDescriptor, created: None
) -> None:
    cluster.add("GET", STATUS_PATH, make_pod("running", node="node1"))

    result = await executor.start(descriptor)

    assert result.pod_name == "beta_15-abcde"
    assert result.pending is False
    assert _methods(cluster) == ["POST", "GET", "PUT"]

    stats = _put_body(cluster)["stats"]
    assert stats["hostname"] == "node1"
    assert stats["imagePullStartTime"].endswith("Z")


async def test_requests_carry_the_right_credentials(
    executor: K8sExecutor, cluster: Any, make_pod: MakePod, descriptor: BuildDescriptor, created: None
) -> None:
    cluster.add("GET", STATUS_PATH, make_pod("running", node="node1"))
    await executor.start(descriptor)

    post, get, put = cluster.requests
    assert post.headers["Authorization"] == "Bearer api_key"
    assert get.headers["Authorization"] == "Bearer api_key"
    assert put.headers["Authorization"] == "Bearer abcdefg"
    assert str(post.url) == "https://kubernetes.default/api/v1/namespaces/default/pods"
    assert str(put.url) == "http://localhost:8080/v4/builds/15"


async def test_submitted_manifest(
    executor: K8sExecutor, cluster: Any, make_pod: MakePod, descriptor: BuildDescriptor, created: None
) -> None:
    cluster.add("GET", STATUS_PATH, make_pod("running", node="node1"))
    await executor.start(descriptor)

    pod = json.loads(cluster.calls("POST")[0].content)
    container = pod["spec"]["containers"][0]
    assert pod["metadata"]["name"].startswith("beta_15-")
    assert container["image"] == "node:4"
    assert container["resources"]["limits"] == {"cpu": "2000m", "memory": "2Gi"}


async def test_scheduled_then_running(
    executor: K8sExecutor, cluster: Any, make_pod: MakePod, descriptor: BuildDescriptor, created: None
) -> None:
    cluster.add(
        "GET",
        STATUS_PATH,
        make_pod("pending"),
        make_pod("pending", node="node1", scheduled=True),
        make_pod("pending", node="node1", waiting="PodInitializing"),
        make_pod("running", node="node1"),
    )

    result = await executor.start(descriptor)

    assert result.pending is False
    assert _methods(cluster) == ["POST", "GET", "GET", "PUT", "GET", "GET"]
    assert _put_body(cluster)["stats"]["hostname"] == "node1"


async def test_never_scheduled_reports_waiting_and_returns_pending(
    executor: K8sExecutor,
    cluster: Any,
    make_pod: MakePod,
    descriptor: BuildDescriptor,
    config: ExecutorConfig,
    created: None,
) -> None:
    cluster.add("GET", STATUS_PATH, make_pod("pending"))

    result = await executor.start(descriptor)

    assert result.pending is True
    assert _put_body(cluster) == {"statusMessage": MSG_WAITING_FOR_RESOURCES}
    assert len(cluster.calls("GET")) == 2 * config.max_attempts


async def test_build_update_failure_does_not_abort_start(
    executor: K8sExecutor, cluster: Any, make_pod: MakePod, descriptor: BuildDescriptor
) -> None:
    cluster.add("POST", PODS_PATH, httpx.Response(201, json=make_pod("pending")))
    cluster.add("GET", STATUS_PATH, make_pod("running", node="node1"))
    cluster.add("PUT", BUILD_PATH, httpx.Response(500, json={"message": "api down"}))

    result = await executor.start(descriptor)
    assert result.pending is False


# ---------------------------------------------------------------------------
# Failure paths
# ---------------------------------------------------------------------------


async def test_create_failure(
    executor: K8sExecutor, cluster: Any, descriptor: BuildDescriptor
) -> None:
    cluster.add("POST", PODS_PATH, httpx.Response(500, json={"message": "boom"}))

    with pytest.raises(PodCreationError) as exc_info:
        await executor.start(descriptor)

    assert exc_info.value.message == 'Failed to create pod:{"message":"boom"}'
    assert exc_info.value.details == {"body": {"message": "boom"}}
    assert exc_info.value.status_code == 500
    assert _methods(cluster) == ["POST"]


async def test_status_failure_after_retries(
    executor: K8sExecutor,
    cluster: Any,
    make_pod: MakePod,
    descriptor: BuildDescriptor,
    config: ExecutorConfig,
) -> None:
    cluster.add("POST", PODS_PATH, httpx.Response(201, json=make_pod("pending")))
    cluster.add("GET", STATUS_PATH, httpx.Response(500, json={"message": "nope"}))

    with pytest.raises(PodStatusError, match=r'^Failed to get pod status:\{"message":"nope"\}$'):
        await executor.start(descriptor)

    assert len(cluster.calls("GET")) == config.max_attempts
    assert cluster.calls("PUT") == []


async def test_status_recovers_from_transient_error(
    executor: K8sExecutor, cluster: Any, make_pod: MakePod, descriptor: BuildDescriptor, created: None
) -> None:
    cluster.add(
        "GET",
        STATUS_PATH,
        httpx.Response(503, json={"message": "busy"}),
        make_pod("running", node="node1"),
    )
    result = await executor.start(descriptor)
    assert result.pending is False


async def test_image_pull_error_fails_fast(
    executor: K8sExecutor, cluster: Any, make_pod: MakePod, descriptor: BuildDescriptor, created: None
) -> None:
    cluster.add("GET", STATUS_PATH, make_pod("pending", waiting="ErrImagePull"))

    with pytest.raises(BuildStartError) as exc_info:
        await executor.start(descriptor)

    assert exc_info.value.message == MSG_INVALID_IMAGE
    assert len(cluster.calls("GET")) == 1
    assert cluster.calls("PUT") == []


async def test_fatal_reason_while_awaiting_ready(
    executor: K8sExecutor, cluster: Any, make_pod: MakePod, descriptor: BuildDescriptor, created: None
) -> None:
    cluster.add(
        "GET",
        STATUS_PATH,
        make_pod("pending", node="node1", scheduled=True),
        make_pod("pending", node="node1", waiting="CrashLoopBackOff"),
    )

    with pytest.raises(BuildStartError, match="cluster admin"):
        await executor.start(descriptor)

    assert _methods(cluster) == ["POST", "GET", "PUT", "GET"]


@pytest.mark.parametrize("phase", ["failed", "unknown"])
async def test_terminal_phase(
    executor: K8sExecutor,
    cluster: Any,
    make_pod: MakePod,
    descriptor: BuildDescriptor,
    created: None,
    phase: str,
) -> None:
    cluster.add("GET", STATUS_PATH, make_pod(phase))

    with pytest.raises(BuildStartError) as exc_info:
        await executor.start(descriptor)

    assert exc_info.value.message == f"Failed to create pod. Pod status is: {phase}"
    assert exc_info.value.details["body"]["status"]["phase"] == phase.capitalize()


async def test_template_error_sends_nothing(
    config: ExecutorConfig, http_client: httpx.AsyncClient, cluster: Any, descriptor: BuildDescriptor
) -> None:
    executor = K8sExecutor(config, http_client=http_client, template=ManifestTemplate("x: {{y}}"))
    with pytest.raises(TemplateError):
        await executor.start(descriptor)
    assert cluster.requests == []


async def test_failure_without_recorded_error_raises_build_start_error(
    executor: K8sExecutor,
    cluster: Any,
    descriptor: BuildDescriptor,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    outcome = Outcome(kind=OutcomeKind.FAIL, message="Pod was evicted")
    monkeypatch.setitem(
        executor._start._handlers, StartState.SUBMITTING, AsyncMock(return_value=outcome)
    )
    with pytest.raises(BuildStartError, match="Pod was evicted") as exc_info:
        await executor.start(descriptor)

    assert exc_info.value.code == "BUILD_START"
    assert cluster.requests == []
