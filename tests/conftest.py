"""Shared test fixtures."""
from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx
import pytest

from sd_executor_k8s.core.config import ExecutorConfig
from sd_executor_k8s.core.executor import K8sExecutor
from sd_executor_k8s.core.types import BuildDescriptor

PODS_PATH = "/api/v1/namespaces/default/pods"
POD_NAME = "beta_15-abcde"
STATUS_PATH = f"{PODS_PATH}/{POD_NAME}/status"
BUILD_PATH = "/v4/builds/15"


def pod_body(
    phase: str | None = "pending",
    *,
    node: str | None = None,
    scheduled: bool | None = None,
    waiting: str | None = None,
    name: str = POD_NAME,
) -> dict[str, Any]:
    """A minimal pod document as returned by the cluster."""
    status: dict[str, Any] = {}
    if phase is not None:
        status["phase"] = phase.capitalize()
    if scheduled is not None:
        status["conditions"] = [
            {"type": "PodScheduled", "status": "True" if scheduled else "False"}
        ]
    if waiting is not None:
        status["containerStatuses"] = [{"state": {"waiting": {"reason": waiting}}}]
    body: dict[str, Any] = {"metadata": {"name": name}, "spec": {}, "status": status}
    if node is not None:
        body["spec"]["nodeName"] = node
    return body


class ClusterStub:
    """Scripted cluster and build API behind an :class:`httpx.MockTransport`.

    Responses are queued per ``(method, path)``; the last queued response
    keeps being served once the queue is drained.  Every request is recorded.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], list[httpx.Response]] = {}

    def add(self, method: str, path: str, *responses: httpx.Response | dict[str, Any]) -> None:
        queue = self._routes.setdefault((method, path), [])
        for resp in responses:
            if isinstance(resp, httpx.Response):
                queue.append(resp)
            else:
                queue.append(httpx.Response(200, json=resp))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"error": "not found"})
        if len(queue) > 1:
            return queue.pop(0)
        return queue[0]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: str | None = None) -> list[httpx.Request]:
        return [r for r in self.requests if method is None or r.method == method]


@pytest.fixture
def config() -> ExecutorConfig:
    return ExecutorConfig(
        token="api_key",
        prefix="beta_",
        retry_delay=0,
        request_backoff=0,
    )


@pytest.fixture
def descriptor() -> BuildDescriptor:
    return BuildDescriptor(build_id=15, container="node:4", token="abcdefg")


@pytest.fixture
def cluster() -> ClusterStub:
    return ClusterStub()


@pytest.fixture
async def http_client(cluster: ClusterStub) -> AsyncGenerator[httpx.AsyncClient, None]:
    client = httpx.AsyncClient(transport=cluster.transport)
    yield client
    await client.aclose()


@pytest.fixture
def executor(config: ExecutorConfig, http_client: httpx.AsyncClient) -> K8sExecutor:
    return K8sExecutor(config, http_client=http_client)


@pytest.fixture
def make_pod() -> Callable[..., dict[str, Any]]:
    return pod_body
