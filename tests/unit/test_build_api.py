"""Tests for reporting/build_api.py: BuildStatusReporter."""
from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from sd_executor_k8s.core.exceptions import BuildUpdateError
from sd_executor_k8s.reporting.build_api import BuildStatusReporter
from sd_executor_k8s.resilience.request_executor import RequestExecutor
from sd_executor_k8s.resilience.retry import RetryPolicy


def _reporter(handler: Any, api_uri: str = "https://api.screwdriver.cd/") -> BuildStatusReporter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    executor = RequestExecutor(http_client=client, retry_policy=RetryPolicy(backoff_base=0))
    return BuildStatusReporter(executor, api_uri)


async def test_report_status_message() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": 15})

    result = await _reporter(handler).report(15, "abcdefg", status_message="Waiting")

    assert result.ok
    (request,) = seen
    assert request.method == "PUT"
    assert str(request.url) == "https://api.screwdriver.cd/v4/builds/15"
    assert request.headers["Authorization"] == "Bearer abcdefg"
    assert json.loads(request.content) == {"statusMessage": "Waiting"}


async def test_report_stats() -> None:
    bodies: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={})

    stats = {"hostname": "node1", "imagePullStartTime": "2026-01-01T00:00:00.000Z"}
    await _reporter(handler).report(15, "t", stats=stats)
    assert bodies == [{"stats": stats}]


async def test_report_failure_raises() -> None:
    reporter = _reporter(lambda r: httpx.Response(401, json={"message": "Unauthorized"}))

    with pytest.raises(BuildUpdateError) as exc_info:
        await reporter.report(15, "bad", status_message="x")

    assert exc_info.value.status_code == 401
    assert exc_info.value.message == 'Failed to update build 15:{"message":"Unauthorized"}'
