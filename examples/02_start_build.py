# RUN: python examples/02_start_build.py
"""Start, verify and stop a build against a scripted in-memory cluster.

Demonstrates: K8sExecutor.start(), the pending flag, verify(), stop()
and stats().  The cluster is an httpx.MockTransport, so nothing leaves
the process.
"""

import asyncio
from typing import Any

import httpx

from sd_executor_k8s import BuildDescriptor, ExecutorConfig, K8sExecutor, configure_logging

POD_NAME = "beta_15-x1y2z"


def _pod(phase: str, node: str | None = None) -> dict[str, Any]:
    return {
        "metadata": {"name": POD_NAME},
        "spec": {"nodeName": node} if node else {},
        "status": {"phase": phase},
    }


def handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if request.method == "POST":
        return httpx.Response(201, json=_pod("Pending"))
    if request.method == "GET" and path.endswith("/status"):
        return httpx.Response(200, json=_pod("Running", node="node-7"))
    if request.method == "GET":
        return httpx.Response(200, json={"items": [_pod("Running", node="node-7")]})
    if request.method == "PUT":
        return httpx.Response(200, json={"id": 15})
    return httpx.Response(200, json={"kind": "Status", "status": "Success"})


async def main() -> None:
    configure_logging("INFO", json=False)
    config = ExecutorConfig(prefix="beta_", token="cluster-token", retry_delay=0.1)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        async with K8sExecutor(config, http_client=http) as executor:
            descriptor = BuildDescriptor(build_id=15, container="node:18", token="abcdefg")

            result = await executor.start(descriptor)
            print(f"Started {result.pod_name} (pending={result.pending})")

            message = await executor.verify(15)
            print(f"Verify: {message or 'ok'}")

            await executor.stop(15)
            print(f"Stats: {executor.stats()}")


if __name__ == "__main__":
    asyncio.run(main())
