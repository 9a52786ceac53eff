# RUN: python examples/01_render_pod.py
"""Render a build pod without talking to a cluster.

Demonstrates: ExecutorConfig, BuildDescriptor annotations, tier resolution,
node selectors and the disk cache volumes added by WorkloadSpecBuilder.
"""

import yaml

from sd_executor_k8s import (
    BuildDescriptor,
    CacheConfig,
    CacheStrategy,
    ExecutorConfig,
    WorkloadSpecBuilder,
)


def main() -> None:
    config = ExecutorConfig(
        prefix="beta_",
        node_selectors={"dedicated": "screwdriver"},
        cache=CacheConfig(strategy=CacheStrategy.DISK, path="/mnt/sd-cache"),
    )
    descriptor = BuildDescriptor(
        build_id=15,
        job_id=3,
        pipeline_id=2,
        job_name="main",
        container="node:18",
        token="abcdefg",
        annotations={
            "screwdriver.cd/ram": "HIGH",
            "screwdriver.cd/cpu": 4,
            "screwdriver.cd/timeout": 45,
        },
    )

    pod = WorkloadSpecBuilder(config).build(descriptor)
    print(yaml.safe_dump(pod, sort_keys=False))


if __name__ == "__main__":
    main()
