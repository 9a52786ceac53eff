"""Workload spec assembly: descriptor + config -> orchestrator-ready pod document."""

from __future__ import annotations

import copy
import random
import string
from typing import Any, Mapping, Sequence

import structlog

from sd_executor_k8s.core.config import ExecutorConfig, SecretMount, VolumeMount
from sd_executor_k8s.core.constants import (
    BUILD_LABEL,
    LABEL_APP,
    LABEL_TIER,
    POD_NAME_SUFFIX_LENGTH,
    AnnotationKey,
    CacheStrategy,
)
from sd_executor_k8s.core.types import BuildDescriptor, ResolvedResources
from sd_executor_k8s.workload.annotations import BuildAnnotations
from sd_executor_k8s.workload.placement import set_node_selector, set_preferred_node_selector
from sd_executor_k8s.workload.resources import resolve_resources
from sd_executor_k8s.workload.template import ManifestTemplate

logger = structlog.get_logger(__name__)

PIPELINE_CACHE_VOLUME = "sd-pipeline-cache"
JOB_CACHE_VOLUME = "sd-job-cache"
PIPELINE_CACHE_MOUNT = "/sd/cache/pipeline"
JOB_CACHE_MOUNT = "/sd/cache/job"
DOCKER_CONTAINER_NAME = "dind"
DOCKER_GRAPH_VOLUME = "docker-graph"
DOCKER_HOST = "tcp://localhost:2375"


def random_suffix(length: int = POD_NAME_SUFFIX_LENGTH) -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=length))  # noqa: S311


def _find_container(pod: dict[str, Any], name: str) -> dict[str, Any] | None:
    for container in pod.get("spec", {}).get("containers") or []:
        if container.get("name") == name:
            return container
    return None


def set_annotations(pod: dict[str, Any], annotations: Mapping[str, str] | None) -> None:
    if not annotations:
        return
    metadata = pod.setdefault("metadata", {})
    metadata["annotations"] = {**(metadata.get("annotations") or {}), **annotations}


def set_labels(pod: dict[str, Any], labels: Mapping[str, Any] | None, build_label: str) -> None:
    """Overlay user labels; the app / tier / build labels always survive."""
    metadata = pod.setdefault("metadata", {})
    metadata["labels"] = {
        **(metadata.get("labels") or {}),
        **(labels or {}),
        "app": LABEL_APP,
        "tier": LABEL_TIER,
        BUILD_LABEL: build_label,
    }


def set_lifecycle_hooks(
    pod: dict[str, Any], hooks: Mapping[str, Any] | None, container_name: str
) -> None:
    """Attach lifecycle handlers to the build container only."""
    if not hooks:
        return
    container = _find_container(pod, container_name)
    if container is None:
        return
    container["lifecycle"] = copy.deepcopy(dict(hooks))


def add_volume(
    pod: dict[str, Any],
    container_name: str,
    volume: dict[str, Any],
    mount: dict[str, Any],
) -> None:
    """Declare *volume* on the pod and mount it into the named container."""
    container = _find_container(pod, container_name)
    if container is None:
        return
    pod["spec"].setdefault("volumes", []).append(volume)
    container.setdefault("volumeMounts", []).append(mount)


def set_volumes(
    pod: dict[str, Any],
    container_name: str,
    volume_mounts: Sequence[VolumeMount] = (),
    secrets: Sequence[SecretMount] = (),
) -> None:
    """Mount host paths and secrets into the build container."""
    for mount in volume_mounts:
        add_volume(
            pod,
            container_name,
            {"name": mount.name, "hostPath": {"path": mount.host_path}},
            {"name": mount.name, "mountPath": mount.mount_path, "readOnly": mount.read_only},
        )
    for secret in secrets:
        add_volume(
            pod,
            container_name,
            {"name": secret.name, "secret": {"secretName": secret.secret_name}},
            {"name": secret.name, "mountPath": secret.mount_path, "readOnly": secret.read_only},
        )


def add_docker_container(
    pod: dict[str, Any], container_name: str, resources: ResolvedResources, image: str
) -> None:
    """Run a privileged docker daemon next to the build container."""
    build_container = _find_container(pod, container_name)
    if build_container is None:
        return

    build_container.setdefault("env", []).append({"name": "DOCKER_HOST", "value": DOCKER_HOST})
    limits = {"cpu": f"{resources.docker_cpu}m", "memory": f"{resources.docker_memory}Gi"}
    pod["spec"]["containers"].append(
        {
            "name": DOCKER_CONTAINER_NAME,
            "image": image,
            "securityContext": {"privileged": True},
            "env": [{"name": "DOCKER_TLS_CERTDIR", "value": ""}],
            "resources": {"limits": dict(limits), "requests": dict(limits)},
            "volumeMounts": [{"name": DOCKER_GRAPH_VOLUME, "mountPath": "/var/lib/docker"}],
        }
    )
    pod["spec"].setdefault("volumes", []).append({"name": DOCKER_GRAPH_VOLUME, "emptyDir": {}})


class WorkloadSpecBuilder:
    """Compose the pod document for one build.

    The builder holds only read-only configuration and the parsed
    template; :meth:`build` is a pure function of its inputs apart from the
    random pod-name suffix, which callers may pin with ``name_suffix``.
    """

    def __init__(self, config: ExecutorConfig, template: ManifestTemplate | None = None) -> None:
        self._config = config
        if template is not None:
            self._template = template
        elif config.pod_template_path is not None:
            self._template = ManifestTemplate.from_path(config.pod_template_path)
        else:
            self._template = ManifestTemplate.default()

    def container_name(self, build_id: int) -> str:
        return f"{self._config.prefix}{build_id}"

    def build_timeout(self, annotations: BuildAnnotations) -> int:
        requested = annotations.integer(AnnotationKey.TIMEOUT)
        if requested is None:
            return self._config.build_timeout
        return min(requested, self._config.max_build_timeout)

    def termination_grace_period(self, annotations: BuildAnnotations) -> int:
        requested = annotations.integer(AnnotationKey.TERMINATION_GRACE_PERIOD)
        if requested is None:
            return self._config.termination_grace_period_seconds
        return min(requested, self._config.max_termination_grace_period_seconds)

    def node_selectors(self, annotations: BuildAnnotations) -> dict[str, str]:
        selectors = dict(self._config.node_selectors)
        disk_speed = annotations.text(AnnotationKey.DISK_SPEED)
        if disk_speed:
            selectors[self._config.disk_speed_label] = disk_speed.lower()
        return selectors

    def cache_job_id(self, descriptor: BuildDescriptor) -> int | None:
        # PR builds read the parent job's cache; they never get their own.
        if descriptor.is_pr and descriptor.parent_job_id is not None:
            return descriptor.parent_job_id
        return descriptor.job_id

    def build(self, descriptor: BuildDescriptor, name_suffix: str | None = None) -> dict[str, Any]:
        """Return the pod document for *descriptor*.

        Raises:
            TemplateError: If the manifest template cannot be rendered.
        """
        config = self._config
        annotations = BuildAnnotations(descriptor.annotations)
        resources = resolve_resources(annotations, config)
        container_name = self.container_name(descriptor.build_id)
        suffix = name_suffix if name_suffix is not None else random_suffix()
        cache = config.cache

        pod = self._template.render(
            {
                "pod_name": f"{container_name}-{suffix}",
                "build_id_with_prefix": container_name,
                "build_id": descriptor.build_id,
                "event_id": descriptor.event_id,
                "job_id": descriptor.job_id,
                "pipeline_id": descriptor.pipeline_id,
                "build_timeout": self.build_timeout(annotations),
                "container": descriptor.container,
                "api_uri": config.ecosystem.api,
                "store_uri": config.ecosystem.store,
                "ui_uri": config.ecosystem.ui,
                "token": descriptor.token,
                "launcher_image": config.launcher_image,
                "service_account": config.service_account,
                "automount_service_account_token": config.automount_service_account_token,
                "dns_policy": config.dns_policy,
                "image_pull_policy": config.image_pull_policy,
                "termination_grace_period_seconds": self.termination_grace_period(annotations),
                "cpu": resources.cpu,
                "memory": resources.memory,
                "cache_strategy": cache.strategy.value,
                "cache_path": cache.path,
                "cache_compress": cache.compress,
                "cache_md5check": cache.md5check,
                "cache_max_size_mb": cache.max_size_mb,
                "cache_max_go_threads": cache.max_go_threads,
            }
        )

        set_node_selector(pod, self.node_selectors(annotations))
        set_preferred_node_selector(pod, config.preferred_node_selectors)
        set_annotations(pod, config.annotations)
        set_labels(pod, config.pod_labels, container_name)
        set_lifecycle_hooks(pod, config.lifecycle_hooks.to_k8s(), container_name)
        self._apply_volumes(pod, descriptor, container_name)

        if resources.docker_enabled:
            add_docker_container(pod, container_name, resources, config.docker_image)

        logger.debug(
            "workload_spec_built",
            build_id=descriptor.build_id,
            pod=pod.get("metadata", {}).get("name"),
            cpu=resources.cpu,
            memory=resources.memory,
            docker=resources.docker_enabled,
        )
        return pod

    def _apply_volumes(
        self, pod: dict[str, Any], descriptor: BuildDescriptor, container_name: str
    ) -> None:
        config = self._config
        cache = config.cache
        if cache.strategy == CacheStrategy.DISK and cache.path:
            read_only = descriptor.is_pr
            root = cache.path.rstrip("/")
            if descriptor.pipeline_id is not None:
                add_volume(
                    pod,
                    container_name,
                    {
                        "name": PIPELINE_CACHE_VOLUME,
                        "hostPath": {
                            "path": f"{root}/pipelines/{descriptor.pipeline_id}",
                            "type": "DirectoryOrCreate",
                        },
                    },
                    {
                        "name": PIPELINE_CACHE_VOLUME,
                        "mountPath": PIPELINE_CACHE_MOUNT,
                        "readOnly": read_only,
                    },
                )
            job_id = self.cache_job_id(descriptor)
            if job_id is not None:
                add_volume(
                    pod,
                    container_name,
                    {
                        "name": JOB_CACHE_VOLUME,
                        "hostPath": {"path": f"{root}/jobs/{job_id}", "type": "DirectoryOrCreate"},
                    },
                    {"name": JOB_CACHE_VOLUME, "mountPath": JOB_CACHE_MOUNT, "readOnly": read_only},
                )

        set_volumes(pod, container_name, config.volume_mounts, config.secrets)


__all__ = [
    "WorkloadSpecBuilder",
    "add_docker_container",
    "add_volume",
    "random_suffix",
    "set_annotations",
    "set_labels",
    "set_lifecycle_hooks",
    "set_volumes",
]
