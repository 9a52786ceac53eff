from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from sd_executor_k8s.core.constants import BUILD_LABEL, CacheStrategy


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class EcosystemConfig(_Frozen):
    """Routable URIs of the surrounding Screwdriver services."""

    api: str = "http://localhost:8080"
    store: str = "http://localhost:8081"
    ui: str = "http://localhost:4200"


class TierValues(_Frozen):
    """Per-tier values for one resource dimension.

    ``max`` is both the value of the MAX tier and the ceiling applied to
    integer annotation values.
    """

    micro: float
    low: float
    high: float
    turbo: float
    max: float


class ResourcesConfig(_Frozen):
    cpu: TierValues = TierValues(micro=0.5, low=2, high=6, turbo=12, max=12)
    """CPU tiers in cores."""
    memory: TierValues = TierValues(micro=1, low=2, high=12, turbo=16, max=16)
    """Memory tiers in GB."""


class CacheConfig(_Frozen):
    strategy: CacheStrategy = CacheStrategy.S3
    path: str = ""
    compress: bool = False
    md5check: bool = False
    max_size_mb: int = Field(default=0, ge=0)
    max_go_threads: int = Field(default=10000, ge=1)


class VolumeMount(_Frozen):
    name: str
    host_path: str
    mount_path: str
    read_only: bool = True


class SecretMount(_Frozen):
    name: str
    secret_name: str
    mount_path: str
    read_only: bool = True


class LifecycleHooks(_Frozen):
    """Container lifecycle handlers, passed through to the pod spec verbatim."""

    post_start: dict[str, Any] | None = None
    pre_stop: dict[str, Any] | None = None

    def to_k8s(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.post_start:
            result["postStart"] = self.post_start
        if self.pre_stop:
            result["preStop"] = self.pre_stop
        return result


class ExecutorConfig(_Frozen):
    """Immutable executor configuration, built once at startup.

    Every default lives here; nothing downstream falls back to inline
    literals.
    """

    ecosystem: EcosystemConfig = EcosystemConfig()

    # Cluster access
    host: str = "kubernetes.default"
    token: str = ""
    jobs_namespace: str = "default"
    service_account: str = "default"
    automount_service_account_token: bool = False

    # Pod shape
    dns_policy: str = "ClusterFirst"
    image_pull_policy: str = "Always"
    termination_grace_period_seconds: int = Field(default=30, ge=0)
    max_termination_grace_period_seconds: int = Field(default=120, ge=0)
    build_timeout: int = Field(default=90, ge=1)
    """Minutes a build may run before it is considered timed out."""
    max_build_timeout: int = Field(default=120, ge=1)
    launch_image: str = "screwdrivercd/launcher"
    launch_version: str = "stable"
    prefix: str = ""
    pod_template_path: Path | None = None

    resources: ResourcesConfig = ResourcesConfig()
    docker_feature_enabled: bool = False
    docker_image: str = "docker:dind"
    cache: CacheConfig = CacheConfig()

    # Placement and decoration
    node_selectors: dict[str, str] = Field(default_factory=dict)
    preferred_node_selectors: dict[str, str] = Field(default_factory=dict)
    disk_speed_label: str = "screwdriver.cd/diskSpeed"
    annotations: dict[str, str] = Field(default_factory=dict)
    pod_labels: dict[str, Any] = Field(default_factory=dict)
    lifecycle_hooks: LifecycleHooks = LifecycleHooks()
    volume_mounts: list[VolumeMount] = Field(default_factory=list)
    secrets: list[SecretMount] = Field(default_factory=list)

    # Status polling
    max_attempts: int = Field(default=5, ge=1, le=100)
    retry_delay: float = Field(default=3.0, ge=0.0)
    """Seconds between status polls."""
    inter_phase_delay: float = Field(default=0.0, ge=0.0)
    """Seconds to wait after the interim status report."""

    # Transport resilience
    request_retries: int = Field(default=4, ge=0, le=50)
    request_backoff: float = Field(default=1.0, ge=0.0)
    request_timeout: float = Field(default=30.0, gt=0.0)
    breaker_failure_threshold: int = Field(default=5, ge=1)
    breaker_recovery_timeout: float = Field(default=30.0, ge=0.0)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @property
    def pods_url(self) -> str:
        return f"https://{self.host}/api/v1/namespaces/{self.jobs_namespace}/pods"

    @property
    def launcher_image(self) -> str:
        return f"{self.launch_image}:{self.launch_version}"

    @property
    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def label_selector(self, build_id: int) -> str:
        """Selector matching every pod of *build_id*, e.g. ``sdbuild=beta_15``."""
        return f"{BUILD_LABEL}={self.prefix}{build_id}"

    @classmethod
    def from_env(cls) -> ExecutorConfig:
        """Create an :class:`ExecutorConfig` from ``SD_K8S_*`` environment variables.

        Reads the following env vars (all optional):

        * ``SD_K8S_HOST`` → ``host``
        * ``SD_K8S_TOKEN`` → ``token``
        * ``SD_K8S_NAMESPACE`` → ``jobs_namespace``
        * ``SD_K8S_SERVICE_ACCOUNT`` → ``service_account``
        * ``SD_K8S_PREFIX`` → ``prefix``
        * ``SD_K8S_BUILD_TIMEOUT`` → ``build_timeout`` (integer minutes)
        * ``SD_K8S_LAUNCH_VERSION`` → ``launch_version``
        * ``SD_K8S_API_URI`` → ``ecosystem.api``
        * ``SD_K8S_LOG_LEVEL`` → ``log_level``

        Any variable that is not set or is empty is left at its default value.
        """
        kwargs: dict[str, Any] = {}

        simple = {
            "SD_K8S_HOST": "host",
            "SD_K8S_TOKEN": "token",
            "SD_K8S_NAMESPACE": "jobs_namespace",
            "SD_K8S_SERVICE_ACCOUNT": "service_account",
            "SD_K8S_PREFIX": "prefix",
            "SD_K8S_LAUNCH_VERSION": "launch_version",
            "SD_K8S_LOG_LEVEL": "log_level",
        }
        for env_name, field in simple.items():
            value = os.environ.get(env_name)
            if value:
                kwargs[field] = value

        timeout_str = os.environ.get("SD_K8S_BUILD_TIMEOUT")
        if timeout_str:
            kwargs["build_timeout"] = int(timeout_str)

        api_uri = os.environ.get("SD_K8S_API_URI")
        if api_uri:
            kwargs["ecosystem"] = EcosystemConfig(api=api_uri)

        return cls(**kwargs)
