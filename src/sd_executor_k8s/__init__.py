"""Screwdriver build executor for Kubernetes."""

from sd_executor_k8s.__version__ import __version__
from sd_executor_k8s.core.config import (
    CacheConfig,
    EcosystemConfig,
    ExecutorConfig,
    LifecycleHooks,
    ResourcesConfig,
    SecretMount,
    TierValues,
    VolumeMount,
)
from sd_executor_k8s.core.constants import AnnotationKey, CacheStrategy, PodPhase, ResourceTier
from sd_executor_k8s.core.exceptions import (
    BuildStartError,
    BuildUpdateError,
    CircuitOpenError,
    ConfigurationError,
    ExecutorError,
    PodCreationError,
    PodDeletionError,
    PodInitializingError,
    PodStatusError,
    RequestTimeoutError,
    RequestTransportError,
    TemplateError,
)
from sd_executor_k8s.core.executor import K8sExecutor
from sd_executor_k8s.core.types import (
    BuildDescriptor,
    HttpResult,
    ResolvedResources,
    StartResult,
    WorkloadStatusSnapshot,
)
from sd_executor_k8s.utils.logging import configure_logging, get_logger
from sd_executor_k8s.workload import ManifestTemplate, WorkloadSpecBuilder, resolve_resources

__all__ = [
    "__version__",
    # Executor
    "K8sExecutor",
    # Config
    "CacheConfig",
    "EcosystemConfig",
    "ExecutorConfig",
    "LifecycleHooks",
    "ResourcesConfig",
    "SecretMount",
    "TierValues",
    "VolumeMount",
    # Constants
    "AnnotationKey",
    "CacheStrategy",
    "PodPhase",
    "ResourceTier",
    # Exceptions
    "BuildStartError",
    "BuildUpdateError",
    "CircuitOpenError",
    "ConfigurationError",
    "ExecutorError",
    "PodCreationError",
    "PodDeletionError",
    "PodInitializingError",
    "PodStatusError",
    "RequestTimeoutError",
    "RequestTransportError",
    "TemplateError",
    # Types
    "BuildDescriptor",
    "HttpResult",
    "ResolvedResources",
    "StartResult",
    "WorkloadStatusSnapshot",
    # Workload
    "ManifestTemplate",
    "WorkloadSpecBuilder",
    "resolve_resources",
    # Logging
    "configure_logging",
    "get_logger",
]
