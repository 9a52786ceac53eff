from sd_executor_k8s.workload.annotations import BuildAnnotations
from sd_executor_k8s.workload.builder import WorkloadSpecBuilder
from sd_executor_k8s.workload.placement import set_node_selector, set_preferred_node_selector
from sd_executor_k8s.workload.resources import resolve_cpu, resolve_memory, resolve_resources
from sd_executor_k8s.workload.template import ManifestTemplate

__all__ = [
    "BuildAnnotations",
    "ManifestTemplate",
    "WorkloadSpecBuilder",
    "resolve_cpu",
    "resolve_memory",
    "resolve_resources",
    "set_node_selector",
    "set_preferred_node_selector",
]
