"""Resource tier resolution: annotation value -> concrete CPU / memory."""

from __future__ import annotations

from sd_executor_k8s.core.config import ExecutorConfig, TierValues
from sd_executor_k8s.core.constants import CPU_MILLICORES, AnnotationKey, ResourceTier
from sd_executor_k8s.core.types import ResolvedResources
from sd_executor_k8s.workload.annotations import BuildAnnotations, TierValue


def _tier_amount(value: TierValue, tiers: TierValues) -> float:
    if isinstance(value, ResourceTier):
        return getattr(tiers, value.value.lower())
    if isinstance(value, int) and value > 0:
        return min(value, tiers.max)
    return tiers.low


def resolve_cpu(value: TierValue, tiers: TierValues) -> int:
    """CPU in millicores; integer values are cores, clamped to ``tiers.max``."""
    return int(round(_tier_amount(value, tiers) * CPU_MILLICORES))


def resolve_memory(value: TierValue, tiers: TierValues) -> int | float:
    """Memory in GB; integer values are clamped to ``tiers.max``."""
    amount = _tier_amount(value, tiers)
    return int(amount) if float(amount).is_integer() else amount


def resolve_resources(annotations: BuildAnnotations, config: ExecutorConfig) -> ResolvedResources:
    cpu_tiers = config.resources.cpu
    memory_tiers = config.resources.memory
    docker_enabled = config.docker_feature_enabled and annotations.flag(
        AnnotationKey.DOCKER_ENABLED
    )
    return ResolvedResources(
        cpu=resolve_cpu(annotations.tier(AnnotationKey.CPU), cpu_tiers),
        memory=resolve_memory(annotations.tier(AnnotationKey.RAM), memory_tiers),
        docker_enabled=docker_enabled,
        docker_cpu=resolve_cpu(annotations.tier(AnnotationKey.DOCKER_CPU), cpu_tiers),
        docker_memory=resolve_memory(annotations.tier(AnnotationKey.DOCKER_RAM), memory_tiers),
    )
