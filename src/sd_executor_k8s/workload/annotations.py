"""Typed view over the free-form annotation map of a build."""

from __future__ import annotations

from typing import Any, Mapping

import structlog

from sd_executor_k8s.core.constants import ANNOTATION_PREFIXES, AnnotationKey, ResourceTier

logger = structlog.get_logger(__name__)

TierValue = ResourceTier | int | None


def _strip_prefix(key: str) -> str:
    for prefix in ANNOTATION_PREFIXES:
        if key.startswith(prefix):
            return key[len(prefix):]
    return key


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


class BuildAnnotations:
    """Recognized annotations of one build, with typed accessors.

    Keys may be bare (``ram``) or namespaced (``screwdriver.cd/ram``,
    ``beta.screwdriver.cd/ram``); keys outside :class:`AnnotationKey` are
    dropped.

    Example::

        ann = BuildAnnotations({"screwdriver.cd/ram": "HIGH", "screwdriver.cd/cpu": 4})
        ann.tier(AnnotationKey.RAM)   # ResourceTier.HIGH
        ann.tier(AnnotationKey.CPU)   # 4
    """

    def __init__(self, raw: Mapping[str, Any] | None = None) -> None:
        known = {k.value for k in AnnotationKey}
        self._values: dict[AnnotationKey, Any] = {}
        for key, value in (raw or {}).items():
            name = _strip_prefix(str(key))
            if name in known:
                self._values[AnnotationKey(name)] = value

    def get(self, key: AnnotationKey) -> Any:
        return self._values.get(key)

    def tier(self, key: AnnotationKey) -> TierValue:
        """Return a tier symbol, a positive integer, or ``None``.

        Unrecognized symbols are logged and read as absent so that the
        resolver falls back to LOW.
        """
        value = self._values.get(key)
        if value is None:
            return None

        number = _as_int(value)
        if number is not None:
            return number if number > 0 else None

        if isinstance(value, str) and value.upper() in ResourceTier.__members__:
            return ResourceTier[value.upper()]

        logger.warning("unknown_resource_tier", annotation=key.value, value=value)
        return None

    def integer(self, key: AnnotationKey) -> int | None:
        number = _as_int(self._values.get(key))
        return number if number is not None and number > 0 else None

    def flag(self, key: AnnotationKey) -> bool:
        value = self._values.get(key)
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return value is True

    def text(self, key: AnnotationKey) -> str | None:
        value = self._values.get(key)
        if value is None or value == "":
            return None
        return str(value)
