"""Placement constraints: tolerations plus required / preferred node affinity.

The executor never picks nodes itself; it only declares constraints for
the scheduler.  Each function mutates the given pod document in place and
is a no-op for an empty selector map.
"""

from __future__ import annotations

from typing import Any, Mapping

from sd_executor_k8s.core.constants import PREFERRED_WEIGHT


def _node_affinity(pod: dict[str, Any]) -> dict[str, Any]:
    spec = pod.setdefault("spec", {})
    affinity = spec.setdefault("affinity", {})
    return affinity.setdefault("nodeAffinity", {})


def _match_expression(key: str, value: Any) -> dict[str, Any]:
    return {"key": key, "operator": "In", "values": [value]}


def set_node_selector(pod: dict[str, Any], node_selectors: Mapping[str, Any] | None) -> None:
    """Require every selector: one toleration and one match expression per key."""
    if not node_selectors:
        return

    spec = pod.setdefault("spec", {})
    tolerations = spec.setdefault("tolerations", [])
    required = _node_affinity(pod).setdefault(
        "requiredDuringSchedulingIgnoredDuringExecution", {}
    )
    terms = required.setdefault("nodeSelectorTerms", [])
    if not terms:
        terms.append({})
    expressions = terms[0].setdefault("matchExpressions", [])

    for key, value in node_selectors.items():
        tolerations.append(
            {"key": key, "value": value, "effect": "NoSchedule", "operator": "Equal"}
        )
        expressions.append(_match_expression(key, value))


def set_preferred_node_selector(
    pod: dict[str, Any], preferred_node_selectors: Mapping[str, Any] | None
) -> None:
    """Add a single weighted preference holding one expression per key."""
    if not preferred_node_selectors:
        return

    preferred = _node_affinity(pod).setdefault(
        "preferredDuringSchedulingIgnoredDuringExecution", []
    )
    preferred.append(
        {
            "weight": PREFERRED_WEIGHT,
            "preference": {
                "matchExpressions": [
                    _match_expression(key, value)
                    for key, value in preferred_node_selectors.items()
                ]
            },
        }
    )
