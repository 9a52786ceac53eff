"""Pod manifest template: ``{{name}}`` substitution followed by YAML parsing."""

from __future__ import annotations

import re
from importlib import resources
from pathlib import Path
from typing import Any, Mapping

import yaml

from sd_executor_k8s.core.exceptions import TemplateError

DEFAULT_TEMPLATE = "pod.yaml.tmpl"


def _format(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ManifestTemplate:
    """A textual pod manifest with ``{{variable}}`` placeholders.

    Example::

        t = ManifestTemplate("metadata:\\n  name: {{pod_name}}\\n")
        doc = t.render({"pod_name": "beta_15-abcde"})
        doc["metadata"]["name"]  # "beta_15-abcde"

    Rendering is strict: every placeholder must have a binding.  Values are
    inserted as text (booleans as ``true`` / ``false``), so the template is
    responsible for quoting strings that YAML would otherwise reinterpret.
    """

    _VAR_PATTERN = re.compile(r"\{\{\s*(\w+)\s*\}\}")

    def __init__(self, source: str) -> None:
        self._source = source

    @classmethod
    def from_path(cls, path: str | Path) -> ManifestTemplate:
        try:
            return cls(Path(path).read_text(encoding="utf-8"))
        except OSError as exc:
            raise TemplateError(f"Cannot read pod template {path}: {exc}") from exc

    @classmethod
    def default(cls) -> ManifestTemplate:
        """The pod template shipped with the package."""
        source = resources.files("sd_executor_k8s.workload").joinpath(
            "templates", DEFAULT_TEMPLATE
        ).read_text(encoding="utf-8")
        return cls(source)

    @property
    def variables(self) -> set[str]:
        return set(self._VAR_PATTERN.findall(self._source))

    def render_text(self, bindings: Mapping[str, Any]) -> str:
        def _replace(match: re.Match[str]) -> str:
            key = match.group(1)
            if key not in bindings:
                raise TemplateError(f"Pod template references unknown variable '{key}'")
            return _format(bindings[key])

        return self._VAR_PATTERN.sub(_replace, self._source)

    def render(self, bindings: Mapping[str, Any]) -> dict[str, Any]:
        """Render and parse into a pod document.

        Raises:
            TemplateError: On a missing binding, invalid YAML, or a document
                that is not a mapping.
        """
        text = self.render_text(bindings)
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise TemplateError(f"Rendered pod template is not valid YAML: {exc}") from exc
        if not isinstance(document, dict):
            raise TemplateError("Rendered pod template must be a YAML mapping")
        return document
