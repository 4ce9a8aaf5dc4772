"""ConfigAccumulator: collects configuration fragments for the template/local document pair"""

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from mdmigrate.core.merge.deep import deep_merge, load_document, merge_into, write_document
from mdmigrate.core.merge.placeholders import placeholder_name, placeholders_in, substitute
from mdmigrate.core.utils.fs import FileSystem


logger = logging.getLogger(__name__)


@dataclass
class Contribution:
    label: str
    fragment: dict[str, Any]
    values: dict[str, str] = field(default_factory=dict)

    @property
    def has_literals(self) -> bool:
        """True if at least one placeholder in the fragment has a captured value."""
        return bool(placeholders_in(self.fragment) & set(self.values))

    @property
    def local_fragment(self) -> dict[str, Any]:
        return substitute(self.fragment, self.values)


def _as_placeholders(data: Any, path: tuple[str, ...]) -> Any:
    if isinstance(data, dict) and data:
        return {k: _as_placeholders(v, (*path, str(k))) for k, v in data.items()}
    return '${' + placeholder_name('_'.join(path)) + '}'


def local_only(template: dict[str, Any], local: dict[str, Any], path: tuple[str, ...] = ()) -> dict[str, Any]:
    """Keys present in local but not in template, with every leaf replaced by a ${NAME} placeholder.

    auth.session.secret -> ${AUTH_SESSION_SECRET}
    """
    extra: dict[str, Any] = {}
    for key, value in local.items():
        here = (*path, str(key))
        if key not in template or (template[key] is None and isinstance(value, dict)):
            extra[key] = _as_placeholders(value, here)
        elif isinstance(value, dict) and isinstance(template[key], dict):
            nested = local_only(template[key], value, here)
            if nested:
                extra[key] = nested
    return extra


@dataclass
class DualConfigPair:
    template_path: Path
    local_path: Path
    template: dict[str, Any]
    local: dict[str, Any]


class ConfigAccumulator:
    """One per migration run; every producer receives it explicitly.

    Contributions are additive and never discarded mid-run. Nothing is written
    until flush() or build_dual_documents() is called.
    """

    def __init__(
        self,
        template_name: str = "app-config.yaml",
        local_name: str = "app-config.local.yaml",
        fs: FileSystem = None,
        ):
        self.template_name = template_name
        self.local_name = local_name
        self.fs = fs or FileSystem()
        self.contributions: list[Contribution] = []

    def contribute(self, fragment: dict[str, Any], label: str, values: dict[str, str] = None) -> None:
        self.contributions.append(Contribution(label, copy.deepcopy(fragment), dict(values or {})))
        logger.debug("config contribution: %s", label)

    @property
    def dual_mode(self) -> bool:
        return any(c.has_literals for c in self.contributions)

    @property
    def values(self) -> dict[str, str]:
        merged: dict[str, str] = {}
        for c in self.contributions:
            merged.update(c.values)
        return merged

    def template_fragment(self) -> dict[str, Any]:
        doc: dict[str, Any] = {}
        for c in self.contributions:
            doc = deep_merge(doc, c.fragment)
        return doc

    def local_fragment(self) -> dict[str, Any]:
        doc: dict[str, Any] = {}
        for c in self.contributions:
            doc = deep_merge(doc, c.local_fragment)
        return doc

    def build_dual_documents(self, destination: Path) -> DualConfigPair | None:
        """Write the template and local documents; returns None when not in dual mode.

        The local document is seeded from the current template document (with
        known values substituted) and the existing local document is merged
        over that seed. Keys only the local document has are carried back to
        the template as ${NAME} placeholders, so both expose the same key paths
        and no local literal reaches the template.
        """
        if not self.dual_mode:
            logger.info("no literal values captured; skipping %s", self.local_name)
            return None
        destination = Path(destination)
        template_path = destination / self.template_name
        local_path = destination / self.local_name

        existing = load_document(template_path, self.fs)
        seed = deep_merge(substitute(existing, self.values), load_document(local_path, self.fs))
        template = deep_merge(existing, self.template_fragment())
        local = deep_merge(seed, self.local_fragment())
        template = deep_merge(template, local_only(template, local))

        write_document(template_path, template, self.fs)
        write_document(local_path, local, self.fs)
        logger.info("wrote %s and %s (%d contribution(s))", self.template_name, self.local_name, len(self.contributions))
        return DualConfigPair(template_path, local_path, template, local)

    def flush(self, destination: Path) -> DualConfigPair | None:
        """Checkpoint: merge every contribution into the template document, and the local one in dual mode."""
        if self.dual_mode:
            return self.build_dual_documents(destination)
        template_path = Path(destination) / self.template_name
        for c in self.contributions:
            merge_into(template_path, c.fragment, c.label, self.fs)
        return None
