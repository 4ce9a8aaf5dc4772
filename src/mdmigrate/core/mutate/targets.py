"""Logical target roles, mutation targets and file-level application of text primitives"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from mdmigrate.core.mutate import delete, inject
from mdmigrate.core.mutate.anchors import Insertion, contains_fragment
from mdmigrate.core.utils.diff import describe_change
from mdmigrate.core.utils.fs import FileSystem
from mdmigrate.errors import MutationWarning


logger = logging.getLogger(__name__)


class TargetRole(str, Enum):
    app_entry = "app-entry"
    backend_entry = "backend-entry"
    theme_root = "theme-root"
    package_manifest = "package-manifest"
    backend_manifest = "backend-manifest"
    root_manifest = "root-manifest"
    catalog_descriptor = "catalog-descriptor"
    entity_page = "entity-page"


DEFAULT_ROLE_PATHS: dict[TargetRole, str] = {
    TargetRole.app_entry:          "packages/app/src/App.tsx",
    TargetRole.backend_entry:      "packages/backend/src/index.ts",
    TargetRole.theme_root:         "packages/app/src/components/theme",
    TargetRole.package_manifest:   "packages/app/package.json",
    TargetRole.backend_manifest:   "packages/backend/package.json",
    TargetRole.root_manifest:      "package.json",
    TargetRole.catalog_descriptor: "catalog-info.yaml",
    TargetRole.entity_page:        "packages/app/src/components/catalog/EntityPage.tsx",
}


def resolve_role(role: TargetRole, root: Path, overrides: dict[str, str] = None) -> Path:
    """Return the path of a logical role under root; overrides are keyed by role value."""
    rel = (overrides or {}).get(role.value) or DEFAULT_ROLE_PATHS[role]
    return Path(root) / rel


@dataclass
class MutationOutcome:
    path: str
    primitive: str
    strategy: str
    status: str             # applied | skipped | failed
    detail: str = ""


# primitive name -> text function (content, fragment, label) -> Insertion
PRIMITIVES: dict[str, Callable[..., Insertion]] = {
    "import":        inject.add_import,
    "constant":      inject.add_constant,
    "app-constant":  inject.add_app_constant,
    "component":     inject.add_component,
    "route":         inject.add_route,
    "entity-route":  inject.add_entity_route,
    "registration":  inject.add_backend_registration,
}


@dataclass
class MutationTarget:
    """A fragment to place in the file playing a logical role."""
    role: TargetRole | None
    path: Path
    fragment: str
    primitive: str = "import"

    def is_applied(self, content: str) -> bool:
        return contains_fragment(content, self.fragment)


def apply_target(fs: FileSystem, target: MutationTarget) -> MutationOutcome:
    """Read, insert the fragment via the target's primitive, and write back if changed.

    Raises MutationWarning when the file is missing or no anchor is found.
    """
    path = Path(target.path)
    if not fs.exists(path):
        raise MutationWarning(f"Target file missing: {path}")
    old = fs.read(path)
    if target.is_applied(old):
        return MutationOutcome(path=str(path), primitive=target.primitive, strategy="present", status="skipped")

    result = PRIMITIVES[target.primitive](old, target.fragment, label=path.name)
    if not target.is_applied(result.content):
        raise MutationWarning(f"Fragment not present in {path.name} after {target.primitive} insertion")
    fs.write(path, result.content)
    return MutationOutcome(
        path=str(path), primitive=target.primitive, strategy=result.strategy,
        status="applied", detail=describe_change(old, result.content),
    )


def apply_deletion(fs: FileSystem, path: Path, patterns: list[re.Pattern], primitive: str = "delete") -> MutationOutcome:
    """Remove pattern matches from a file; no match is a skipped outcome."""
    path = Path(path)
    if not fs.exists(path):
        raise MutationWarning(f"Target file missing: {path}")
    old = fs.read(path)
    new, removed = delete.delete_patterns(old, patterns)
    if not removed:
        return MutationOutcome(path=str(path), primitive=primitive, strategy="no-match", status="skipped")
    fs.write(path, new)
    logger.info("removed %d match(es) from %s", removed, path.name)
    return MutationOutcome(path=str(path), primitive=primitive, strategy="pattern", status="applied",
                           detail=describe_change(old, new))
