"""Package manifest (package.json) dependency merging"""

import json
import logging
from pathlib import Path

from mdmigrate.core.mutate.targets import MutationOutcome
from mdmigrate.core.utils.diff import describe_change
from mdmigrate.core.utils.fs import FileSystem
from mdmigrate.errors import MutationWarning, ParseError


logger = logging.getLogger(__name__)

DEPENDENCY_SECTIONS = ("dependencies", "devDependencies")


def parse_manifest_fragment(code: str) -> dict[str, dict[str, str]]:
    """Return {section: {name: version}} from a JSON fragment shown in a guide.

    Accepts a full object or the bare body of one (`"a": "^1.0"`).
    """
    text = code.strip()
    if not text.startswith("{"):
        text = "{" + text.rstrip(",") + "}"
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid manifest fragment: {e}") from e
    if not isinstance(data, dict):
        raise ParseError("Manifest fragment is not an object")
    if not any(k in data for k in DEPENDENCY_SECTIONS):
        data = {"dependencies": data}
    return {k: {str(n): str(v) for n, v in data[k].items()} for k in DEPENDENCY_SECTIONS if isinstance(data.get(k), dict)}


def merge_dependencies(fs: FileSystem, path: Path, sections: dict[str, dict[str, str]]) -> MutationOutcome:
    """Add missing dependencies to a package.json; existing versions are kept."""
    path = Path(path)
    if not fs.exists(path):
        raise MutationWarning(f"Manifest missing: {path}")
    old = fs.read(path)
    try:
        manifest = json.loads(old)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON in {path}: {e}") from e

    added = []
    for section, deps in sections.items():
        current = manifest.setdefault(section, {})
        for name, version in deps.items():
            if name not in current:
                current[name] = version
                added.append(name)

    if not added:
        return MutationOutcome(path=str(path), primitive="manifest", strategy="present", status="skipped")

    new = json.dumps(manifest, indent=2, ensure_ascii=False) + "\n"
    fs.write(path, new)
    logger.info("added %d dependenc(ies) to %s: %s", len(added), path, ", ".join(added))
    return MutationOutcome(path=str(path), primitive="manifest", strategy="merge", status="applied",
                           detail=describe_change(old, new))
