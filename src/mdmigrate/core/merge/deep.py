"""Deep merge of configuration mappings and read-merge-write of YAML documents"""

import copy
import logging
from pathlib import Path
from typing import Any

import yaml

from mdmigrate.core.utils.fs import FileSystem
from mdmigrate.errors import ParseError


logger = logging.getLogger(__name__)


def deep_merge(base: dict[str, Any], fragment: dict[str, Any]) -> dict[str, Any]:
    """Return base updated with fragment; neither input is modified.

    Mappings merge recursively. Lists and scalars from fragment replace the
    base value wholesale. Keys absent from fragment are always kept, and a
    null in fragment (`key:` with no value) never overwrites an existing one.
    """
    merged = copy.deepcopy(base)
    for key, value in fragment.items():
        if value is None and key in merged:
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def key_paths(data: Any, prefix: str = '') -> set[str]:
    """Return the dot-joined paths of every mapping key in data; lists are leaves."""
    paths: set[str] = set()
    if isinstance(data, dict):
        for key, value in data.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            paths.add(path)
            paths |= key_paths(value, path)
    return paths


def get_path(data: Any, dotted: str) -> tuple[bool, Any]:
    """Look up a dot-joined key path; returns (found, value)."""
    current = data
    for part in dotted.split('.'):
        if not isinstance(current, dict) or part not in current:
            return False, None
        current = current[part]
    return True, current


def dump_document(data: dict[str, Any]) -> str:
    return yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)


def load_document(path: Path, fs: FileSystem = None) -> dict[str, Any]:
    """Read a YAML mapping from disk; a missing file is an empty document."""
    fs = fs or FileSystem()
    if not fs.exists(path):
        return {}
    try:
        data = yaml.safe_load(fs.read(path)) or {}
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ParseError(f"Invalid YAML in {path}: expected a mapping, got {type(data).__name__}")
    return data


def write_document(path: Path, data: dict[str, Any], fs: FileSystem = None) -> bool:
    """Write data when it differs from what is on disk; returns True if written."""
    fs = fs or FileSystem()
    if fs.exists(path) and load_document(path, fs) == data:
        return False
    fs.write(path, dump_document(data))
    return True


def merge_into(path: Path, fragment: dict[str, Any], change_label: str, fs: FileSystem = None) -> bool:
    """Deep-merge fragment into the YAML document at path and write it back.

    Returns True if the document changed. An unchanged merge leaves the file
    (including its comments) untouched.
    """
    fs = fs or FileSystem()
    existing = load_document(path, fs)
    merged = deep_merge(existing, fragment)
    if fs.exists(path) and merged == existing:
        logger.debug("%s: %s already merged", Path(path).name, change_label)
        return False
    fs.write(path, dump_document(merged))
    logger.info("%s: merged %s", Path(path).name, change_label)
    return True
