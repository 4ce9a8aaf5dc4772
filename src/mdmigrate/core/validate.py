"""Read-only post-mutation validation against declared expectations"""

import logging
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from mdmigrate.core.merge.deep import get_path, key_paths, load_document
from mdmigrate.core.utils.fs import FileSystem
from mdmigrate.errors import MigrationError, ValidationFailure


logger = logging.getLogger(__name__)


class CheckKind(str, Enum):
    exists = "exists"           # file or directory present
    contains = "contains"       # substring present in file
    key = "key"                 # dotted key path present in a YAML document
    absent = "absent"           # file missing, or substring missing when needle is set


class Expectation(BaseModel):
    """A (file-or-document, expected substring or key) pair."""
    path: str
    kind: CheckKind = CheckKind.exists
    needle: Optional[str] = None
    soft: bool = Field(default=False, description="Record a warning instead of a failure")
    label: Optional[str] = None

    def describe(self) -> str:
        if self.label:
            return self.label
        if self.kind == CheckKind.exists:
            return self.path
        return f"{self.path} [{self.kind.value}: {self.needle}]" if self.needle else f"{self.path} [{self.kind.value}]"


class ValidationResult(BaseModel):
    passed: list[str] = []
    failed: list[str] = []
    warnings: list[str] = []

    @property
    def ok(self) -> bool:
        return not self.failed

    def extend(self, other: "ValidationResult") -> "ValidationResult":
        self.passed.extend(other.passed)
        self.failed.extend(other.failed)
        self.warnings.extend(other.warnings)
        return self

    def counts(self) -> dict[str, int]:
        return {"passed": len(self.passed), "failed": len(self.failed), "warnings": len(self.warnings)}


def _check(root: Path, exp: Expectation, fs: FileSystem) -> bool:
    path = root / exp.path
    if exp.kind == CheckKind.exists:
        return fs.exists(path)
    if exp.kind == CheckKind.absent:
        if exp.needle is None:
            return not fs.exists(path)
        return not fs.exists(path) or exp.needle not in fs.read(path)
    if not fs.exists(path) or fs.is_dir(path):
        return False
    if exp.kind == CheckKind.contains:
        return (exp.needle or '') in fs.read(path)
    found, _ = get_path(load_document(path, fs), exp.needle or '')
    return found


def validate(root: Path, expectations: list[Expectation], fs: FileSystem = None) -> ValidationResult:
    """Evaluate every expectation; never mutates and never stops early."""
    fs = fs or FileSystem()
    root = Path(root)
    result = ValidationResult()
    for exp in expectations:
        name = exp.describe()
        try:
            ok = _check(root, exp, fs)
        except (MigrationError, OSError) as e:
            ok = False
            name = f"{name} ({e})"
        if ok:
            result.passed.append(name)
        elif exp.soft:
            result.warnings.append(name)
        else:
            result.failed.append(name)
    return result


def check_dual_parity(template_path: Path, local_path: Path, fs: FileSystem = None) -> ValidationResult:
    """Both configuration documents must expose identical dot-joined key paths."""
    fs = fs or FileSystem()
    result = ValidationResult()
    if not fs.exists(local_path):
        result.warnings.append(f"{Path(local_path).name} not present; dual configuration inactive")
        return result
    template_keys = key_paths(load_document(template_path, fs))
    local_keys = key_paths(load_document(local_path, fs))
    if template_keys == local_keys:
        result.passed.append(f"key parity {Path(template_path).name} == {Path(local_path).name}")
        return result
    for key in sorted(template_keys - local_keys):
        result.failed.append(f"{Path(local_path).name} missing key {key}")
    for key in sorted(local_keys - template_keys):
        result.failed.append(f"{Path(template_path).name} missing key {key}")
    return result


def report(result: ValidationResult, title: str = "validation") -> None:
    """Log a one-line summary plus each failure and warning."""
    c = result.counts()
    logger.info("%s: %d passed, %d failed, %d warning(s)", title, c["passed"], c["failed"], c["warnings"])
    for item in result.failed:
        logger.error("  failed: %s", item)
    for item in result.warnings:
        logger.warning("  warning: %s", item)


def raise_for_failures(result: ValidationResult) -> None:
    if not result.ok:
        raise ValidationFailure(result)
