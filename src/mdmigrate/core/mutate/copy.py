"""CopyPath primitive: idempotent file/directory copy with an optional-asset deny-list"""

import fnmatch
import logging
from pathlib import Path, PurePosixPath

from mdmigrate.core.mutate.targets import MutationOutcome
from mdmigrate.core.utils.fs import FileSystem
from mdmigrate.core.utils.hashing import file_sha256
from mdmigrate.errors import MutationWarning, SourceNotFoundError


logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED = ("node_modules", ".git")


def is_optional(relative: str, optional_assets: list[str]) -> bool:
    """True if relative matches any glob in the deny-list (by full path or file name)."""
    rel = PurePosixPath(relative.replace('\\', '/'))
    return any(fnmatch.fnmatch(str(rel), pat) or fnmatch.fnmatch(rel.name, pat) for pat in optional_assets)


def _within(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
        return True
    except ValueError:
        return False


def _same_file(src: Path, dst: Path) -> bool:
    return dst.is_file() and file_sha256(src) == file_sha256(dst)


def copy_path(
    fs: FileSystem,
    source_root: Path,
    dest_root: Path,
    source: str,
    destination: str = None,
    excluded: tuple[str, ...] | list[str] = DEFAULT_EXCLUDED,
    optional_assets: list[str] = (),
    optional: bool = False,
    ) -> MutationOutcome:
    """Copy source (relative to source_root) to destination (relative to dest_root).

    A missing source raises SourceNotFoundError unless optional is set or it
    is on the optional deny-list, in which case a skipped outcome is returned with a warning.
    An identical destination file is left untouched.
    """
    destination = destination or source
    src = Path(source_root) / source
    dst = Path(dest_root) / destination

    if not _within(dst, Path(dest_root)):
        raise MutationWarning(f"Refusing to copy outside destination tree: {destination}")

    if not fs.exists(src):
        if optional or is_optional(source, list(optional_assets)):
            logger.warning("optional source missing, skipped: %s", source)
            return MutationOutcome(path=str(dst), primitive="copy", strategy="optional", status="skipped",
                                   detail=f"optional source missing: {source}")
        raise SourceNotFoundError(src, f"Copy source not found: {src}")

    if not fs.is_dir(src) and _same_file(src, dst):
        logger.debug("%s already up to date", dst)
        return MutationOutcome(path=str(dst), primitive="copy", strategy="present", status="skipped")

    fs.copy(src, dst, excluded=excluded)
    kind = "directory" if fs.is_dir(src) else "file"
    logger.info("copied %s %s -> %s", kind, source, destination)
    return MutationOutcome(path=str(dst), primitive="copy", strategy=kind, status="applied")
