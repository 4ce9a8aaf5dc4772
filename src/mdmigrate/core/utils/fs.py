"""File-system collaborator used by mutation primitives and phases"""

import logging
import shutil
from pathlib import Path
from typing import Iterable


logger = logging.getLogger(__name__)

MD_EXTENSIONS = {".md", ".mdx"}


class FileSystem:
    """Thin wrapper over pathlib/shutil so tests and dry runs can substitute it.

    Every write goes through here; reads never create files.
    """

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def is_dir(self, path: Path) -> bool:
        return Path(path).is_dir()

    def read(self, path: Path) -> str:
        return Path(path).read_text(encoding="utf-8")

    def write(self, path: Path, content: str) -> None:
        path = Path(path)
        self.ensure_dir(path.parent)
        path.write_text(content, encoding="utf-8")

    def ensure_dir(self, path: Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def remove(self, path: Path) -> bool:
        """Delete a file or directory tree; returns False when nothing was there."""
        path = Path(path)
        if path.is_dir():
            shutil.rmtree(path)
            return True
        if path.exists():
            path.unlink()
            return True
        return False

    def copy(self, src: Path, dst: Path, excluded: Iterable[str] = ()) -> None:
        """Copy a file or a directory tree, skipping directory names in excluded."""
        src, dst = Path(src), Path(dst)
        if src.is_dir():
            shutil.copytree(src, dst, ignore=shutil.ignore_patterns(*excluded), dirs_exist_ok=True)
        else:
            self.ensure_dir(dst.parent)
            shutil.copy2(src, dst)
        logger.debug("copied %s -> %s", src, dst)


def iter_markdown_files(root: Path) -> Iterable[Path]:
    for p in sorted(Path(root).rglob("*")):
        if p.is_file() and p.suffix.lower() in MD_EXTENSIONS:
            yield p
