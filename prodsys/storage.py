"""File storage used by the aggregator, mutator and workspace."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional


logger = logging.getLogger("prodsys.storage")


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


class FileStorage:
    """Read, write and enumerate markdown files on the local filesystem.

    ``read`` raises ``FileNotFoundError`` for missing files and ``write``
    raises ``OSError``; neither is wrapped.
    """

    encoding = "utf-8"

    def exists(self, path: Path | str) -> bool:
        return Path(path).exists()

    def read(self, path: Path | str) -> str:
        # newline="" keeps CRLF files intact across a read-modify-write
        with open(path, "r", encoding=self.encoding, newline="") as handle:
            return handle.read()

    def write(self, path: Path | str, text: str) -> None:
        """Replace the file contents atomically (temp file + rename)."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
        try:
            with os.fdopen(fd, "w", encoding=self.encoding, newline="") as handle:
                handle.write(text)
            # mkstemp creates 0600; match the existing file or a plain open()
            mode = target.stat().st_mode & 0o777 if target.exists() else 0o666 & ~_current_umask()
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, target)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def list_markdown_files(self, root_dir: Path | str) -> List[Path]:
        """Recursively list ``*.md`` files, skipping dot-directories.

        A missing root yields an empty list; unreadable directories are
        skipped.
        """
        root = Path(root_dir)
        files: List[Path] = []
        if not root.is_dir():
            return files

        def _on_error(error: OSError) -> None:
            logger.warning(f"Skipping unreadable directory {error.filename}: {error}")

        for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
            dirnames[:] = sorted(name for name in dirnames if not name.startswith("."))
            for name in sorted(filenames):
                if name.endswith(".md"):
                    files.append(Path(dirpath) / name)
        return files

    def create_backup(self, path: Path | str) -> Optional[Path]:
        """Copy ``path`` to ``<path>.bak``; returns the backup path if one was made."""
        source = Path(path)
        if not source.exists():
            return None
        backup = source.with_name(source.name + ".bak")
        self.write(backup, self.read(source))
        return backup
