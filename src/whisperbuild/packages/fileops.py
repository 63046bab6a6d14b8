"""Filesystem operations used while moving source trees around.

Acquisition and staging go through a FileOperations instance rather than
calling shutil directly. Tests subclass it to simulate failures such as a
rename across filesystems.
"""

import os
import shutil
from pathlib import Path


class FileOperations:
    """Thin wrapper over the os and shutil calls the build relies on."""

    def is_populated(self, path: Path) -> bool:
        """True if path is a directory with at least one entry."""
        path = Path(path)
        if not path.is_dir():
            return False
        with os.scandir(path) as entries:
            return any(True for _ in entries)

    def makedirs(self, path: Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def rename(self, src: Path, dst: Path) -> None:
        """Rename src to dst. Raises OSError across filesystems."""
        os.rename(src, dst)

    def copytree(self, src: Path, dst: Path) -> None:
        """Recursively copy src into dst, creating dst if needed."""
        shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)

    def copyfile(self, src: Path, dst: Path) -> None:
        """Copy one file, overwriting dst."""
        shutil.copy2(src, dst)

    def rmtree(self, path: Path, ignore_errors: bool = False) -> None:
        """Remove a directory tree if it exists."""
        path = Path(path)
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.exists():
            shutil.rmtree(path, ignore_errors=ignore_errors)
