"""Staging of the whisper.cpp sources into the output directory.

CMake is pointed at a private copy of the sources so the build never
writes into the vendored checkout. Staging is idempotent: an existing copy
that already has its CMakeLists.txt is reused untouched.
"""

import shutil
from pathlib import Path
from typing import Optional

from .fileops import FileOperations
from .source_resolver import DESCRIPTOR_NAME, SourceTree
from .workspace import Workspace


class StagingError(Exception):
    """Raised when the sources cannot be staged."""

    pass


class StagingManager:
    """Copies a source tree into the workspace's staging directory."""

    def __init__(
        self,
        workspace: Workspace,
        file_ops: Optional[FileOperations] = None,
        show_progress: bool = False,
    ):
        self.workspace = workspace
        self.file_ops = file_ops or FileOperations()
        self.show_progress = show_progress

    def is_staged(self) -> bool:
        """True if the staging directory holds a complete copy."""
        return (self.workspace.staging_dir / DESCRIPTOR_NAME).is_file()

    def stage(self, source: SourceTree) -> Path:
        """Stage the source tree, reusing an existing copy.

        Args:
            source: Populated source tree to copy

        Returns:
            Path to the staged sources

        Raises:
            StagingError: If copying fails or the copy has no CMakeLists.txt
        """
        staging_dir = self.workspace.staging_dir

        if self.is_staged():
            return staging_dir

        if self.show_progress:
            print(f"Staging {source.root} -> {staging_dir}")

        try:
            self.file_ops.rmtree(staging_dir)
            self.file_ops.makedirs(staging_dir)
            self.file_ops.copytree(source.root, staging_dir)
        except (OSError, shutil.Error) as e:
            raise StagingError(
                f"Failed to copy whisper.cpp sources from {source.root} to {staging_dir}: {e}"
            ) from e

        if not self.is_staged():
            raise StagingError(
                f"{DESCRIPTOR_NAME} not found in {staging_dir}; "
                f"{source.root} does not look like a whisper.cpp checkout"
            )

        return staging_dir
