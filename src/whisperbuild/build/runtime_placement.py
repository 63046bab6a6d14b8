"""Placement of runtime DLLs next to the consumer's executables.

Windows resolves DLLs from the executable's directory, so when whisper.cpp
links against an externally built ggml, the ggml DLLs are copied there.
Copy failures are reported as warnings and never fail the build.
"""

import logging
from pathlib import Path
from typing import List, Optional

from ..config.capabilities import CapabilitySet
from ..config.shared_ggml import SharedGgmlExports
from ..packages.fileops import FileOperations
from .link_graph import DYLIB, LinkGraph


class ArtifactPlacementFailure(Exception):
    """Raised when a runtime artifact cannot be copied."""

    pass


class RuntimeArtifactPlacer:
    """Copies ggml DLLs into the runtime directory on Windows."""

    def __init__(self, file_ops: Optional[FileOperations] = None, show_progress: bool = False):
        self.file_ops = file_ops or FileOperations()
        self.show_progress = show_progress

    @staticmethod
    def applies_to(capabilities: CapabilitySet) -> bool:
        return capabilities.target.is_windows and capabilities.shared_ggml

    def place(
        self,
        capabilities: CapabilitySet,
        link_graph: LinkGraph,
        runtime_dir: Optional[Path],
    ) -> List[Path]:
        """Copy the linked ggml DLLs into runtime_dir.

        Args:
            capabilities: Enabled capabilities
            link_graph: Resolved link graph; its ggml dylib units name the DLLs
            runtime_dir: Directory holding the consumer's executables

        Returns:
            Paths of the copied DLLs
        """
        if not self.applies_to(capabilities):
            return []
        if runtime_dir is None:
            logging.info("No runtime directory configured, skipping DLL placement")
            return []

        exports = SharedGgmlExports.from_environment(capabilities.environment)
        source_dir = exports.runtime_dir
        names = [
            name for name in link_graph.names(DYLIB) if name.startswith(exports.basename)
        ]

        placed: List[Path] = []
        for name in names:
            source = source_dir / f"{name}.dll"
            if not source.is_file():
                continue
            destination = Path(runtime_dir) / source.name
            try:
                self._copy(source, destination)
            except ArtifactPlacementFailure as e:
                logging.warning(str(e))
                continue
            if self.show_progress:
                print(f"      Copied {source.name} -> {runtime_dir}")
            placed.append(destination)
        return placed

    def _copy(self, source: Path, destination: Path) -> None:
        try:
            self.file_ops.makedirs(destination.parent)
            self.file_ops.copyfile(source, destination)
        except OSError as e:
            raise ArtifactPlacementFailure(
                f"Failed to copy {source} to {destination}: {e}"
            ) from e
