"""Workspace layout for whisperbuild.

All generated state lives below one output directory so a build never
touches the vendored sources it was given.

Workspace Structure:
    .whisperbuild/
    └── out/
        ├── whisper.cpp/          # Staged copy of the vendor sources
        ├── whisper.cpp-temp/     # Temporary shallow clone (acquisition)
        ├── downloads/            # Source archives (archive fallback)
        ├── build/                # CMake binary directory
        ├── lib/                  # Installed static libraries
        ├── include/              # Installed headers
        ├── bindings.h            # Generated or pinned cffi declarations
        └── whisperbuild-manifest.json

The output directory can be moved elsewhere with WHISPERBUILD_OUT_DIR.
"""

import shutil
from pathlib import Path
from typing import Optional

from ..config.environment import EnvironmentSnapshot

OUT_DIR_VARIABLE = "WHISPERBUILD_OUT_DIR"
VENDOR_NAME = "whisper.cpp"


class Workspace:
    """Manages the whisperbuild output directory structure."""

    def __init__(
        self,
        project_dir: Optional[Path] = None,
        environment: Optional[EnvironmentSnapshot] = None,
    ):
        """Initialize workspace.

        Args:
            project_dir: Project directory. If None, uses current directory.
            environment: Environment snapshot consulted for WHISPERBUILD_OUT_DIR
        """
        if project_dir is None:
            project_dir = Path.cwd()

        self.project_dir = Path(project_dir).resolve()

        out_override = environment.get_path(OUT_DIR_VARIABLE) if environment else None
        if out_override is not None:
            self.out_dir = out_override.resolve()
        else:
            self.out_dir = self.project_dir / ".whisperbuild" / "out"

    @property
    def default_vendor_dir(self) -> Path:
        """Where the project keeps its whisper.cpp checkout."""
        return self.project_dir / VENDOR_NAME

    @property
    def staging_dir(self) -> Path:
        return self.out_dir / VENDOR_NAME

    @property
    def clone_temp_dir(self) -> Path:
        return self.out_dir / f"{VENDOR_NAME}-temp"

    @property
    def downloads_dir(self) -> Path:
        return self.out_dir / "downloads"

    @property
    def build_dir(self) -> Path:
        return self.out_dir / "build"

    @property
    def lib_dir(self) -> Path:
        return self.out_dir / "lib"

    @property
    def bindings_path(self) -> Path:
        return self.out_dir / "bindings.h"

    @property
    def manifest_path(self) -> Path:
        return self.out_dir / "whisperbuild-manifest.json"

    def ensure_directories(self) -> None:
        """Create the output directory if it doesn't exist."""
        self.out_dir.mkdir(parents=True, exist_ok=True)

    def clean(self) -> None:
        """Remove every generated file, including the staged sources."""
        if self.out_dir.exists():
            shutil.rmtree(self.out_dir)

    def __repr__(self) -> str:
        return f"Workspace(project_dir={self.project_dir}, out_dir={self.out_dir})"
