"""Locations exported by an externally built ggml library.

When whisper.cpp is built against a ggml that another build already
produced, that build exports its library directory, binary directory,
library base name and include directory through environment variables.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .capabilities import ConfigurationError
from .environment import EnvironmentSnapshot

LIB_DIR_VARIABLE = "GGML_WHISPER_LIB_DIR"
BIN_DIR_VARIABLE = "GGML_WHISPER_BIN_DIR"
BASENAME_VARIABLE = "GGML_WHISPER_BASENAME"
DEFAULT_BASENAME = "ggml_whisper"

# Checked in order; the first one set wins
INCLUDE_VARIABLES = ("GGML_WHISPER_INCLUDE", "GGML_RS_INCLUDE", "GGML_INCLUDE")


@dataclass(frozen=True)
class SharedGgmlExports:
    """Paths and names exported by the external ggml build."""

    lib_dir: Optional[Path]
    bin_dir: Optional[Path]
    basename: str
    include_dir: Optional[Path]

    @classmethod
    def from_environment(cls, environment: EnvironmentSnapshot) -> "SharedGgmlExports":
        """Read the exported locations from an environment snapshot.

        The include directory falls back to ``<lib_dir>/../include`` when no
        include variable is set.
        """
        lib_dir = environment.get_path(LIB_DIR_VARIABLE)

        include_dir = None
        for name in INCLUDE_VARIABLES:
            include_dir = environment.get_path(name)
            if include_dir is not None:
                break
        if include_dir is None and lib_dir is not None:
            include_dir = lib_dir.parent / "include"

        return cls(
            lib_dir=lib_dir,
            bin_dir=environment.get_path(BIN_DIR_VARIABLE),
            basename=environment.get(BASENAME_VARIABLE) or DEFAULT_BASENAME,
            include_dir=include_dir,
        )

    def require_lib_dir(self) -> Path:
        """Return the library directory.

        Raises:
            ConfigurationError: If no library directory was exported
        """
        if self.lib_dir is None:
            raise ConfigurationError(
                f"{LIB_DIR_VARIABLE} is not set; it must point at the library "
                "directory of the externally built ggml"
            )
        return self.lib_dir

    def require_include_dir(self) -> Path:
        """Return the include directory.

        Raises:
            ConfigurationError: If no include directory can be resolved
        """
        if self.include_dir is None:
            raise ConfigurationError(
                "Unable to locate the ggml headers; set one of "
                f"{', '.join(INCLUDE_VARIABLES)} or {LIB_DIR_VARIABLE}"
            )
        return self.include_dir

    @property
    def prefix(self) -> Path:
        """Install prefix of the external ggml (parent of the lib dir)."""
        return self.require_lib_dir().parent

    @property
    def runtime_dir(self) -> Path:
        """Directory holding the runtime DLLs: the bin dir, else the lib dir."""
        if self.bin_dir is not None:
            return self.bin_dir
        return self.require_lib_dir()
