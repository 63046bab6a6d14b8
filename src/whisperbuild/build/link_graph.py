"""Link graph resolution for the built whisper.cpp libraries.

This module works out what a consumer has to link against after the build:
search directories, the whisper and ggml libraries, the system libraries
each enabled backend needs, Apple frameworks and the C++ runtime.

Design:
    - Optional backend libraries are probed on disk and included only when
      the build actually produced them; a missing one is silently skipped
    - The embedded and shared ggml modes are two LinkStrategy classes
    - Build output directories are walked iteratively with a visited set
    - Library units come before the system libraries they depend on
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from ..config.capabilities import CapabilitySet, ConfigurationError
from ..config.shared_ggml import SharedGgmlExports

STATIC = "static"
DYLIB = "dylib"
FRAMEWORK = "framework"

# Vendored ggml libraries, in link order
EMBEDDED_BASE_LIBRARIES = ("whisper", "ggml", "ggml-base", "ggml-cpu")

CUDA_SEARCH_PATHS = (
    "/usr/local/cuda/lib64",
    "/usr/local/cuda/lib64/stubs",
    "/opt/cuda/lib64",
    "/opt/cuda/lib64/stubs",
)
DEFAULT_HIP_PATH = "/opt/rocm"
HOMEBREW_LIBOMP_PATH = "/opt/homebrew/opt/libomp/lib"


@dataclass(frozen=True)
class LinkUnit:
    """One library or framework to link."""

    kind: str
    name: str


@dataclass
class LinkGraph:
    """Ordered link units and search paths for one target."""

    target: str
    units: List[LinkUnit] = field(default_factory=list)
    search_paths: List[Path] = field(default_factory=list)

    def add_unit(self, kind: str, name: str) -> None:
        unit = LinkUnit(kind, name)
        if unit not in self.units:
            self.units.append(unit)

    def add_search_path(self, path: Path) -> None:
        path = Path(path)
        if path not in self.search_paths:
            self.search_paths.append(path)

    def names(self, kind: Optional[str] = None) -> List[str]:
        """Names of the link units, optionally only those of one kind."""
        return [unit.name for unit in self.units if kind is None or unit.kind == kind]

    @property
    def is_msvc(self) -> bool:
        return self.target.endswith("msvc")

    def to_linker_args(self) -> List[str]:
        """Render the graph as linker command-line arguments.

        MSVC targets get /LIBPATH: and .lib names, everything else gets
        GNU-style -L/-l flags and -framework pairs.
        """
        args: List[str] = []
        if self.is_msvc:
            args += [f"/LIBPATH:{path}" for path in self.search_paths]
            args += [f"{unit.name}.lib" for unit in self.units if unit.kind != FRAMEWORK]
            return args

        args += [f"-L{path}" for path in self.search_paths]
        for unit in self.units:
            if unit.kind == FRAMEWORK:
                args += ["-framework", unit.name]
            else:
                args.append(f"-l{unit.name}")
        return args

    def to_extension_kwargs(self) -> Dict[str, List[str]]:
        """Keyword arguments for setuptools.Extension."""
        frameworks: List[str] = []
        for name in self.names(FRAMEWORK):
            frameworks += ["-framework", name]
        return {
            "library_dirs": [str(path) for path in self.search_paths],
            "libraries": [unit.name for unit in self.units if unit.kind != FRAMEWORK],
            "extra_link_args": frameworks,
        }

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "search_paths": [str(path) for path in self.search_paths],
            "units": [{"kind": unit.kind, "name": unit.name} for unit in self.units],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LinkGraph":
        return cls(
            target=data["target"],
            units=[LinkUnit(unit["kind"], unit["name"]) for unit in data.get("units", [])],
            search_paths=[Path(path) for path in data.get("search_paths", [])],
        )

    def save(self, path: Path) -> None:
        """Write the graph as JSON."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)


def walk_directories(root: Path) -> List[Path]:
    """All directories under root (root included), depth first.

    Symlinked directories are followed once; the visited set stops cycles.
    """
    found: List[Path] = []
    visited = set()
    stack = [Path(root)]
    while stack:
        current = stack.pop()
        if not current.is_dir():
            continue
        key = current.resolve()
        if key in visited:
            continue
        visited.add(key)
        found.append(current)
        try:
            children = sorted(child for child in current.iterdir() if child.is_dir())
        except OSError as e:
            logging.debug(f"Skipping unreadable directory {current}: {e}")
            continue
        stack.extend(reversed(children))
    return found


def probe(directories: Iterable[Path], filenames: Iterable[str]) -> Optional[Path]:
    """First existing file among filenames in any of the directories."""
    filenames = list(filenames)
    for directory in directories:
        for filename in filenames:
            candidate = Path(directory) / filename
            if candidate.is_file():
                return candidate
    return None


class LinkStrategy(ABC):
    """Adds the whisper/ggml libraries of one ggml mode to a LinkGraph."""

    def __init__(self, capabilities: CapabilitySet):
        self.capabilities = capabilities
        self.target = capabilities.target

    @abstractmethod
    def add_libraries(self, graph: LinkGraph) -> None:
        """Add the library units (and their search paths) to the graph."""

    def add_system_libraries(self, graph: LinkGraph) -> None:
        """Add system libraries only this mode needs."""

    def _probe_unit(self, graph: LinkGraph, kind: str, name: str, filenames: List[str],
                    directories: Iterable[Path]) -> bool:
        found = probe(directories, filenames)
        if found is None:
            logging.debug(f"Optional library {name} not found, skipping")
            return False
        logging.debug(f"Found optional library {name} at {found}")
        graph.add_unit(kind, name)
        return True


class EmbeddedLinkStrategy(LinkStrategy):
    """Libraries produced by building the vendored ggml."""

    def optional_backends(self) -> List[str]:
        caps = self.capabilities
        backends = []
        if self.target.is_macos or caps.enabled("openblas"):
            backends.append("ggml-blas")
        for feature, library in (
            ("vulkan", "ggml-vulkan"),
            ("hipblas", "ggml-hip"),
            ("metal", "ggml-metal"),
            ("cuda", "ggml-cuda"),
            ("intel-sycl", "ggml-sycl"),
        ):
            if caps.enabled(feature):
                backends.append(library)
        return backends

    def add_libraries(self, graph: LinkGraph) -> None:
        sycl = self.capabilities.enabled("intel-sycl")
        kind = DYLIB if sycl else STATIC

        for name in EMBEDDED_BASE_LIBRARIES:
            graph.add_unit(kind, name)

        for name in self.optional_backends():
            if sycl:
                filenames = [self.target.shared_library_filename(name)]
            else:
                filenames = [self.target.static_library_filename(name)]
            self._probe_unit(graph, kind, name, filenames, graph.search_paths)

    def add_system_libraries(self, graph: LinkGraph) -> None:
        if not self.capabilities.enabled("vulkan"):
            return
        env = self.capabilities.environment
        if self.target.is_windows or self.target.is_macos:
            sdk = env.get_path("VULKAN_SDK")
            if sdk is None:
                raise ConfigurationError(
                    f"The vulkan feature requires VULKAN_SDK on {self.target.os} targets"
                )
            if self.target.is_windows:
                graph.add_search_path(sdk / "Lib")
                graph.add_unit(DYLIB, "vulkan-1")
                return
            graph.add_search_path(sdk / "lib")
        graph.add_unit(DYLIB, "vulkan")


class SharedLinkStrategy(LinkStrategy):
    """Libraries exported by an externally built ggml."""

    def optional_suffixes(self) -> List[Tuple[str, bool]]:
        """(suffix, allow static archive) pairs to probe for."""
        caps = self.capabilities
        suffixes = [("-cuda", False), ("-vulkan", False)]
        if self.target.is_macos:
            suffixes.append(("-metal", True))
        if self.target.is_macos or caps.enabled("openblas"):
            suffixes.append(("-blas", True))
        if caps.enabled("hipblas"):
            suffixes.append(("-hip", False))
        if caps.enabled("intel-sycl"):
            suffixes.append(("-sycl", False))
        return suffixes

    def add_libraries(self, graph: LinkGraph) -> None:
        exports = SharedGgmlExports.from_environment(self.capabilities.environment)
        lib_dir = exports.require_lib_dir()
        graph.add_search_path(lib_dir)

        graph.add_unit(STATIC, "whisper")
        base = exports.basename
        for suffix in ("", "-base", "-cpu"):
            graph.add_unit(DYLIB, f"{base}{suffix}")

        for suffix, allow_static in self.optional_suffixes():
            name = f"{base}{suffix}"
            filenames = [self.target.shared_library_filename(name), f"{name}.dll"]
            if allow_static:
                filenames.append(f"lib{name}.a")
            self._probe_unit(graph, DYLIB, name, filenames, [lib_dir])


class LinkGraphResolver:
    """Builds the LinkGraph for a finished build.

    Example usage:
        resolver = LinkGraphResolver(capabilities)
        graph = resolver.resolve(workspace.out_dir, workspace.build_dir)
        print(" ".join(graph.to_linker_args()))
    """

    def __init__(self, capabilities: CapabilitySet):
        self.capabilities = capabilities
        self.target = capabilities.target
        if capabilities.shared_ggml:
            self.strategy: LinkStrategy = SharedLinkStrategy(capabilities)
        else:
            self.strategy = EmbeddedLinkStrategy(capabilities)

    def resolve(self, out_dir: Path, build_dir: Path) -> LinkGraph:
        """Resolve the link graph.

        Args:
            out_dir: Install prefix of the build
            build_dir: CMake binary directory (walked recursively)

        Returns:
            LinkGraph with search paths and link units

        Raises:
            ConfigurationError: If a backend's SDK location is missing
        """
        graph = LinkGraph(target=self.target.triple)

        for directory in walk_directories(build_dir):
            graph.add_search_path(directory)
        graph.add_search_path(out_dir)
        graph.add_search_path(out_dir / "lib")

        self.strategy.add_libraries(graph)
        if self.capabilities.enabled("coreml"):
            graph.add_unit(STATIC, "whisper.coreml")

        self._add_backend_libraries(graph)
        self.strategy.add_system_libraries(graph)
        self._add_platform_libraries(graph)
        return graph

    def _add_backend_libraries(self, graph: LinkGraph) -> None:
        caps = self.capabilities
        env = caps.environment
        target = self.target

        if caps.enabled("openblas"):
            openblas_path = env.get_path("OPENBLAS_PATH")
            if openblas_path is not None:
                graph.add_search_path(openblas_path / "lib")
            graph.add_unit(DYLIB, "libopenblas" if target.is_windows else "openblas")

        if caps.enabled("cuda"):
            for name in ("cublas", "cudart", "cublasLt", "cuda"):
                graph.add_unit(DYLIB, name)
            if target.is_windows:
                cuda_path = env.get_path("CUDA_PATH")
                if cuda_path is None:
                    raise ConfigurationError("The cuda feature requires CUDA_PATH on Windows targets")
                graph.add_search_path(cuda_path / "lib" / "x64")
            else:
                graph.add_unit(DYLIB, "culibos")
                for path in CUDA_SEARCH_PATHS:
                    graph.add_search_path(Path(path))

        if caps.enabled("hipblas"):
            for name in ("hipblas", "rocblas", "amdhip64"):
                graph.add_unit(DYLIB, name)
            hip_path = env.get_path("HIP_PATH") or Path(DEFAULT_HIP_PATH)
            graph.add_search_path(hip_path / "lib")

        if caps.enabled("openmp"):
            if target.is_gnu:
                graph.add_unit(DYLIB, "gomp")
            elif target.is_apple:
                graph.add_unit(DYLIB, "omp")
                graph.add_search_path(Path(HOMEBREW_LIBOMP_PATH))

    def _add_platform_libraries(self, graph: LinkGraph) -> None:
        caps = self.capabilities
        target = self.target

        if target.is_apple:
            graph.add_unit(FRAMEWORK, "Accelerate")
            if caps.enabled("coreml"):
                graph.add_unit(FRAMEWORK, "Foundation")
                graph.add_unit(FRAMEWORK, "CoreML")
            if caps.enabled("metal"):
                graph.add_unit(FRAMEWORK, "Foundation")
                graph.add_unit(FRAMEWORK, "Metal")
                graph.add_unit(FRAMEWORK, "MetalKit")

        if target.is_windows:
            graph.add_unit(DYLIB, "advapi32")

        if target.cxx_stdlib is not None:
            graph.add_unit(DYLIB, target.cxx_stdlib)
