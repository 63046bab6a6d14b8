"""Build configuration planning for whisper.cpp.

This module turns a CapabilitySet into the ordered list of CMake cache
definitions that configure the whisper.cpp build. Planning does not run
anything; CMakeExecutor consumes the resulting BuildPlan.

Design:
    - Two planners share one skeleton: EmbeddedPlanner compiles the
      vendored ggml, SharedPlanner links an externally built ggml
    - Directives keep insertion order and are unique by key; defining a key
      again replaces the earlier value and moves it to the end
    - WHISPER_* and CMAKE_* environment variables are folded in last, so
      the environment overrides anything decided programmatically
    - Every prerequisite is validated here, before the build tool runs
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..config.capabilities import SKIP_BINDINGS_VARIABLE, CapabilitySet, ConfigurationError
from ..config.shared_ggml import SharedGgmlExports

PASSTHROUGH_PREFIXES = ("WHISPER_", "CMAKE_")

DEBUG_BUILD_TYPE = "RelWithDebInfo"
RELEASE_BUILD_TYPE = "Release"


@dataclass(frozen=True)
class BuildPlan:
    """Immutable description of a whisper.cpp CMake configuration."""

    variant: str
    directives: Tuple[Tuple[str, str], ...]
    build_type: str
    cxx_flags: Tuple[str, ...] = ()
    toolchain: Tuple[Tuple[str, str], ...] = ()

    def get(self, key: str) -> Optional[str]:
        """Value of a directive, or None if the plan doesn't define it."""
        for name, value in self.directives:
            if name == key:
                return value
        return None

    @property
    def keys(self) -> List[str]:
        return [name for name, _ in self.directives]

    def as_cmake_args(self) -> List[str]:
        """Render the directives as ``-DKEY=VALUE`` arguments."""
        return [f"-D{name}={value}" for name, value in self.directives]

    def to_dict(self) -> dict:
        return {
            "variant": self.variant,
            "build_type": self.build_type,
            "cxx_flags": list(self.cxx_flags),
            "toolchain": dict(self.toolchain),
            "directives": [[name, value] for name, value in self.directives],
        }


class DirectiveList:
    """Ordered key/value directives where the last definition wins."""

    def __init__(self):
        self._items: Dict[str, str] = {}

    def define(self, key: str, value: str) -> None:
        self._items.pop(key, None)
        self._items[key] = value

    def items(self) -> Tuple[Tuple[str, str], ...]:
        return tuple(self._items.items())


class BuildPlanner(ABC):
    """Common skeleton of the embedded and shared build plans."""

    variant = ""

    def __init__(self, capabilities: CapabilitySet):
        self.capabilities = capabilities
        self.environment = capabilities.environment
        self.target = capabilities.target

    def plan(self) -> BuildPlan:
        """Compute the build plan.

        Returns:
            BuildPlan for this variant

        Raises:
            ConfigurationError: If a required prerequisite is missing
        """
        directives = DirectiveList()
        cxx_flags: List[str] = []
        toolchain: Dict[str, str] = {}

        directives.define("BUILD_SHARED_LIBS", "OFF")
        directives.define("WHISPER_ALL_WARNINGS", "OFF")
        directives.define("WHISPER_ALL_WARNINGS_3RD_PARTY", "OFF")
        directives.define("WHISPER_BUILD_TESTS", "OFF")
        directives.define("WHISPER_BUILD_EXAMPLES", "OFF")
        directives.define("CMAKE_POSITION_INDEPENDENT_CODE", "ON")

        if self.target.is_windows:
            cxx_flags.append("/utf-8")

        self.apply_variant(directives, toolchain)

        if self.capabilities.enabled("coreml"):
            directives.define("WHISPER_COREML", "ON")
            directives.define("WHISPER_COREML_ALLOW_FALLBACK", "1")

        if self.capabilities.debug:
            build_type = DEBUG_BUILD_TYPE
            cxx_flags.append("-DWHISPER_DEBUG")
        else:
            build_type = RELEASE_BUILD_TYPE
        directives.define("CMAKE_BUILD_TYPE", build_type)

        if not self.capabilities.enabled("openmp"):
            directives.define("GGML_OPENMP", "OFF")

        for key, value in toolchain.items():
            directives.define(key, value)

        if cxx_flags:
            directives.define("CMAKE_CXX_FLAGS", " ".join(cxx_flags))

        for key, value in self.environment.with_prefixes(
            PASSTHROUGH_PREFIXES, exclude=(SKIP_BINDINGS_VARIABLE,)
        ):
            directives.define(key, value)

        return BuildPlan(
            variant=self.variant,
            directives=directives.items(),
            build_type=build_type,
            cxx_flags=tuple(cxx_flags),
            toolchain=tuple(toolchain.items()),
        )

    @abstractmethod
    def apply_variant(self, directives: DirectiveList, toolchain: Dict[str, str]) -> None:
        """Add the variant specific directives and toolchain overrides."""


class EmbeddedPlanner(BuildPlanner):
    """Plans a build that compiles the vendored ggml alongside whisper.cpp."""

    variant = "embedded"

    def apply_variant(self, directives: DirectiveList, toolchain: Dict[str, str]) -> None:
        caps = self.capabilities
        env = self.environment

        if caps.enabled("cuda"):
            directives.define("GGML_CUDA", "ON")
            directives.define("CMAKE_POSITION_INDEPENDENT_CODE", "ON")
            directives.define("CMAKE_CUDA_FLAGS", "-Xcompiler=-fPIC")

        if caps.enabled("hipblas"):
            if self.target.is_windows:
                raise ConfigurationError("The hipblas feature is not supported on Windows targets")
            directives.define("GGML_HIP", "ON")
            toolchain["CMAKE_C_COMPILER"] = "hipcc"
            toolchain["CMAKE_CXX_COMPILER"] = "hipcc"
            if env.get("AMDGPU_TARGETS"):
                directives.define("AMDGPU_TARGETS", env["AMDGPU_TARGETS"])

        if caps.enabled("vulkan"):
            if (self.target.is_windows or self.target.is_macos) and not env.get("VULKAN_SDK"):
                raise ConfigurationError(
                    f"The vulkan feature requires VULKAN_SDK on {self.target.os} targets"
                )
            directives.define("GGML_VULKAN", "ON")

        if caps.enabled("openblas"):
            blas_include = env.get("BLAS_INCLUDE_DIRS")
            if not blas_include:
                raise ConfigurationError(
                    "The openblas feature requires BLAS_INCLUDE_DIRS to point at the OpenBLAS headers"
                )
            directives.define("GGML_BLAS", "ON")
            directives.define("GGML_BLAS_VENDOR", "OpenBLAS")
            directives.define("BLAS_INCLUDE_DIRS", blas_include)

        if caps.enabled("metal"):
            directives.define("GGML_METAL", "ON")
            directives.define("GGML_METAL_NDEBUG", "ON")
            directives.define("GGML_METAL_EMBED_LIBRARY", "ON")
        else:
            directives.define("GGML_METAL", "OFF")

        if caps.enabled("intel-sycl"):
            directives.define("BUILD_SHARED_LIBS", "ON")
            directives.define("GGML_SYCL", "ON")
            directives.define("GGML_SYCL_TARGET", "INTEL")
            toolchain["CMAKE_C_COMPILER"] = "icx"
            toolchain["CMAKE_CXX_COMPILER"] = "icpx"


class SharedPlanner(BuildPlanner):
    """Plans a build that links whisper.cpp against an external ggml."""

    variant = "shared"

    def apply_variant(self, directives: DirectiveList, toolchain: Dict[str, str]) -> None:
        exports = SharedGgmlExports.from_environment(self.environment)
        lib_dir = exports.require_lib_dir()
        prefix = exports.prefix

        directives.define("WHISPER_USE_SYSTEM_GGML", "ON")
        directives.define("CMAKE_PREFIX_PATH", str(prefix))

        ggml_cmake_dir = prefix / "lib" / "cmake" / "ggml"
        if ggml_cmake_dir.is_dir():
            directives.define("ggml_DIR", str(ggml_cmake_dir))

        if exports.include_dir is not None:
            directives.define("GGML_INCLUDE_DIR", str(exports.include_dir))

        ggml_library = lib_dir / self.target.static_library_filename(exports.basename)
        if ggml_library.is_file():
            directives.define("GGML_LIBRARY", str(ggml_library))
        else:
            directives.define("GGML_LIB_DIR", str(lib_dir))


def planner_for(capabilities: CapabilitySet) -> BuildPlanner:
    """Select the planner matching the capability set's ggml mode."""
    if capabilities.shared_ggml:
        return SharedPlanner(capabilities)
    return EmbeddedPlanner(capabilities)
