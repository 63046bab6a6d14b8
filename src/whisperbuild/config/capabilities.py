"""Capability resolution for whisper.cpp builds.

This module turns the requested feature names into an immutable
CapabilitySet and validates that every selected backend has the environment
it needs before any build work starts.

Design:
    - Every known feature is present in the set, enabled or not
    - The set carries the environment snapshot and target platform, so
      downstream components never read ambient process state
    - Validation failures raise ConfigurationError naming the missing piece
"""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, List, Mapping, Tuple

from .environment import EnvironmentSnapshot
from .target import TargetPlatform

# Accelerator backends, in the order they are reported
ACCELERATOR_FEATURES: Tuple[str, ...] = (
    "cuda",
    "hipblas",
    "vulkan",
    "metal",
    "openblas",
    "intel-sycl",
    "coreml",
)

MODE_FEATURES: Tuple[str, ...] = (
    "openmp",
    "force-debug",
    "use-shared-ggml",
    "dont-generate-bindings",
)

FEATURES: Tuple[str, ...] = ACCELERATOR_FEATURES + MODE_FEATURES

PROFILES: Tuple[str, ...] = ("release", "debug")

SKIP_BINDINGS_VARIABLE = "WHISPER_DONT_GENERATE_BINDINGS"


class ConfigurationError(Exception):
    """Raised when the requested capabilities cannot be built."""

    pass


def parse_feature_list(values: Iterable[str]) -> List[str]:
    """Split feature arguments into individual normalized names.

    Accepts repeated values and comma or whitespace separated lists, so
    ``["cuda,openmp", "metal"]`` yields ``["cuda", "openmp", "metal"]``.
    Underscores are accepted in place of hyphens.

    Args:
        values: Raw feature strings

    Returns:
        Normalized feature names without duplicates, in first-seen order
    """
    names: List[str] = []
    for value in values:
        for token in re.split(r"[,\s]+", value or ""):
            name = token.strip().lower().replace("_", "-")
            if name and name not in names:
                names.append(name)
    return names


@dataclass(frozen=True)
class CapabilitySet:
    """Immutable set of enabled build capabilities."""

    flags: Mapping[str, bool]
    environment: EnvironmentSnapshot
    target: TargetPlatform
    profile: str = "release"

    def enabled(self, name: str) -> bool:
        """Check whether a feature is enabled.

        Raises:
            ConfigurationError: If the feature name is unknown
        """
        if name not in self.flags:
            raise ConfigurationError(f"Unknown feature: {name}")
        return self.flags[name]

    @property
    def enabled_features(self) -> Tuple[str, ...]:
        return tuple(name for name in FEATURES if self.flags.get(name))

    @property
    def shared_ggml(self) -> bool:
        return self.flags["use-shared-ggml"]

    @property
    def debug(self) -> bool:
        return self.profile == "debug" or self.flags["force-debug"]

    @property
    def generate_bindings(self) -> bool:
        return not self.flags["dont-generate-bindings"]

    @property
    def variant(self) -> str:
        return "shared" if self.shared_ggml else "embedded"


class CapabilityResolver:
    """Resolves requested features into a validated CapabilitySet.

    Example usage:
        resolver = CapabilityResolver(EnvironmentSnapshot.from_os_environ(),
                                      TargetDetector.detect_host())
        capabilities = resolver.resolve(["cuda", "openmp"])
    """

    def __init__(self, environment: EnvironmentSnapshot, target: TargetPlatform):
        self.environment = environment
        self.target = target

    def resolve(
        self, features: Iterable[str], profile: str = "release"
    ) -> CapabilitySet:
        """Build and validate a CapabilitySet.

        Args:
            features: Requested feature names (see parse_feature_list)
            profile: Build profile, 'release' or 'debug'

        Returns:
            Validated CapabilitySet

        Raises:
            ConfigurationError: On unknown features or unmet prerequisites
        """
        requested = parse_feature_list(features)

        unknown = [name for name in requested if name not in FEATURES]
        if unknown:
            raise ConfigurationError(
                f"Unknown feature(s): {', '.join(unknown)}. "
                f"Known features: {', '.join(FEATURES)}"
            )

        if profile not in PROFILES:
            raise ConfigurationError(
                f"Unknown profile '{profile}', expected one of: {', '.join(PROFILES)}"
            )

        flags = {name: name in requested for name in FEATURES}
        if self.environment.is_set(SKIP_BINDINGS_VARIABLE):
            flags["dont-generate-bindings"] = True

        capabilities = CapabilitySet(
            flags=MappingProxyType(flags),
            environment=self.environment,
            target=self.target,
            profile=profile,
        )
        self.validate(capabilities)
        return capabilities

    @staticmethod
    def validate(capabilities: CapabilitySet) -> None:
        """Check backend prerequisites that have no platform default.

        Raises:
            ConfigurationError: If a prerequisite is missing
        """
        env = capabilities.environment
        target = capabilities.target

        if capabilities.enabled("hipblas") and target.is_windows:
            raise ConfigurationError(
                "The hipblas feature is not supported on Windows targets: "
                "ROCm 5.7 does not ship the libraries whisper.cpp links against"
            )

        if capabilities.enabled("cuda") and target.is_windows and not env.get("CUDA_PATH"):
            raise ConfigurationError(
                "The cuda feature requires CUDA_PATH on Windows targets"
            )

        if (
            capabilities.enabled("openblas")
            and not capabilities.shared_ggml
            and not env.get("BLAS_INCLUDE_DIRS")
        ):
            raise ConfigurationError(
                "The openblas feature requires BLAS_INCLUDE_DIRS to point at the "
                "OpenBLAS headers"
            )

        if capabilities.shared_ggml and not env.get("GGML_WHISPER_LIB_DIR"):
            raise ConfigurationError(
                "The use-shared-ggml feature requires GGML_WHISPER_LIB_DIR to point "
                "at the exported ggml library directory"
            )
