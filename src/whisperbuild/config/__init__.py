"""Configuration and capability resolution for whisperbuild."""

from .capabilities import (
    ACCELERATOR_FEATURES,
    FEATURES,
    CapabilityResolver,
    CapabilitySet,
    ConfigurationError,
    parse_feature_list,
)
from .environment import EnvironmentSnapshot
from .ini_parser import ProjectConfig, ProjectConfigError, ProjectSettings
from .shared_ggml import SharedGgmlExports
from .target import PlatformError, TargetDetector, TargetPlatform

__all__ = [
    "ACCELERATOR_FEATURES",
    "FEATURES",
    "CapabilityResolver",
    "CapabilitySet",
    "ConfigurationError",
    "parse_feature_list",
    "EnvironmentSnapshot",
    "ProjectConfig",
    "ProjectConfigError",
    "ProjectSettings",
    "SharedGgmlExports",
    "PlatformError",
    "TargetDetector",
    "TargetPlatform",
]
