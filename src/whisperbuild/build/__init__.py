"""
Build system components for whisperbuild.

This module provides the native build pipeline including:
- Interface generation (cffi declarations)
- CMake configuration planning and execution
- Link graph resolution and runtime artifact placement
- Build orchestration
"""

from .bindings import BindingGenerationFailure, BindingGenerator, BindingSet
from .build_plan import BuildPlan, EmbeddedPlanner, SharedPlanner, planner_for
from .cmake_executor import BuildError, CMakeExecutor
from .link_graph import LinkGraph, LinkGraphResolver, LinkUnit
from .orchestrator import BuildOptions, BuildOrchestrator, BuildResult
from .runtime_placement import ArtifactPlacementFailure, RuntimeArtifactPlacer
from .version import extract_version, parse_version

__all__ = [
    "BindingGenerationFailure",
    "BindingGenerator",
    "BindingSet",
    "BuildPlan",
    "EmbeddedPlanner",
    "SharedPlanner",
    "planner_for",
    "BuildError",
    "CMakeExecutor",
    "LinkGraph",
    "LinkGraphResolver",
    "LinkUnit",
    "BuildOptions",
    "BuildOrchestrator",
    "BuildResult",
    "ArtifactPlacementFailure",
    "RuntimeArtifactPlacer",
    "extract_version",
    "parse_version",
]
