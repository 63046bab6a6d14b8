"""
Build orchestration for whisper.cpp.

This module runs the whole native build pipeline, in order:
- Capability resolution (features, target, environment prerequisites)
- Build planning (CMake directives for the embedded or shared ggml mode)
- Source acquisition (local checkout, submodule, clone, archive)
- Staging into the workspace
- Interface generation (cffi declarations, pinned fallback)
- CMake configure/build/install
- Link graph resolution
- Runtime DLL placement (Windows, shared ggml)
- Version extraction and the build manifest
"""

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..command_runner import CommandRunner
from ..config.capabilities import CapabilityResolver, CapabilitySet, ConfigurationError
from ..config.environment import EnvironmentSnapshot
from ..config.target import PlatformError, TargetDetector, TargetPlatform
from ..packages.downloader import ArchiveDownloader
from ..packages.fileops import FileOperations
from ..packages.source_resolver import (
    DEFAULT_REPOSITORY_URL,
    AcquisitionError,
    SourceResolver,
)
from ..packages.staging import StagingError, StagingManager
from ..packages.workspace import Workspace
from .bindings import BindingGenerator, BindingSet
from .build_plan import BuildPlan, planner_for
from .cmake_executor import BuildError, CMakeExecutor
from .link_graph import LinkGraph, LinkGraphResolver
from .runtime_placement import RuntimeArtifactPlacer
from .version import VERSION_VARIABLE, extract_version

DOCS_ONLY_VARIABLE = "WHISPERBUILD_DOCS_ONLY"

TOTAL_PHASES = 8


@dataclass
class BuildOptions:
    """Inputs of one pipeline run."""

    features: List[str] = field(default_factory=list)
    profile: str = "release"
    target: Optional[str] = None
    vendor_dir: Optional[Path] = None
    repository_url: str = DEFAULT_REPOSITORY_URL
    runtime_dir: Optional[Path] = None
    archive_fallback: bool = False
    jobs: Optional[int] = None
    clean: bool = False


@dataclass
class BuildResult:
    """Result of a complete build operation."""

    success: bool
    build_time: float
    message: str
    capabilities: Optional[CapabilitySet] = None
    plan: Optional[BuildPlan] = None
    bindings: Optional[BindingSet] = None
    link_graph: Optional[LinkGraph] = None
    version: Optional[str] = None
    placed_artifacts: List[Path] = field(default_factory=list)
    manifest_path: Optional[Path] = None
    error: Optional[Exception] = None


class BuildOrchestrator:
    """
    Orchestrates the native whisper.cpp build.

    All collaborators that touch the outside world (process runner, file
    operations, archive downloader) can be injected, and the environment
    is read once into a snapshot that every phase shares.

    Example usage:
        orchestrator = BuildOrchestrator(verbose=True)
        result = orchestrator.build(Path("."), BuildOptions(features=["cuda"]))
        if result.success:
            print(" ".join(result.link_graph.to_linker_args()))
    """

    def __init__(
        self,
        environment: Optional[EnvironmentSnapshot] = None,
        runner: Optional[CommandRunner] = None,
        file_ops: Optional[FileOperations] = None,
        downloader: Optional[ArchiveDownloader] = None,
        verbose: bool = False,
    ):
        """
        Initialize build orchestrator.

        Args:
            environment: Environment snapshot (default: captured from os.environ)
            runner: Runs git, the preprocessor and cmake
            file_ops: Filesystem operations for acquisition and staging
            downloader: Archive downloader for the archive fallback
            verbose: Enable verbose output
        """
        self.environment = environment if environment is not None else EnvironmentSnapshot.from_os_environ()
        self.runner = runner or CommandRunner(verbose=verbose)
        self.file_ops = file_ops or FileOperations()
        self.downloader = downloader
        self.verbose = verbose

    def resolve_capabilities(self, options: BuildOptions) -> CapabilitySet:
        """Resolve the capability set for the given options.

        Raises:
            ConfigurationError: On unknown features or unmet prerequisites
            PlatformError: If the host platform cannot be detected
        """
        if options.target:
            target = TargetPlatform(options.target)
        else:
            target = TargetDetector.detect_host()
        resolver = CapabilityResolver(self.environment, target)
        return resolver.resolve(options.features, options.profile)

    def plan(self, options: BuildOptions) -> BuildPlan:
        """Resolve capabilities and compute the build plan without building."""
        return planner_for(self.resolve_capabilities(options)).plan()

    def build(self, project_dir: Path, options: Optional[BuildOptions] = None) -> BuildResult:
        """
        Execute the pipeline and report failures in the result.

        Args:
            project_dir: Project directory owning the whisper.cpp checkout
            options: Build options (default: BuildOptions())

        Returns:
            BuildResult; on failure success is False and error holds the
            exception that stopped the pipeline
        """
        start_time = time.time()
        try:
            return self.run(project_dir, options)
        except (
            ConfigurationError,
            PlatformError,
            AcquisitionError,
            StagingError,
            BuildError,
        ) as e:
            return BuildResult(
                success=False,
                build_time=time.time() - start_time,
                message=str(e),
                error=e,
            )

    def run(self, project_dir: Path, options: Optional[BuildOptions] = None) -> BuildResult:
        """
        Execute the pipeline, letting fatal errors propagate.

        Raises:
            ConfigurationError: If capabilities or prerequisites are invalid
            AcquisitionError: If the sources cannot be obtained
            StagingError: If the sources cannot be staged
            BuildError: If cmake fails
        """
        start_time = time.time()
        options = options or BuildOptions()
        project_dir = Path(project_dir).resolve()

        # Phase 1: Capabilities
        self._phase(1, "Resolving capabilities...")
        capabilities = self.resolve_capabilities(options)
        if self.verbose:
            enabled = ", ".join(capabilities.enabled_features) or "none"
            print(f"      Target: {capabilities.target}")
            print(f"      Features: {enabled}")

        # Phase 2: Plan (validates prerequisites before any work)
        self._phase(2, "Planning build configuration...")
        plan = planner_for(capabilities).plan()
        if self.verbose:
            print(f"      Variant: {plan.variant}, build type: {plan.build_type}")

        workspace = Workspace(project_dir, self.environment)
        if options.clean:
            workspace.clean()
        workspace.ensure_directories()

        # Phase 3: Sources
        self._phase(3, "Locating whisper.cpp sources...")
        source_tree = SourceResolver(
            project_dir,
            workspace,
            runner=self.runner,
            file_ops=self.file_ops,
            vendor_dir=options.vendor_dir,
            repository_url=options.repository_url,
            archive_fallback=options.archive_fallback,
            downloader=self.downloader,
            environment=self.environment,
            show_progress=self.verbose,
        ).resolve()
        if self.verbose:
            print(f"      Sources: {source_tree.root} ({source_tree.origin})")

        # Phase 4: Staging
        self._phase(4, "Staging sources...")
        staging_dir = StagingManager(workspace, self.file_ops, show_progress=self.verbose).stage(source_tree)

        # Phase 5: Bindings
        self._phase(5, "Generating bindings...")
        bindings = BindingGenerator(self.runner, show_progress=self.verbose).generate(
            capabilities, staging_dir, workspace.bindings_path
        )
        if self.verbose:
            print(f"      Bindings: {bindings.path} ({bindings.origin})")

        if self.environment.is_set(DOCS_ONLY_VARIABLE):
            return BuildResult(
                success=True,
                build_time=time.time() - start_time,
                message="Documentation build, native build skipped",
                capabilities=capabilities,
                plan=plan,
                bindings=bindings,
            )

        # Phase 6: Native build
        self._phase(6, "Building whisper.cpp...")
        out_dir = CMakeExecutor(self.runner, jobs=options.jobs, verbose=self.verbose).execute(
            plan, self.environment, staging_dir, workspace.build_dir, workspace.out_dir
        )

        # Phase 7: Link graph and runtime artifacts
        self._phase(7, "Resolving link graph...")
        link_graph = LinkGraphResolver(capabilities).resolve(out_dir, workspace.build_dir)
        placed = RuntimeArtifactPlacer(self.file_ops, show_progress=self.verbose).place(
            capabilities, link_graph, options.runtime_dir
        )

        # Phase 8: Version and manifest
        self._phase(8, "Writing build manifest...")
        version = extract_version(staging_dir)
        self._write_manifest(
            workspace.manifest_path, capabilities, plan, bindings, link_graph, version, placed
        )

        return BuildResult(
            success=True,
            build_time=time.time() - start_time,
            message="Build successful",
            capabilities=capabilities,
            plan=plan,
            bindings=bindings,
            link_graph=link_graph,
            version=version,
            placed_artifacts=placed,
            manifest_path=workspace.manifest_path,
        )

    def _phase(self, number: int, description: str) -> None:
        if self.verbose:
            print(f"[{number}/{TOTAL_PHASES}] {description}")

    @staticmethod
    def _write_manifest(
        path: Path,
        capabilities: CapabilitySet,
        plan: BuildPlan,
        bindings: BindingSet,
        link_graph: LinkGraph,
        version: Optional[str],
        placed: List[Path],
    ) -> None:
        manifest = {
            VERSION_VARIABLE: version,
            "target": capabilities.target.triple,
            "features": list(capabilities.enabled_features),
            "profile": capabilities.profile,
            "bindings": {"path": str(bindings.path), "origin": bindings.origin},
            "plan": plan.to_dict(),
            "link": link_graph.to_dict(),
            "runtime_artifacts": [str(p) for p in placed],
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=2)
