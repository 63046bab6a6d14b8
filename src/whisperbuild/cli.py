"""
Command-line interface for whisperbuild.

This module provides the `wbuild` CLI tool for building whisper.cpp.
"""

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from whisperbuild import __version__
from whisperbuild.build import BuildOrchestrator, extract_version
from whisperbuild.cli_utils import ErrorFormatter, OptionsLoader, PathValidator, setup_logging
from whisperbuild.config import (
    ACCELERATOR_FEATURES,
    FEATURES,
    ConfigurationError,
    EnvironmentSnapshot,
    PlatformError,
    ProjectConfigError,
    parse_feature_list,
)
from whisperbuild.packages import Workspace


@dataclass
class BuildArgs:
    """Arguments for the build and plan commands."""

    project_dir: Path
    features: List[str] = field(default_factory=list)
    profile: Optional[str] = None
    target: Optional[str] = None
    vendor_dir: Optional[Path] = None
    repository_url: Optional[str] = None
    runtime_dir: Optional[Path] = None
    archive_fallback: bool = False
    jobs: Optional[int] = None
    clean: bool = False
    verbose: bool = False


@dataclass
class VersionArgs:
    """Arguments for the version command."""

    project_dir: Path
    vendor_dir: Optional[Path] = None


def _load_options(args: BuildArgs):
    settings = OptionsLoader.load_settings(args.project_dir)
    return OptionsLoader.merge(
        settings,
        features=args.features,
        profile=args.profile,
        target=args.target,
        vendor_dir=args.vendor_dir,
        repository_url=args.repository_url,
        runtime_dir=args.runtime_dir,
        archive_fallback=args.archive_fallback,
        jobs=args.jobs,
        clean=args.clean,
    )


def build_command(args: BuildArgs) -> None:
    """Build whisper.cpp and report the link configuration.

    Examples:
        wbuild build                         # Build with configured features
        wbuild build path/to/project         # Build a specific project
        wbuild build -F cuda -F openmp       # Enable backends
        wbuild build --profile debug         # RelWithDebInfo build
        wbuild build --clean --verbose       # Fresh, verbose build
    """
    print(f"whisperbuild v{__version__}")
    print()

    try:
        options = _load_options(args)
        orchestrator = BuildOrchestrator(verbose=args.verbose)

        features = ", ".join(options.features) or "none"
        print(f"Building whisper.cpp (features: {features})...")

        result = orchestrator.build(args.project_dir, options)

        if not result.success:
            ErrorFormatter.print_error("Build failed!", result.message)
            sys.exit(1)

        ErrorFormatter.print_success(result.message)
        print()
        if result.version:
            print(f"whisper.cpp version: {result.version}")
        if result.bindings is not None:
            print(f"Bindings: {result.bindings.path} ({result.bindings.origin})")
        if result.link_graph is not None:
            print("Linker arguments:")
            print(f"  {' '.join(result.link_graph.to_linker_args())}")
        for artifact in result.placed_artifacts:
            print(f"Runtime artifact: {artifact}")
        if result.manifest_path is not None:
            print(f"Manifest: {result.manifest_path}")
        print(f"Build time: {result.build_time:.2f}s")
        sys.exit(0)

    except ProjectConfigError as e:
        ErrorFormatter.print_error("Invalid whisperbuild.ini", str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def plan_command(args: BuildArgs) -> None:
    """Print the CMake configuration that a build would use.

    Examples:
        wbuild plan                          # Plan with configured features
        wbuild plan -F vulkan --target x86_64-pc-windows-msvc
    """
    try:
        options = _load_options(args)
        plan = BuildOrchestrator().plan(options)
    except (ConfigurationError, PlatformError, ProjectConfigError) as e:
        ErrorFormatter.print_error("Invalid configuration", str(e))
        sys.exit(1)

    print(f"Variant: {plan.variant}")
    print(f"Build type: {plan.build_type}")
    for argument in plan.as_cmake_args():
        print(f"  {argument}")
    sys.exit(0)


def version_command(args: VersionArgs) -> None:
    """Print the version of the vendored whisper.cpp.

    The staged copy is preferred; the vendor checkout is read otherwise.
    """
    workspace = Workspace(args.project_dir, EnvironmentSnapshot.from_os_environ())
    candidates = [workspace.staging_dir, args.vendor_dir or workspace.default_vendor_dir]

    for candidate in candidates:
        version = extract_version(candidate)
        if version:
            print(version)
            sys.exit(0)

    ErrorFormatter.print_error(
        "Version not found",
        f"No whisper.cpp version declaration found in {', '.join(str(c) for c in candidates)}",
    )
    sys.exit(1)


def features_command() -> None:
    """List the known feature names."""
    for name in FEATURES:
        kind = "backend" if name in ACCELERATOR_FEATURES else "mode"
        print(f"{name:<24} {kind}")
    sys.exit(0)


def _add_build_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory (default: current directory)",
    )
    parser.add_argument(
        "-F",
        "--feature",
        dest="features",
        action="append",
        default=[],
        help="Enable a feature; repeatable or comma separated (see 'wbuild features')",
    )
    parser.add_argument(
        "--profile",
        choices=["release", "debug"],
        default=None,
        help="Build profile (default: release)",
    )
    parser.add_argument(
        "--target",
        default=None,
        help="Target triple (default: host)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose build output",
    )


def main() -> None:
    """whisperbuild - native build orchestration for whisper.cpp."""
    parser = argparse.ArgumentParser(
        prog="wbuild",
        description="whisperbuild - native build orchestration for whisper.cpp",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"wbuild {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Build command
    build_parser = subparsers.add_parser(
        "build",
        help="Build whisper.cpp and resolve its link configuration",
    )
    _add_build_arguments(build_parser)
    build_parser.add_argument(
        "--vendor-dir",
        type=Path,
        default=None,
        help="Location of the whisper.cpp checkout (default: <project>/whisper.cpp)",
    )
    build_parser.add_argument(
        "--repository-url",
        default=None,
        help="Repository cloned when the checkout is missing",
    )
    build_parser.add_argument(
        "--runtime-dir",
        type=Path,
        default=None,
        help="Directory receiving runtime DLLs (Windows, shared ggml)",
    )
    build_parser.add_argument(
        "--archive-fallback",
        action="store_true",
        help="Download a source archive if git cannot fetch the sources",
    )
    build_parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Parallel build jobs (default: number of CPUs)",
    )
    build_parser.add_argument(
        "-c",
        "--clean",
        action="store_true",
        help="Remove the workspace before building",
    )

    # Plan command
    plan_parser = subparsers.add_parser(
        "plan",
        help="Show the CMake configuration without building",
    )
    _add_build_arguments(plan_parser)

    # Version command
    version_parser = subparsers.add_parser(
        "version",
        help="Print the vendored whisper.cpp version",
    )
    version_parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory (default: current directory)",
    )
    version_parser.add_argument(
        "--vendor-dir",
        type=Path,
        default=None,
        help="Location of the whisper.cpp checkout (default: <project>/whisper.cpp)",
    )

    # Features command
    subparsers.add_parser(
        "features",
        help="List known features",
    )

    parsed_args = parser.parse_args()

    if not parsed_args.command:
        parser.print_help()
        sys.exit(1)

    if hasattr(parsed_args, "project_dir"):
        PathValidator.validate_project_dir(parsed_args.project_dir)

    if getattr(parsed_args, "verbose", False):
        setup_logging(verbose=True)
    else:
        setup_logging()

    # Execute command
    if parsed_args.command == "build":
        build_args = BuildArgs(
            project_dir=parsed_args.project_dir,
            features=parse_feature_list(parsed_args.features),
            profile=parsed_args.profile,
            target=parsed_args.target,
            vendor_dir=parsed_args.vendor_dir,
            repository_url=parsed_args.repository_url,
            runtime_dir=parsed_args.runtime_dir,
            archive_fallback=parsed_args.archive_fallback,
            jobs=parsed_args.jobs,
            clean=parsed_args.clean,
            verbose=parsed_args.verbose,
        )
        build_command(build_args)
    elif parsed_args.command == "plan":
        plan_args = BuildArgs(
            project_dir=parsed_args.project_dir,
            features=parse_feature_list(parsed_args.features),
            profile=parsed_args.profile,
            target=parsed_args.target,
            verbose=parsed_args.verbose,
        )
        plan_command(plan_args)
    elif parsed_args.command == "version":
        version_args = VersionArgs(
            project_dir=parsed_args.project_dir,
            vendor_dir=parsed_args.vendor_dir,
        )
        version_command(version_args)
    elif parsed_args.command == "features":
        features_command()


if __name__ == "__main__":
    main()
