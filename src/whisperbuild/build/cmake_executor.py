"""CMake Executor.

This module drives the external build tool for a BuildPlan: configure,
build, and install into the workspace output directory.

Design:
    - Each step is one blocking subprocess call through the CommandRunner
    - The job count defaults to the number of logical CPUs (psutil)
    - A missing cmake or a non-zero exit raises BuildError with the tail of
      the tool's output; nothing is retried
"""

import shutil
from pathlib import Path
from typing import List, Optional

import psutil

from ..command_runner import CommandRunner
from ..config.environment import EnvironmentSnapshot
from .build_plan import BuildPlan


class BuildError(Exception):
    """Raised when the external build tool fails."""

    pass


class CMakeExecutor:
    """Runs cmake configure/build/install for a BuildPlan."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        jobs: Optional[int] = None,
        verbose: bool = False,
    ):
        """Initialize CMake executor.

        Args:
            runner: Runs cmake (default: CommandRunner())
            jobs: Parallel build jobs (default: logical CPU count)
            verbose: Stream cmake output and ask for verbose build lines
        """
        self.runner = runner or CommandRunner(verbose=verbose)
        self.jobs = jobs or psutil.cpu_count(logical=True) or 1
        self.verbose = verbose

    @staticmethod
    def find_cmake(environment: EnvironmentSnapshot) -> str:
        """Locate cmake: $CMAKE, else cmake on PATH.

        Raises:
            BuildError: If cmake cannot be found
        """
        configured = environment.get("CMAKE")
        if configured:
            return configured
        found = shutil.which("cmake", path=environment.get("PATH"))
        if found is None:
            raise BuildError("cmake not found on PATH; install CMake or set CMAKE")
        return found

    def commands(
        self,
        plan: BuildPlan,
        cmake: str,
        source_dir: Path,
        build_dir: Path,
        install_dir: Path,
    ) -> List[List[str]]:
        """The configure, build and install command lines, in order."""
        configure = [
            cmake,
            "-S",
            str(source_dir),
            "-B",
            str(build_dir),
            f"-DCMAKE_INSTALL_PREFIX={install_dir}",
        ] + plan.as_cmake_args()

        build = [
            cmake,
            "--build",
            str(build_dir),
            "--config",
            plan.build_type,
            "--parallel",
            str(self.jobs),
        ]
        if self.verbose:
            build.append("--verbose")

        install = [cmake, "--install", str(build_dir), "--config", plan.build_type]
        return [configure, build, install]

    def execute(
        self,
        plan: BuildPlan,
        environment: EnvironmentSnapshot,
        source_dir: Path,
        build_dir: Path,
        install_dir: Path,
    ) -> Path:
        """Configure, build and install whisper.cpp.

        Args:
            plan: Build plan to apply
            environment: Environment for the cmake processes
            source_dir: Staged whisper.cpp sources
            build_dir: CMake binary directory
            install_dir: Install prefix (the workspace output directory)

        Returns:
            The install directory

        Raises:
            BuildError: If cmake is missing or any step fails
        """
        cmake = self.find_cmake(environment)
        build_dir.mkdir(parents=True, exist_ok=True)

        steps = ("configure", "build", "install")
        for step, cmd in zip(steps, self.commands(plan, cmake, source_dir, build_dir, install_dir)):
            try:
                result = self.runner.run(cmd, env=environment, stream_output=self.verbose)
            except OSError as e:
                raise BuildError(f"Failed to run cmake {step}: {e}") from e

            if not result.ok:
                message = f"cmake {step} failed with exit code {result.returncode}"
                tail = result.output_tail()
                if tail:
                    message += f"\n{tail}"
                raise BuildError(message)

        return install_dir
