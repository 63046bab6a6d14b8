"""CLI utility functions for whisperbuild.

This module provides common utilities used across CLI commands including:
- Logging setup
- Merging whisperbuild.ini settings with command-line options
- Error handling and formatting
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

from whisperbuild.build import BuildOptions
from whisperbuild.config import ProjectConfig, ProjectSettings
from whisperbuild.packages import DEFAULT_REPOSITORY_URL

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(verbose: bool = False) -> None:
    """Send log records to stderr; INFO and up when verbose, else WARNING."""
    level = logging.INFO if verbose else logging.WARNING

    logger = logging.getLogger()
    logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console_handler)


class OptionsLoader:
    """Builds BuildOptions from whisperbuild.ini and command-line values."""

    @staticmethod
    def load_settings(project_dir: Path) -> ProjectSettings:
        """Settings from the project's whisperbuild.ini, or defaults.

        Raises:
            ProjectConfigError: If the file exists but is invalid
        """
        config = ProjectConfig.find(project_dir)
        if config is None:
            return ProjectSettings()
        return config.get_settings()

    @staticmethod
    def merge(
        settings: ProjectSettings,
        features: Optional[List[str]] = None,
        profile: Optional[str] = None,
        target: Optional[str] = None,
        vendor_dir: Optional[Path] = None,
        repository_url: Optional[str] = None,
        runtime_dir: Optional[Path] = None,
        archive_fallback: bool = False,
        jobs: Optional[int] = None,
        clean: bool = False,
    ) -> BuildOptions:
        """Command-line values win over file settings when given.

        Features given on the command line replace the configured list.
        """
        return BuildOptions(
            features=list(features) if features else list(settings.features),
            profile=profile or settings.profile or "release",
            target=target or settings.target,
            vendor_dir=vendor_dir or settings.vendor_dir,
            repository_url=repository_url or settings.repository_url or DEFAULT_REPOSITORY_URL,
            runtime_dir=runtime_dir or settings.runtime_dir,
            archive_fallback=archive_fallback or settings.archive_fallback,
            jobs=jobs,
            clean=clean,
        )


class ErrorFormatter:
    """Formats and displays error messages with ANSI color codes."""

    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print formatted error message.

        Args:
            title: Error title (e.g., "Build failed!")
            message: Error message details
        """
        print()
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}")
        print()
        print(message)
        print()

    @staticmethod
    def print_success(message: str) -> None:
        print()
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        print()
        print(f"{ErrorFormatter.YELLOW}! {message}{ErrorFormatter.RESET}")

    @staticmethod
    def handle_keyboard_interrupt() -> None:
        """Report an interrupted build and exit with the SIGINT status."""
        ErrorFormatter.print_warning("Build interrupted")
        sys.exit(130)

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> None:
        """Handle unexpected errors with standard formatting.

        Args:
            error: The exception to handle
            verbose: Whether to print traceback
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            import traceback

            print("Traceback:")
            print(traceback.format_exc())

        sys.exit(1)


class PathValidator:
    """Validates project paths and directories."""

    @staticmethod
    def validate_project_dir(project_dir: Path) -> None:
        """Exit with status 2 unless project_dir is an existing directory."""
        if not project_dir.exists():
            print(
                f"{ErrorFormatter.RED}✗ Error: Path does not exist: {project_dir}{ErrorFormatter.RESET}"
            )
            sys.exit(2)
        if not project_dir.is_dir():
            print(
                f"{ErrorFormatter.RED}✗ Error: Path is not a directory: {project_dir}{ErrorFormatter.RESET}"
            )
            sys.exit(2)
