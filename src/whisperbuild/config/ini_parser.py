"""
whisperbuild.ini configuration parser.

This module reads the optional project configuration file that pins the
feature set and paths for a project, so they don't have to be repeated on
every command line.

Example whisperbuild.ini:
    [whisperbuild]
    features = cuda, openmp
    profile = release
    vendor_dir = third_party/whisper.cpp
    runtime_dir = ${paths:bin}
    archive_fallback = yes

    [paths]
    bin = target/bin
"""

import configparser
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .capabilities import parse_feature_list


class ProjectConfigError(Exception):
    """Exception raised for whisperbuild.ini configuration errors."""

    pass


@dataclass
class ProjectSettings:
    """Settings read from whisperbuild.ini. Unset values are None."""

    features: List[str] = field(default_factory=list)
    profile: Optional[str] = None
    target: Optional[str] = None
    vendor_dir: Optional[Path] = None
    repository_url: Optional[str] = None
    runtime_dir: Optional[Path] = None
    archive_fallback: bool = False


class ProjectConfig:
    """
    Parser for whisperbuild.ini configuration files.

    Relative paths are resolved against the directory holding the file.

    Usage:
        config = ProjectConfig.find(Path("."))
        if config is not None:
            settings = config.get_settings()
    """

    FILENAME = "whisperbuild.ini"
    SECTION = "whisperbuild"

    def __init__(self, ini_path: Path):
        """
        Initialize the parser with a whisperbuild.ini file.

        Args:
            ini_path: Path to the whisperbuild.ini file

        Raises:
            ProjectConfigError: If the file doesn't exist or cannot be parsed
        """
        self.ini_path = Path(ini_path)

        if not self.ini_path.exists():
            raise ProjectConfigError(f"Configuration file not found: {self.ini_path}")

        self.config = configparser.ConfigParser(
            allow_no_value=True, interpolation=configparser.ExtendedInterpolation()
        )

        try:
            self.config.read(self.ini_path, encoding="utf-8")
        except configparser.Error as e:
            raise ProjectConfigError(f"Failed to parse {self.ini_path}: {e}") from e

        if not self.config.has_section(self.SECTION):
            raise ProjectConfigError(
                f"{self.ini_path} has no [{self.SECTION}] section"
            )

    @classmethod
    def find(cls, project_dir: Path) -> Optional["ProjectConfig"]:
        """Load the project's whisperbuild.ini if it has one."""
        ini_path = Path(project_dir) / cls.FILENAME
        if not ini_path.exists():
            return None
        return cls(ini_path)

    def get_settings(self) -> ProjectSettings:
        """
        Read all recognized keys of the [whisperbuild] section.

        Returns:
            ProjectSettings with the configured values

        Raises:
            ProjectConfigError: If a value cannot be interpreted
        """
        try:
            section = self.config[self.SECTION]
            features = parse_feature_list([section.get("features", "") or ""])
            archive_fallback = section.getboolean("archive_fallback", fallback=False)
            return ProjectSettings(
                features=features,
                profile=section.get("profile") or None,
                target=section.get("target") or None,
                vendor_dir=self._get_path(section.get("vendor_dir")),
                repository_url=section.get("repository_url") or None,
                runtime_dir=self._get_path(section.get("runtime_dir")),
                archive_fallback=archive_fallback,
            )
        except (configparser.Error, ValueError) as e:
            raise ProjectConfigError(f"Invalid value in {self.ini_path}: {e}") from e

    def _get_path(self, value: Optional[str]) -> Optional[Path]:
        if not value:
            return None
        path = Path(value)
        if not path.is_absolute():
            path = self.ini_path.parent / path
        return path
