"""Source acquisition and workspace management for whisperbuild.

This module handles locating, fetching and staging the whisper.cpp sources.
"""

from .downloader import ArchiveDownloader, DownloadError, ExtractionError
from .fileops import FileOperations
from .github_utils import GitHubURLOptimizer
from .source_resolver import (
    DEFAULT_REPOSITORY_URL,
    AcquisitionError,
    SourceResolver,
    SourceTree,
)
from .staging import StagingError, StagingManager
from .workspace import Workspace

__all__ = [
    "ArchiveDownloader",
    "DownloadError",
    "ExtractionError",
    "FileOperations",
    "GitHubURLOptimizer",
    "DEFAULT_REPOSITORY_URL",
    "AcquisitionError",
    "SourceResolver",
    "SourceTree",
    "StagingError",
    "StagingManager",
    "Workspace",
]
