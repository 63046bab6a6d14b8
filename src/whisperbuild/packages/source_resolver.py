"""Source acquisition for the vendored whisper.cpp tree.

This module guarantees that a populated whisper.cpp source tree exists at
the project's vendor location before the build starts.

Acquisition cascade (first success wins):
    1. The vendor directory already exists and is non-empty
    2. ``git submodule update --init --recursive`` in the project directory
    3. ``git clone --depth 1`` into a temporary directory in the workspace,
       then moved into place (rename, or copy + delete across filesystems)
    4. Optional: download the GitHub zip archive of the repository
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

from ..command_runner import CommandRunner
from .downloader import ArchiveDownloader, DownloadError, ExtractionError
from .fileops import FileOperations
from .github_utils import GitHubURLOptimizer
from .workspace import Workspace

DEFAULT_REPOSITORY_URL = "https://github.com/ggerganov/whisper.cpp.git"
DESCRIPTOR_NAME = "CMakeLists.txt"


class AcquisitionError(Exception):
    """Raised when the whisper.cpp sources cannot be obtained."""

    pass


@dataclass(frozen=True)
class SourceTree:
    """A populated whisper.cpp source tree."""

    root: Path
    has_descriptor: bool
    origin: str

    @classmethod
    def from_path(cls, root: Path, origin: str) -> "SourceTree":
        root = Path(root)
        return cls(
            root=root,
            has_descriptor=(root / DESCRIPTOR_NAME).is_file(),
            origin=origin,
        )


class SourceResolver:
    """Locates or fetches the whisper.cpp sources.

    Example usage:
        resolver = SourceResolver(project_dir, Workspace(project_dir))
        tree = resolver.resolve()
        print(f"Sources at {tree.root} ({tree.origin})")
    """

    def __init__(
        self,
        project_dir: Path,
        workspace: Workspace,
        runner: Optional[CommandRunner] = None,
        file_ops: Optional[FileOperations] = None,
        vendor_dir: Optional[Path] = None,
        repository_url: str = DEFAULT_REPOSITORY_URL,
        archive_fallback: bool = False,
        downloader: Optional[ArchiveDownloader] = None,
        environment: Optional[Mapping[str, str]] = None,
        show_progress: bool = False,
    ):
        """Initialize source resolver.

        Args:
            project_dir: Directory that owns the vendor checkout (git root)
            workspace: Workspace providing the temporary clone location
            runner: Runs git (default: CommandRunner())
            file_ops: Filesystem operations (default: FileOperations())
            vendor_dir: Expected source location (default: <project>/whisper.cpp)
            repository_url: Repository to clone when the tree is missing
            archive_fallback: Download a zip archive if git cannot fetch
            downloader: Archive downloader (default: ArchiveDownloader())
            environment: Environment passed to git
            show_progress: Whether to print progress messages
        """
        self.project_dir = Path(project_dir).resolve()
        self.workspace = workspace
        self.runner = runner or CommandRunner()
        self.file_ops = file_ops or FileOperations()
        self.vendor_dir = Path(vendor_dir) if vendor_dir else workspace.default_vendor_dir
        self.repository_url = repository_url
        self.archive_fallback = archive_fallback
        self.downloader = downloader
        self.environment = environment
        self.show_progress = show_progress

    def resolve(self) -> SourceTree:
        """Return a populated source tree, fetching it if needed.

        Returns:
            SourceTree rooted at the vendor directory

        Raises:
            AcquisitionError: If every acquisition strategy fails
        """
        if self.file_ops.is_populated(self.vendor_dir):
            return SourceTree.from_path(self.vendor_dir, "local")

        failures: List[str] = []

        if self.show_progress:
            print(f"whisper.cpp sources not found at {self.vendor_dir}, updating submodule...")
        failure = self._update_submodule()
        if failure is None:
            if self.file_ops.is_populated(self.vendor_dir):
                return SourceTree.from_path(self.vendor_dir, "submodule")
            failure = f"git submodule update left {self.vendor_dir} empty"
        failures.append(failure)

        if self.show_progress:
            print(f"Cloning {self.repository_url}...")
        failure = self._clone()
        if failure is None:
            return SourceTree.from_path(self.vendor_dir, "clone")
        failures.append(failure)

        if self.archive_fallback:
            if self.show_progress:
                print("Downloading source archive...")
            failure = self._download_archive()
            if failure is None:
                return SourceTree.from_path(self.vendor_dir, "archive")
            failures.append(failure)

        details = "\n".join(f"  - {failure}" for failure in failures)
        raise AcquisitionError(
            f"Unable to obtain whisper.cpp sources at {self.vendor_dir}: "
            "network or version-control tool unavailable. "
            "Please ensure git is installed and you have internet access.\n"
            f"{details}"
        )

    def _update_submodule(self) -> Optional[str]:
        try:
            submodule_path = os.path.relpath(self.vendor_dir, self.project_dir)
        except ValueError:
            # Different drive on Windows, can't be a submodule of this project
            return f"{self.vendor_dir} is outside {self.project_dir}"

        cmd = ["git", "submodule", "update", "--init", "--recursive", submodule_path]
        return self._run_git(cmd, "git submodule update", cwd=self.project_dir)

    def _clone(self) -> Optional[str]:
        temp_dir = self.workspace.clone_temp_dir
        self.file_ops.rmtree(temp_dir, ignore_errors=True)
        self.file_ops.makedirs(temp_dir.parent)

        cmd = ["git", "clone", "--depth", "1", self.repository_url, str(temp_dir)]
        failure = self._run_git(cmd, "git clone", cwd=temp_dir.parent)
        if failure is not None:
            return failure

        self._install(temp_dir)
        return None

    def _download_archive(self) -> Optional[str]:
        if not GitHubURLOptimizer.is_github_url(self.repository_url):
            return f"archive download needs a GitHub URL, got {self.repository_url}"

        downloader = self.downloader or ArchiveDownloader()
        branch = GitHubURLOptimizer.detect_default_branch(self.repository_url)
        url = GitHubURLOptimizer.archive_url(self.repository_url, branch)

        extract_dir = self.workspace.clone_temp_dir
        self.file_ops.rmtree(extract_dir, ignore_errors=True)
        try:
            source_root = downloader.download_and_extract(
                url,
                self.workspace.downloads_dir,
                extract_dir,
                archive_name=f"whisper.cpp-{branch}.zip",
                show_progress=self.show_progress,
            )
        except (DownloadError, ExtractionError) as e:
            return str(e)

        self._install(source_root)
        self.file_ops.rmtree(extract_dir, ignore_errors=True)
        return None

    def _install(self, fetched: Path) -> None:
        """Move a freshly fetched tree to the vendor location.

        Raises:
            AcquisitionError: If neither rename nor copy succeeds. The
                fetched tree is left where it is.
        """
        target = self.vendor_dir
        self.file_ops.rmtree(target, ignore_errors=True)
        self.file_ops.makedirs(target.parent)

        try:
            self.file_ops.rename(fetched, target)
            return
        except OSError as e:
            logging.info(f"Renaming {fetched} to {target} failed ({e}), copying instead")

        try:
            self.file_ops.copytree(fetched, target)
        except (OSError, shutil.Error) as e:
            raise AcquisitionError(
                f"Fetched whisper.cpp sources at {fetched} could not be copied to {target}: {e}"
            ) from e
        self.file_ops.rmtree(fetched, ignore_errors=True)

    def _run_git(self, cmd: List[str], label: str, cwd: Path) -> Optional[str]:
        try:
            result = self.runner.run(cmd, cwd=cwd, env=self.environment)
        except OSError as e:
            return f"{label} could not start: {e}. Please ensure git is installed."
        if not result.ok:
            return f"{label} failed (exit code {result.returncode}): {result.output_tail(5)}"
        return None
