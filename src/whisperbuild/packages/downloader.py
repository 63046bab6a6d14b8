"""Source archive downloader with progress reporting.

Used when git is unavailable and the project opted into fetching the
whisper.cpp sources as a release archive instead.
"""

import tarfile
import zipfile
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests
from tqdm import tqdm


class DownloadError(Exception):
    """Raised when download fails."""

    pass


class ExtractionError(Exception):
    """Raised when archive extraction fails."""

    pass


class ArchiveDownloader:
    """Downloads source archives and unpacks them."""

    def __init__(self, chunk_size: int = 8192, timeout: int = 30):
        """Initialize downloader.

        Args:
            chunk_size: Size of chunks read from the response
            timeout: Connect/read timeout in seconds
        """
        self.chunk_size = chunk_size
        self.timeout = timeout

    def download(self, url: str, dest_path: Path, show_progress: bool = True) -> Path:
        """Download a file from a URL.

        The file is written next to dest_path under a .part suffix and only
        renamed into place once complete.

        Args:
            url: URL to download from
            dest_path: Destination file path
            show_progress: Whether to show a progress bar

        Returns:
            Path to the downloaded file

        Raises:
            DownloadError: If the request fails or the file cannot be written
        """
        dest_path = Path(dest_path)
        part_file = dest_path.with_suffix(dest_path.suffix + ".part")
        progress_bar = None

        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            response = requests.get(url, stream=True, timeout=self.timeout)
            response.raise_for_status()

            total_size = int(response.headers.get("content-length", 0))
            if show_progress:
                progress_bar = tqdm(
                    total=total_size or None,
                    unit="B",
                    unit_scale=True,
                    unit_divisor=1024,
                    desc=f"Downloading {Path(urlparse(url).path).name}",
                )

            with open(part_file, "wb") as f:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if chunk:
                        f.write(chunk)
                        if progress_bar:
                            progress_bar.update(len(chunk))

            part_file.replace(dest_path)
            return dest_path

        except (requests.RequestException, OSError) as e:
            if part_file.is_file():
                part_file.unlink()
            raise DownloadError(f"Failed to download {url}: {e}") from e
        finally:
            if progress_bar:
                progress_bar.close()

    def extract_archive(
        self, archive_path: Path, dest_dir: Path, show_progress: bool = True
    ) -> Path:
        """Extract a .zip or .tar.* archive into dest_dir.

        Args:
            archive_path: Path to the archive file
            dest_dir: Destination directory for extraction
            show_progress: Whether to print a status line

        Returns:
            The single top-level directory of the archive if it has one,
            otherwise dest_dir

        Raises:
            ExtractionError: If extraction fails
        """
        archive_path = Path(archive_path)
        dest_dir = Path(dest_dir)

        if not archive_path.exists():
            raise ExtractionError(f"Archive not found: {archive_path}")

        dest_dir.mkdir(parents=True, exist_ok=True)

        if show_progress:
            print(f"Extracting {archive_path.name}...")

        try:
            if archive_path.suffix == ".zip":
                with zipfile.ZipFile(archive_path, "r") as zip_file:
                    zip_file.extractall(dest_dir)
            elif archive_path.name.endswith((".tar.gz", ".tgz", ".tar.bz2", ".tar.xz")):
                with tarfile.open(archive_path, "r:*") as tar:
                    if hasattr(tarfile, "data_filter"):
                        tar.extractall(dest_dir, filter="data")
                    else:
                        tar.extractall(dest_dir)
            else:
                raise ExtractionError(
                    f"Unsupported archive format: {archive_path.name}"
                )
        except (OSError, zipfile.BadZipFile, tarfile.TarError) as e:
            raise ExtractionError(f"Failed to extract {archive_path}: {e}") from e

        entries = list(dest_dir.iterdir())
        if len(entries) == 1 and entries[0].is_dir():
            return entries[0]
        return dest_dir

    def download_and_extract(
        self,
        url: str,
        downloads_dir: Path,
        extract_dir: Path,
        archive_name: Optional[str] = None,
        show_progress: bool = True,
    ) -> Path:
        """Download an archive (reusing a cached copy) and extract it.

        Args:
            url: URL to download from
            downloads_dir: Directory that keeps downloaded archives
            extract_dir: Fresh directory to extract into
            archive_name: File name to store the archive under
                (default: last path component of the URL)
            show_progress: Whether to show progress

        Returns:
            Path to the extracted source root
        """
        archive_path = Path(downloads_dir) / (archive_name or Path(urlparse(url).path).name)

        if not archive_path.exists():
            self.download(url, archive_path, show_progress)
        elif show_progress:
            print(f"Using cached {archive_path.name}")

        return self.extract_archive(archive_path, extract_dir, show_progress)
