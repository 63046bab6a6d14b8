"""Unit tests for archive downloads and GitHub URL handling."""

import tarfile
import zipfile
from unittest.mock import MagicMock, Mock, patch

import pytest
import requests

from whisperbuild.packages import (
    ArchiveDownloader,
    DownloadError,
    ExtractionError,
    GitHubURLOptimizer,
)


def _response(chunks, content_length=None):
    response = MagicMock()
    response.headers = {"content-length": str(content_length)} if content_length else {}
    response.iter_content.return_value = chunks
    response.raise_for_status.return_value = None
    return response


class TestArchiveDownloader:
    """Test cases for ArchiveDownloader."""

    @patch("whisperbuild.packages.downloader.requests.get")
    def test_download(self, mock_get, tmp_path):
        """Test that chunks are written to the destination file."""
        mock_get.return_value = _response([b"abc", b"", b"def"], content_length=6)
        dest = tmp_path / "downloads" / "archive.zip"

        result = ArchiveDownloader().download("https://example.com/archive.zip", dest, show_progress=False)

        assert result == dest
        assert dest.read_bytes() == b"abcdef"
        assert not (tmp_path / "downloads" / "archive.zip.part").exists()
        mock_get.assert_called_once_with("https://example.com/archive.zip", stream=True, timeout=30)

    @patch("whisperbuild.packages.downloader.requests.get")
    def test_download_failure(self, mock_get, tmp_path):
        """Test that request errors become DownloadError."""
        mock_get.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(DownloadError, match="connection refused"):
            ArchiveDownloader().download("https://example.com/a.zip", tmp_path / "a.zip", show_progress=False)
        assert not (tmp_path / "a.zip").exists()

    @patch("whisperbuild.packages.downloader.tqdm")
    @patch("whisperbuild.packages.downloader.requests.get")
    def test_download_write_failure(self, mock_get, mock_tqdm, tmp_path):
        """Test that local I/O errors become DownloadError and close the progress bar."""
        mock_get.return_value = _response([b"abc"], content_length=3)
        dest = tmp_path / "a.zip"
        (tmp_path / "a.zip.part").mkdir()

        with pytest.raises(DownloadError, match="Failed to download"):
            ArchiveDownloader().download("https://example.com/a.zip", dest)

        mock_tqdm.return_value.close.assert_called_once()
        assert not dest.exists()

    def test_extract_zip_returns_top_level_directory(self, tmp_path):
        """Test that a single top-level directory is returned."""
        archive = tmp_path / "whisper.cpp-master.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("whisper.cpp-master/CMakeLists.txt", "project(whisper.cpp)")
            zf.writestr("whisper.cpp-master/include/whisper.h", "")

        root = ArchiveDownloader().extract_archive(archive, tmp_path / "out", show_progress=False)

        assert root == tmp_path / "out" / "whisper.cpp-master"
        assert (root / "CMakeLists.txt").is_file()

    @pytest.mark.parametrize("has_data_filter", [True, False])
    def test_extract_tarball(self, tmp_path, monkeypatch, has_data_filter):
        """Test tar extraction with and without tarfile's data filter."""
        if not has_data_filter:
            monkeypatch.delattr(tarfile, "data_filter", raising=False)
        elif not hasattr(tarfile, "data_filter"):
            pytest.skip("tarfile has no data filter on this interpreter")

        source = tmp_path / "src" / "whisper.cpp-v1.7.4"
        source.mkdir(parents=True)
        (source / "CMakeLists.txt").write_text("project(whisper.cpp)")
        archive = tmp_path / "whisper.cpp-v1.7.4.tar.gz"
        with tarfile.open(archive, "w:gz") as tar:
            tar.add(source, arcname="whisper.cpp-v1.7.4")

        root = ArchiveDownloader().extract_archive(archive, tmp_path / "out", show_progress=False)

        assert root == tmp_path / "out" / "whisper.cpp-v1.7.4"
        assert (root / "CMakeLists.txt").is_file()

    def test_extract_unsupported_format(self, tmp_path):
        """Test that unknown archive types are rejected."""
        archive = tmp_path / "sources.rar"
        archive.write_bytes(b"Rar!")
        with pytest.raises(ExtractionError, match="Unsupported archive format"):
            ArchiveDownloader().extract_archive(archive, tmp_path / "out", show_progress=False)

    def test_extract_corrupt_zip(self, tmp_path):
        """Test that a corrupt zip becomes ExtractionError."""
        archive = tmp_path / "broken.zip"
        archive.write_bytes(b"not a zip file")
        with pytest.raises(ExtractionError, match="Failed to extract"):
            ArchiveDownloader().extract_archive(archive, tmp_path / "out", show_progress=False)

    def test_download_and_extract_uses_cached_archive(self, tmp_path):
        """Test that an archive already in the downloads dir is not fetched again."""
        downloads = tmp_path / "downloads"
        downloads.mkdir()
        with zipfile.ZipFile(downloads / "whisper.cpp-main.zip", "w") as zf:
            zf.writestr("whisper.cpp-main/CMakeLists.txt", "")

        downloader = ArchiveDownloader()
        downloader.download = Mock()
        root = downloader.download_and_extract(
            "https://github.com/ggerganov/whisper.cpp/archive/refs/heads/main.zip",
            downloads,
            tmp_path / "extract",
            archive_name="whisper.cpp-main.zip",
            show_progress=False,
        )

        downloader.download.assert_not_called()
        assert root.name == "whisper.cpp-main"


class TestGitHubURLOptimizer:
    """Test cases for GitHubURLOptimizer."""

    def test_is_github_url(self):
        """Test GitHub URL detection."""
        assert GitHubURLOptimizer.is_github_url("https://github.com/ggerganov/whisper.cpp.git")
        assert not GitHubURLOptimizer.is_github_url("https://gitlab.com/foo/bar.git")

    def test_archive_url(self):
        """Test archive URL construction from a clone URL."""
        assert (
            GitHubURLOptimizer.archive_url("https://github.com/ggerganov/whisper.cpp.git/", "main")
            == "https://github.com/ggerganov/whisper.cpp/archive/refs/heads/main.zip"
        )

    def test_archive_url_rejects_other_hosts(self):
        """Test that non-GitHub URLs raise ValueError."""
        with pytest.raises(ValueError, match="Not a GitHub repository URL"):
            GitHubURLOptimizer.archive_url("https://example.com/whisper.cpp.git", "master")

    @patch("whisperbuild.packages.github_utils.requests.head")
    def test_detect_default_branch(self, mock_head):
        """Test that the first branch answering 200 wins."""
        mock_head.side_effect = [Mock(status_code=404), Mock(status_code=200)]
        assert GitHubURLOptimizer.detect_default_branch("https://github.com/a/b.git") == "main"

    @patch("whisperbuild.packages.github_utils.requests.head")
    def test_detect_default_branch_offline(self, mock_head):
        """Test the master default when no request succeeds."""
        mock_head.side_effect = requests.ConnectionError("offline")
        assert GitHubURLOptimizer.detect_default_branch("https://github.com/a/b.git") == "master"
