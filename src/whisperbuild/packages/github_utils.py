"""GitHub URL utilities for whisperbuild.

Converts a git clone URL of a GitHub repository into the URL of its zip
archive, which can be fetched over plain HTTPS without git.
"""

import logging
from urllib.parse import urlparse

import requests

from ..interrupt_utils import handle_keyboard_interrupt_properly


class GitHubURLOptimizer:
    """Maps GitHub repository URLs to zip archive downloads."""

    @staticmethod
    def is_github_url(url: str) -> bool:
        """Check if a URL points at a GitHub repository."""
        parsed = urlparse(url)
        return parsed.netloc.lower() in ("github.com", "www.github.com")

    @staticmethod
    def repository_url(url: str) -> str:
        """Strip a trailing slash and .git suffix from a clone URL.

        Example:
            https://github.com/ggerganov/whisper.cpp.git
            -> https://github.com/ggerganov/whisper.cpp
        """
        url = url.rstrip("/")
        if url.endswith(".git"):
            url = url[: -len(".git")]
        return url

    @classmethod
    def detect_default_branch(cls, url: str, timeout: int = 5) -> str:
        """Find out whether the repository's default branch is master or main.

        Makes HEAD requests against the archive URLs of both branches.

        Args:
            url: GitHub repository URL
            timeout: Request timeout in seconds

        Returns:
            'master' or 'main' (defaults to 'master' if neither answers)
        """
        base = cls.repository_url(url)
        for branch in ("master", "main"):
            try:
                response = requests.head(
                    f"{base}/archive/refs/heads/{branch}.zip",
                    timeout=timeout,
                    allow_redirects=True,
                )
            except KeyboardInterrupt as ke:
                handle_keyboard_interrupt_properly(ke)
                raise  # Never reached, but satisfies type checker
            except requests.RequestException as e:
                logging.debug(f"Branch probe for {branch} failed: {e}")
                continue
            if response.status_code == 200:
                return branch
        return "master"

    @classmethod
    def archive_url(cls, url: str, branch: str) -> str:
        """Zip archive URL for a branch of a GitHub repository.

        Raises:
            ValueError: If url is not a GitHub URL
        """
        if not cls.is_github_url(url):
            raise ValueError(f"Not a GitHub repository URL: {url}")
        return f"{cls.repository_url(url)}/archive/refs/heads/{branch}.zip"
