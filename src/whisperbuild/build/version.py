"""Extraction of the whisper.cpp version from its CMake project declaration."""

import logging
import re
from pathlib import Path
from typing import Optional

VERSION_VARIABLE = "WHISPER_CPP_VERSION"

_PROJECT_PATTERN = re.compile(r'^\s*project\(\s*"whisper\.cpp"\s+VERSION\s+([^\s)]+)')


def parse_version(text: str) -> Optional[str]:
    """Find the version in CMakeLists.txt content.

    Matches a declaration such as ``project("whisper.cpp" VERSION 1.7.4)``.

    Returns:
        The version string (e.g. '1.7.4'), or None if there is none
    """
    for line in text.splitlines():
        match = _PROJECT_PATTERN.match(line)
        if match:
            return match.group(1)
    return None


def extract_version(source_dir: Path) -> Optional[str]:
    """Read the whisper.cpp version from source_dir/CMakeLists.txt.

    Returns None when the file is missing, unreadable or has no declaration.
    """
    cmake_lists = Path(source_dir) / "CMakeLists.txt"
    try:
        text = cmake_lists.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logging.debug(f"Cannot read {cmake_lists}: {e}")
        return None
    return parse_version(text)
