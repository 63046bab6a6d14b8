"""Unit tests for whisper.cpp version extraction."""

from whisperbuild.build import extract_version, parse_version


class TestVersion:
    """Test cases for parse_version and extract_version."""

    def test_parse_version(self):
        """Test a typical project declaration."""
        text = (
            "cmake_minimum_required(VERSION 3.5)\n"
            'project("whisper.cpp" VERSION 1.7.4)\n'
            "set(SOVERSION 1)\n"
        )
        assert parse_version(text) == "1.7.4"

    def test_parse_version_with_extra_arguments(self):
        """Test declarations with spacing and trailing arguments."""
        assert parse_version('  project( "whisper.cpp"  VERSION 1.5.0 LANGUAGES C CXX)\n') == "1.5.0"

    def test_other_projects_are_ignored(self):
        """Test that only the whisper.cpp project declaration counts."""
        text = 'project("ggml" VERSION 0.9.0)\n# project("whisper.cpp" VERSION 9.9.9)\n'
        assert parse_version(text) is None

    def test_extract_version(self, tmp_path):
        """Test reading CMakeLists.txt from a source directory."""
        (tmp_path / "CMakeLists.txt").write_text('project("whisper.cpp" VERSION 1.7.6)\n')
        assert extract_version(tmp_path) == "1.7.6"

    def test_extract_version_missing_file(self, tmp_path):
        """Test that a missing CMakeLists.txt yields None."""
        assert extract_version(tmp_path) is None
