"""Unit tests for target platform handling."""

from unittest.mock import patch

import pytest

from whisperbuild.config import PlatformError, TargetDetector, TargetPlatform


class TestTargetPlatform:
    """Test cases for TargetPlatform."""

    @pytest.mark.parametrize(
        "triple,expected_os",
        [
            ("x86_64-unknown-linux-gnu", "linux"),
            ("aarch64-apple-darwin", "macos"),
            ("aarch64-apple-ios", "ios"),
            ("x86_64-pc-windows-msvc", "windows"),
            ("x86_64-pc-windows-gnu", "windows"),
            ("aarch64-linux-android", "android"),
            ("x86_64-unknown-freebsd", "freebsd"),
            ("x86_64-unknown-openbsd", "openbsd"),
        ],
    )
    def test_os(self, triple, expected_os):
        """Test OS family detection from the triple."""
        assert TargetPlatform(triple).os == expected_os

    @pytest.mark.parametrize(
        "triple,stdlib",
        [
            ("x86_64-pc-windows-msvc", None),
            ("aarch64-apple-darwin", "c++"),
            ("x86_64-unknown-freebsd", "c++"),
            ("x86_64-unknown-openbsd", "c++"),
            ("aarch64-linux-android", "c++_shared"),
            ("x86_64-unknown-linux-gnu", "stdc++"),
            ("x86_64-pc-windows-gnu", "stdc++"),
        ],
    )
    def test_cxx_stdlib(self, triple, stdlib):
        """Test the C++ runtime chosen for each target."""
        assert TargetPlatform(triple).cxx_stdlib == stdlib

    def test_flags(self):
        """Test the boolean helpers."""
        msvc = TargetPlatform("x86_64-pc-windows-msvc")
        assert msvc.is_windows and msvc.is_msvc and not msvc.is_gnu

        linux = TargetPlatform("x86_64-unknown-linux-gnu")
        assert linux.is_gnu and not linux.is_windows and not linux.is_apple

        mac = TargetPlatform("aarch64-apple-darwin")
        assert mac.is_apple and mac.is_macos
        assert mac.arch == "aarch64"

    def test_library_filenames(self):
        """Test static and shared library naming per platform."""
        windows = TargetPlatform("x86_64-pc-windows-msvc")
        mac = TargetPlatform("aarch64-apple-darwin")
        linux = TargetPlatform("x86_64-unknown-linux-gnu")

        assert windows.static_library_filename("ggml") == "ggml.lib"
        assert windows.shared_library_filename("ggml") == "ggml.lib"
        assert mac.static_library_filename("ggml") == "libggml.a"
        assert mac.shared_library_filename("ggml") == "libggml.dylib"
        assert linux.shared_library_filename("ggml") == "libggml.so"


class TestTargetDetector:
    """Test cases for TargetDetector."""

    @pytest.mark.parametrize(
        "system,machine,triple",
        [
            ("Linux", "x86_64", "x86_64-unknown-linux-gnu"),
            ("Linux", "aarch64", "aarch64-unknown-linux-gnu"),
            ("Linux", "armv7l", "armv7-unknown-linux-gnueabihf"),
            ("Darwin", "arm64", "aarch64-apple-darwin"),
            ("Darwin", "x86_64", "x86_64-apple-darwin"),
            ("Windows", "AMD64", "x86_64-pc-windows-msvc"),
            ("FreeBSD", "amd64", "x86_64-unknown-freebsd"),
        ],
    )
    def test_detect_host_triple(self, system, machine, triple):
        """Test host triple detection."""
        with patch("whisperbuild.config.target.platform.system", return_value=system), patch(
            "whisperbuild.config.target.platform.machine", return_value=machine
        ):
            assert TargetDetector.detect_host_triple() == triple

    def test_unsupported_system(self):
        """Test that unknown systems raise PlatformError."""
        with patch("whisperbuild.config.target.platform.system", return_value="Plan9"), patch(
            "whisperbuild.config.target.platform.machine", return_value="x86_64"
        ):
            with pytest.raises(PlatformError, match="Unsupported platform"):
                TargetDetector.detect_host_triple()

    def test_unsupported_architecture(self):
        """Test that unknown architectures raise PlatformError."""
        with patch("whisperbuild.config.target.platform.system", return_value="Linux"), patch(
            "whisperbuild.config.target.platform.machine", return_value="sparc64"
        ):
            with pytest.raises(PlatformError, match="Unsupported architecture"):
                TargetDetector.detect_host_triple()
