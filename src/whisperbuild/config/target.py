"""Target platform description and host detection.

Targets are identified by a compiler target triple such as
``x86_64-unknown-linux-gnu``, ``aarch64-apple-darwin`` or
``x86_64-pc-windows-msvc``. Every platform-dependent decision in the build
(C++ runtime library, shared library naming, Apple frameworks, Windows-only
link libraries) is answered by TargetPlatform.

Supported host platforms for detection:
    - Windows: x86_64, i686, aarch64 (msvc)
    - Linux: x86_64, aarch64, armv7, i686 (gnu)
    - macOS: x86_64, arm64
    - FreeBSD: x86_64, aarch64
"""

import platform
from dataclasses import dataclass
from typing import Optional


class PlatformError(Exception):
    """Raised when platform detection fails or platform is unsupported."""

    pass


@dataclass(frozen=True)
class TargetPlatform:
    """Immutable view of a target triple."""

    triple: str

    @property
    def arch(self) -> str:
        return self.triple.split("-", 1)[0]

    @property
    def os(self) -> str:
        """Operating system family of the target.

        Returns:
            One of 'windows', 'macos', 'ios', 'android', 'freebsd',
            'openbsd', 'linux', or 'unknown'
        """
        triple = self.triple
        if "windows" in triple:
            return "windows"
        if "apple-darwin" in triple:
            return "macos"
        if "apple-ios" in triple:
            return "ios"
        if "android" in triple:
            return "android"
        if "freebsd" in triple:
            return "freebsd"
        if "openbsd" in triple:
            return "openbsd"
        if "linux" in triple:
            return "linux"
        return "unknown"

    @property
    def is_windows(self) -> bool:
        return self.os == "windows"

    @property
    def is_apple(self) -> bool:
        return "apple" in self.triple

    @property
    def is_macos(self) -> bool:
        return self.os == "macos"

    @property
    def is_msvc(self) -> bool:
        return self.triple.endswith("msvc")

    @property
    def is_gnu(self) -> bool:
        return "gnu" in self.triple

    @property
    def cxx_stdlib(self) -> Optional[str]:
        """C++ runtime library the native code must link against.

        MSVC links its runtime implicitly, so no library is named there.
        """
        if self.is_msvc:
            return None
        if self.is_apple or self.os in ("freebsd", "openbsd"):
            return "c++"
        if self.os == "android":
            return "c++_shared"
        return "stdc++"

    def static_library_filename(self, name: str) -> str:
        """File name of a static library on this target."""
        if self.is_windows:
            return f"{name}.lib"
        return f"lib{name}.a"

    def shared_library_filename(self, name: str) -> str:
        """File name the linker resolves for a shared library on this target.

        On Windows this is the import library, not the DLL.
        """
        if self.is_windows:
            return f"{name}.lib"
        if self.is_apple:
            return f"lib{name}.dylib"
        return f"lib{name}.so"

    def __str__(self) -> str:
        return self.triple


class TargetDetector:
    """Detects the target triple of the running host."""

    @staticmethod
    def detect_host_triple() -> str:
        """Build a target triple for the current host.

        Returns:
            Target triple (e.g. 'x86_64-unknown-linux-gnu')

        Raises:
            PlatformError: If the host platform is unsupported
        """
        system = platform.system().lower()
        arch = TargetDetector._normalize_arch(platform.machine().lower())

        if system == "windows":
            return f"{arch}-pc-windows-msvc"
        elif system == "linux":
            if arch == "armv7":
                return "armv7-unknown-linux-gnueabihf"
            return f"{arch}-unknown-linux-gnu"
        elif system == "darwin":
            return f"{arch}-apple-darwin"
        elif system == "freebsd":
            return f"{arch}-unknown-freebsd"
        else:
            raise PlatformError(f"Unsupported platform: {system} {arch}")

    @staticmethod
    def detect_host() -> TargetPlatform:
        """Detect the current host as a TargetPlatform."""
        return TargetPlatform(TargetDetector.detect_host_triple())

    @staticmethod
    def _normalize_arch(machine: str) -> str:
        if machine in ("x86_64", "amd64"):
            return "x86_64"
        elif machine in ("aarch64", "arm64"):
            return "aarch64"
        elif machine in ("i386", "i686", "x86"):
            return "i686"
        elif machine.startswith("arm"):
            return "armv7"
        else:
            raise PlatformError(f"Unsupported architecture: {machine}")
