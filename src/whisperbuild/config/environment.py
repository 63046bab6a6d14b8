"""Immutable snapshot of the process environment.

The build reads the environment exactly once, when the pipeline starts, and
hands the frozen snapshot to every component that needs an environment value.
No component consults os.environ directly, which keeps planning a pure
function of its inputs and lets tests build snapshots from plain dicts.
"""

import os
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Iterator, List, Optional, Tuple


class EnvironmentSnapshot(Mapping):
    """Read-only mapping of environment variable names to values."""

    def __init__(self, values: Optional[Mapping] = None):
        """Initialize snapshot.

        Args:
            values: Variables to capture. The mapping is copied.
        """
        self._values = MappingProxyType(dict(values or {}))

    @classmethod
    def from_os_environ(cls) -> "EnvironmentSnapshot":
        """Capture the current process environment."""
        return cls(os.environ)

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"EnvironmentSnapshot({len(self._values)} variables)"

    def is_set(self, name: str) -> bool:
        """Return True if the variable is present, even when empty."""
        return name in self._values

    def get_path(self, name: str) -> Optional[Path]:
        """Return a variable as a Path, or None when unset or empty.

        Args:
            name: Variable name

        Returns:
            Path built from the variable value, or None
        """
        value = self._values.get(name)
        if not value:
            return None
        return Path(value)

    def with_prefixes(
        self, prefixes: Iterable[str], exclude: Iterable[str] = ()
    ) -> List[Tuple[str, str]]:
        """Collect variables whose names start with any of the given prefixes.

        Args:
            prefixes: Name prefixes to match (e.g. "WHISPER_", "CMAKE_")
            exclude: Exact names to leave out

        Returns:
            (name, value) pairs sorted by name
        """
        prefixes = tuple(prefixes)
        excluded = set(exclude)
        return sorted(
            (name, value)
            for name, value in self._values.items()
            if name.startswith(prefixes) and name not in excluded
        )
