"""Command Runner.

This module runs external tools (git, cmake, the C preprocessor) for the
rest of the build. Components receive a CommandRunner instance instead of
calling subprocess themselves, so tests can substitute a fake and assert on
the exact commands issued.

Design:
    - Wraps subprocess.run with captured text output
    - Optionally streams output to the console for long builds
    - Never raises on a non-zero exit; callers decide what failure means
    - Lets FileNotFoundError propagate when the executable is missing
"""

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Union

from .interrupt_utils import handle_keyboard_interrupt_properly

CommandArg = Union[str, Path]


@dataclass
class CommandResult:
    """Outcome of one external command."""

    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def output_tail(self, lines: int = 40) -> str:
        """Last lines of stderr, or stdout when stderr is empty."""
        text = self.stderr.strip() or self.stdout.strip()
        return "\n".join(text.splitlines()[-lines:])


class CommandRunner:
    """Runs external commands and reports their outcome."""

    def __init__(self, verbose: bool = False):
        """Initialize command runner.

        Args:
            verbose: Echo each command before running it
        """
        self.verbose = verbose

    def run(
        self,
        cmd: Sequence[CommandArg],
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        stream_output: bool = False,
    ) -> CommandResult:
        """Run a command to completion.

        Args:
            cmd: Executable and arguments
            cwd: Working directory (default: current directory)
            env: Complete environment for the child (default: inherited)
            stream_output: Print output live instead of capturing it

        Returns:
            CommandResult with exit status and captured output

        Raises:
            FileNotFoundError: If the executable cannot be found
            OSError: If the process cannot be started
        """
        args = [str(arg) for arg in cmd]

        if self.verbose:
            print(f"$ {' '.join(args)}")

        try:
            result = subprocess.run(
                args,
                cwd=str(cwd) if cwd is not None else None,
                env=dict(env) if env is not None else None,
                capture_output=not stream_output,
                text=True,
            )
        except KeyboardInterrupt as ke:
            handle_keyboard_interrupt_properly(ke)
            raise  # Never reached, but satisfies type checker

        return CommandResult(
            args=args,
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )
