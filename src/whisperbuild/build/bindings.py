"""Interface generation for the whisper.cpp C API.

This module produces the cffi declaration file (``bindings.h``) that the
Python side uses to call into the native library.

Design:
    - An aggregating header (wrapper.h plus capability specific ggml
      headers) is run through the C preprocessor with line markers kept
    - pycparser parses the preprocessed unit; only top-level declarations
      coming from the whisper.cpp and ggml include directories are kept
    - pycparser's C generator renders them back to text, and cffi
      validates the result by loading it with FFI.cdef()
    - Any failure along the way falls back to the pinned snapshot shipped
      in whisperbuild/data/bindings.h, with a warning
    - Skipping generation copies the pinned snapshot directly
"""

import logging
import os
import shlex
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

import cffi
from pycparser import c_ast, c_generator, c_parser
from pycparser.c_parser import ParseError

from ..command_runner import CommandRunner
from ..config.capabilities import CapabilitySet
from ..config.shared_ggml import SharedGgmlExports

DATA_DIR = Path(__file__).resolve().parent.parent / "data"
WRAPPER_HEADER = DATA_DIR / "wrapper.h"
FALLBACK_BINDINGS = DATA_DIR / "bindings.h"

# Compiler extensions pycparser does not understand, removed before parsing
PARSER_COMPAT_DEFINES: Tuple[str, ...] = (
    "__attribute__(x)=",
    "__extension__=",
    "__asm__(x)=",
    "__asm(x)=",
    "__restrict=",
    "__restrict__=",
    "__inline=",
    "__inline__=",
    "__declspec(x)=",
    "__cdecl=",
    "__THROW=",
    "_Nullable=",
    "_Nonnull=",
    "_Null_unspecified=",
    "__builtin_va_list=void*",
    "WHISPER_DEPRECATED(func,hint)=func",
    "GGML_DEPRECATED(func,hint)=func",
)

PREPROCESSOR_CANDIDATES = ("cc", "gcc", "clang")


class BindingGenerationFailure(Exception):
    """Raised when the C headers cannot be translated into cffi declarations."""

    pass


@dataclass
class BindingSet:
    """Generated or pinned cffi declarations for the native API."""

    content: str
    origin: str
    path: Path
    diagnostics: List[str] = field(default_factory=list)

    @property
    def is_fallback(self) -> bool:
        return self.origin == "fallback"


class BindingGenerator:
    """Generates the cffi declaration file for whisper.cpp.

    Example usage:
        generator = BindingGenerator()
        bindings = generator.generate(capabilities, staged_sources,
                                      workspace.bindings_path)
        ffi = cffi.FFI()
        ffi.cdef(bindings.content)
    """

    def __init__(self, runner: Optional[CommandRunner] = None, show_progress: bool = False):
        self.runner = runner or CommandRunner()
        self.show_progress = show_progress

    def generate(
        self, capabilities: CapabilitySet, source_root: Path, output_path: Path
    ) -> BindingSet:
        """Write bindings for the given capabilities to output_path.

        Args:
            capabilities: Enabled capabilities
            source_root: Root of the (staged) whisper.cpp sources
            output_path: Where to write the declarations

        Returns:
            BindingSet describing what was written

        Raises:
            ConfigurationError: If shared ggml mode has no include directory
        """
        if not capabilities.generate_bindings:
            if self.show_progress:
                print("      Binding generation disabled, using bundled bindings.h")
            return self._use_fallback(output_path)

        include_dirs = self.include_dirs(capabilities, Path(source_root))
        headers, defines = self.capability_headers(capabilities, include_dirs[0])

        try:
            content = self.translate(capabilities, include_dirs, headers, defines)
        except BindingGenerationFailure as e:
            logging.warning(f"Unable to generate bindings: {e}")
            logging.warning("Using bundled bindings.h, which may be out of date")
            return self._use_fallback(output_path, diagnostics=[str(e)])

        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(content, encoding="utf-8")
        return BindingSet(content=content, origin="generated", path=output_path)

    @staticmethod
    def include_dirs(capabilities: CapabilitySet, source_root: Path) -> List[Path]:
        """Header search path, ggml headers first.

        Shared mode takes the ggml headers from the external build; embedded
        mode from the vendored ggml inside the sources.
        """
        if capabilities.shared_ggml:
            exports = SharedGgmlExports.from_environment(capabilities.environment)
            ggml_include = exports.require_include_dir()
        else:
            ggml_include = source_root / "ggml" / "include"
        return [ggml_include, source_root, source_root / "include"]

    @staticmethod
    def capability_headers(
        capabilities: CapabilitySet, ggml_include: Path
    ) -> Tuple[List[Path], List[str]]:
        """Extra headers and preprocessor defines for enabled backends."""
        headers: List[Path] = []
        defines: List[str] = []
        if capabilities.enabled("metal"):
            headers.append(ggml_include / "ggml-metal.h")
        if capabilities.enabled("vulkan"):
            headers.append(ggml_include / "ggml-vulkan.h")
            defines.append("GGML_USE_VULKAN=1")
        return headers, defines

    def translate(
        self,
        capabilities: CapabilitySet,
        include_dirs: List[Path],
        headers: List[Path],
        defines: List[str],
    ) -> str:
        """Preprocess, parse, filter and validate the API declarations.

        Returns:
            cffi cdef source text

        Raises:
            BindingGenerationFailure: On any failure
        """
        preprocessor = self.find_preprocessor(capabilities)

        with tempfile.TemporaryDirectory(prefix="whisperbuild-") as temp_dir:
            aggregate = Path(temp_dir) / "whisperbuild_bindings.h"
            lines = [WRAPPER_HEADER.read_text(encoding="utf-8").rstrip("\n")]
            lines.extend(f'#include "{header.as_posix()}"' for header in headers)
            aggregate.write_text("\n".join(lines) + "\n", encoding="utf-8")

            cmd = list(preprocessor) + ["-E"]
            cmd += [f"-I{include_dir}" for include_dir in include_dirs]
            cmd += [f"-D{define}" for define in PARSER_COMPAT_DEFINES]
            cmd += [f"-D{define}" for define in defines]
            cmd.append(str(aggregate))

            try:
                result = self.runner.run(cmd, env=capabilities.environment)
            except OSError as e:
                raise BindingGenerationFailure(f"Failed to run {cmd[0]}: {e}") from e

        if not result.ok:
            raise BindingGenerationFailure(
                f"Preprocessor exited with code {result.returncode}: {result.output_tail(10)}"
            )

        cdef = self.extract_declarations(result.stdout, include_dirs)
        self.validate(cdef)
        return cdef

    @staticmethod
    def find_preprocessor(capabilities: CapabilitySet) -> List[str]:
        """C compiler used for preprocessing: $CC, else cc/gcc/clang on PATH.

        Raises:
            BindingGenerationFailure: If no compiler is available
        """
        env = capabilities.environment
        configured = env.get("CC")
        if configured:
            return shlex.split(configured)
        for name in PREPROCESSOR_CANDIDATES:
            found = shutil.which(name, path=env.get("PATH"))
            if found:
                return [found]
        raise BindingGenerationFailure(
            f"No C compiler found for preprocessing (tried {', '.join(PREPROCESSOR_CANDIDATES)}; set CC)"
        )

    @staticmethod
    def extract_declarations(preprocessed: str, include_dirs: List[Path]) -> str:
        """Keep the declarations that come from the given include directories.

        Function bodies (static inline helpers) and pragmas are dropped;
        cffi can only bind exported symbols.

        Raises:
            BindingGenerationFailure: If parsing fails or nothing is left
        """
        try:
            ast = c_parser.CParser().parse(preprocessed, filename="<preprocessed>")
        except ParseError as e:
            raise BindingGenerationFailure(f"Failed to parse preprocessed headers: {e}") from e

        roots = [os.path.normcase(os.path.abspath(d)) for d in include_dirs]
        generator = c_generator.CGenerator()
        declarations = []
        for node in ast.ext:
            if not isinstance(node, (c_ast.Decl, c_ast.Typedef)):
                continue
            if isinstance(node, c_ast.Decl) and "static" in node.storage:
                continue
            if node.coord is None or not _is_within(node.coord.file, roots):
                continue
            declarations.append(generator.visit(node) + ";")

        if not declarations:
            raise BindingGenerationFailure("No declarations found in the whisper.cpp headers")
        return "\n".join(declarations) + "\n"

    @staticmethod
    def validate(cdef: str) -> None:
        """Check that cffi accepts the declarations.

        Raises:
            BindingGenerationFailure: If cffi rejects them
        """
        try:
            cffi.FFI().cdef(cdef)
        except (cffi.CDefError, cffi.FFIError, NotImplementedError) as e:
            raise BindingGenerationFailure(f"cffi rejected the generated declarations: {e}") from e

    @staticmethod
    def _use_fallback(output_path: Path, diagnostics: Optional[List[str]] = None) -> BindingSet:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(FALLBACK_BINDINGS, output_path)
        return BindingSet(
            content=FALLBACK_BINDINGS.read_bytes().decode("utf-8"),
            origin="fallback",
            path=output_path,
            diagnostics=list(diagnostics or []),
        )


def _is_within(filename: Optional[str], roots: List[str]) -> bool:
    if not filename:
        return False
    path = os.path.normcase(os.path.abspath(filename))
    return any(path == root or path.startswith(root + os.sep) for root in roots)
