"""In-process compilation of generated proxy source.

``SourceCompiler.compile`` turns one source unit into a code object using
the built-in ``compile()``. It never raises: problems are collected as
``Diagnostic`` records, logged, and reported as a ``None`` result.

Usage:
    compiler = SourceCompiler()
    artifact = compiler.compile("pkg.mod.ServiceProxy", source, namespace)
    if artifact is None:
        ...  # fall back to the original class
"""

from __future__ import annotations

import linecache
import logging
import warnings
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import CodeType
from typing import Any

from proxygen.errors import CompileError
from proxygen.logging import get_logger

logger = logging.getLogger(__name__)
_log = get_logger("compiler")

# Errors compile() reports for bad input, besides SyntaxError
_COMPILE_ERRORS = (SyntaxError, ValueError, OverflowError, RecursionError)


class Severity(Enum):
    """Severity of a compile diagnostic."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """A single compiler message."""

    message: str
    severity: Severity
    file: str | None = None
    line: int | None = None
    column: int | None = None
    code: str | None = None  # e.g. "SyntaxError", "SyntaxWarning"
    text: str | None = None  # Offending source line

    def __str__(self) -> str:
        parts = []
        if self.file:
            loc = self.file
            if self.line:
                loc += f":{self.line}"
                if self.column:
                    loc += f":{self.column}"
            parts.append(loc)
        if self.code:
            parts.append(f"[{self.code}]")
        parts.append(self.message)
        return " ".join(parts)

    @classmethod
    def from_exception(cls, error: BaseException, filename: str) -> Diagnostic:
        if isinstance(error, SyntaxError):
            return cls(
                message=error.msg,
                severity=Severity.ERROR,
                file=filename,
                line=error.lineno,
                column=error.offset,
                code=type(error).__name__,
                text=error.text.rstrip() if error.text else None,
            )
        return cls(
            message=str(error) or type(error).__name__,
            severity=Severity.ERROR,
            file=filename,
            code=type(error).__name__,
        )

    @classmethod
    def from_warning(cls, message: warnings.WarningMessage) -> Diagnostic:
        return cls(
            message=str(message.message),
            severity=Severity.WARNING,
            file=str(message.filename),
            line=message.lineno,
            code=message.category.__name__,
        )


@dataclass(frozen=True)
class CompiledArtifact:
    """A compiled proxy ready to be loaded.

    Attributes:
        name: Binary name, e.g. "pkg.mod.ServiceProxy"
        code: Module-level code object defining the class
        source: Source the code was compiled from
        namespace: Symbols the code refers to
        filename: Pseudo file name used in code objects and tracebacks
        diagnostics: Warnings emitted while compiling
    """

    name: str
    code: CodeType
    source: str
    namespace: dict[str, Any] = field(default_factory=dict, compare=False)
    filename: str = ""
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def simple_name(self) -> str:
        return self.name.rpartition(".")[2]


def source_filename(name: str) -> str:
    return f"<proxygen {name}>"


class SourceCompiler:
    """Compiles generated source units."""

    def __init__(self, dump_source_dir: Path | None = None):
        self.dump_source_dir = dump_source_dir

    def compile(
        self,
        name: str,
        source: str,
        namespace: dict[str, Any] | None = None,
    ) -> CompiledArtifact | None:
        """Compile ``source`` defining the class ``name``.

        Returns:
            The artifact, or None when compilation failed
        """
        try:
            return self.compile_or_raise(name, source, namespace)
        except CompileError as e:
            for diagnostic in e.diagnostics:
                logger.warning("Compilation of %s failed: %s", name, diagnostic)
            return None

    def compile_or_raise(
        self,
        name: str,
        source: str,
        namespace: dict[str, Any] | None = None,
    ) -> CompiledArtifact:
        """Compile ``source``, raising CompileError with its diagnostics."""
        filename = source_filename(name)
        self._dump(name, source)

        with _log.timed("compile", name=name):
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always")
                try:
                    code = compile(source, filename, "exec", dont_inherit=True)
                except _COMPILE_ERRORS as e:
                    raise CompileError(
                        name, [Diagnostic.from_exception(e, filename)]
                    ) from e

        diagnostics = tuple(Diagnostic.from_warning(w) for w in caught)
        for diagnostic in diagnostics:
            logger.debug("Compiling %s: %s", name, diagnostic)

        linecache.cache[filename] = (len(source), None, source.splitlines(True), filename)
        return CompiledArtifact(
            name=name,
            code=code,
            source=source,
            namespace=dict(namespace or {}),
            filename=filename,
            diagnostics=diagnostics,
        )

    def _dump(self, name: str, source: str) -> None:
        if self.dump_source_dir is None:
            return
        path = self.dump_source_dir / f"{name}.py"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(source)
        except OSError as e:
            logger.warning("Could not write source of %s to %s: %s", name, path, e)
        else:
            logger.debug("Wrote source of %s to %s", name, path)
