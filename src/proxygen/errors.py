"""Error types for proxy synthesis.

Categorizes failures of the proxy pipeline. Compilation, loading and
non-subclassable targets are recoverable: the factory falls back to the
original class. Resolution and instantiation failures reach the caller.

Usage:
    from proxygen.errors import ProxyError, NoMatchingInitializerError

    try:
        factory.new_instance("x")
    except NoMatchingInitializerError as e:
        print(e.to_result().to_compact())
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from proxygen.compiler import Diagnostic


class ErrorCategory(Enum):
    """Categories of errors for appropriate handling."""

    COMPILE = auto()  # Generated source rejected by compile()
    LOAD = auto()  # Executing compiled code failed
    NOT_SUBCLASSABLE = auto()  # Final or sealed target
    RESOLUTION = auto()  # No initializer matches the arguments
    INSTANTIATION = auto()  # The initializer itself raised
    CONFIG = auto()  # Configuration problems
    INTERNAL = auto()  # Unexpected internal errors


@dataclass
class ErrorResult:
    """Structured error result with context and suggestions."""

    category: ErrorCategory
    message: str
    original: Exception | None = None
    suggestion: str | None = None
    context: dict[str, Any] | None = None
    recoverable: bool = True

    def to_compact(self) -> str:
        """Format as compact string."""
        parts = [f"[{self.category.name}] {self.message}"]
        if self.suggestion:
            parts.append(f"  Try: {self.suggestion}")
        return "\n".join(parts)


class ProxyError(Exception):
    """Base exception for proxygen with structured error handling."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        suggestion: str | None = None,
        context: dict[str, Any] | None = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.category = category
        self.suggestion = suggestion
        self.context = context or {}
        self.recoverable = recoverable

    def to_result(self) -> ErrorResult:
        """Convert to ErrorResult."""
        return ErrorResult(
            category=self.category,
            message=str(self),
            original=self,
            suggestion=self.suggestion,
            context=self.context,
            recoverable=self.recoverable,
        )


def _type_names(types: Sequence[type | None]) -> list[str]:
    return ["None" if t is None else t.__qualname__ for t in types]


class CompileError(ProxyError):
    """Generated proxy source did not compile."""

    def __init__(self, name: str, diagnostics: Sequence[Diagnostic]):
        first = f": {diagnostics[0]}" if diagnostics else ""
        super().__init__(
            f"Failed to compile '{name}'{first}",
            category=ErrorCategory.COMPILE,
            suggestion="Check the text returned by the method body strategy",
            context={"name": name, "diagnostics": [str(d) for d in diagnostics]},
        )
        self.name = name
        self.diagnostics = tuple(diagnostics)


class LoadError(ProxyError):
    """Compiled proxy code raised while being executed."""

    def __init__(self, name: str, cause: BaseException):
        super().__init__(
            f"Failed to load '{name}': {cause!r}",
            category=ErrorCategory.LOAD,
            suggestion="The target may refuse subclasses in __init_subclass__",
            context={"name": name},
        )
        self.name = name


class NonSubclassableTargetError(ProxyError):
    """Target class cannot be extended."""

    def __init__(self, target: type):
        super().__init__(
            f"'{target.__module__}.{target.__qualname__}' class is final",
            category=ErrorCategory.NOT_SUBCLASSABLE,
            context={"target": target.__qualname__},
        )
        self.target = target


class NoMatchingInitializerError(ProxyError, TypeError):
    """No public initializer accepts the supplied argument types."""

    def __init__(self, target: type, argument_types: Sequence[type | None]):
        names = _type_names(argument_types)
        super().__init__(
            f"There is no public initializer for args {names} at "
            f"{target.__module__}.{target.__qualname__} class",
            category=ErrorCategory.RESOLUTION,
            suggestion="Pass arguments matching one of the public initializers",
            context={"target": target.__qualname__, "argument_types": names},
            recoverable=False,
        )
        self.target = target
        self.argument_types = tuple(argument_types)


class InstantiationError(ProxyError):
    """The matched initializer raised while constructing an instance."""

    def __init__(self, target: type, argument_types: Sequence[type | None]):
        names = _type_names(argument_types)
        super().__init__(
            f"Failed to create '{target.__module__}.{target.__qualname__}' instance "
            f"by initializer with {names} args",
            category=ErrorCategory.INSTANTIATION,
            context={"target": target.__qualname__, "argument_types": names},
            recoverable=False,
        )
        self.target = target
        self.argument_types = tuple(argument_types)


class ConfigError(ProxyError):
    """Invalid proxygen configuration."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(
            message,
            category=ErrorCategory.CONFIG,
            suggestion="Check the [tool.proxygen] table or proxygen.toml",
            context=context,
        )
