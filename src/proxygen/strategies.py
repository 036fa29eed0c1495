"""Method-body strategies.

A strategy decides what every overriding operation of a proxy does. It
receives the operation being overridden and the text of the call that runs
the original implementation, and returns the body of the override.

Strategies can be registered programmatically or via entry points.

Entry point group: proxygen.strategies

Example plugin registration in pyproject.toml:
    [project.entry-points."proxygen.strategies"]
    stub = "my_package.proxies:StubStrategy"
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from importlib.metadata import entry_points
from typing import Any, Protocol, runtime_checkable

from proxygen.schema import Operation

logger = logging.getLogger(__name__)


@runtime_checkable
class MethodBodyStrategy(Protocol):
    """Supplies the body of each overriding operation.

    ``body`` returns Python statements; the generator indents them and uses
    them as the complete body of the override. Strategies that refer to
    runtime objects from their bodies expose them through an optional
    ``symbols()`` method returning a name-to-object mapping.
    """

    def body(self, operation: Operation, delegate_call: str) -> str: ...


def strategy_symbols(strategy: MethodBodyStrategy) -> Mapping[str, Any]:
    symbols = getattr(strategy, "symbols", None)
    return symbols() if callable(symbols) else {}


class DelegatingStrategy:
    """Call the original implementation and return its result."""

    def body(self, operation: Operation, delegate_call: str) -> str:
        if operation.returns_value:
            return f"return {delegate_call}"
        return delegate_call

    def __repr__(self) -> str:
        return "DelegatingStrategy()"


class TracingStrategy:
    """Log every call, then delegate to the original implementation."""

    def __init__(self, logger_name: str = "proxygen.trace", level: int = logging.DEBUG):
        self.logger_name = logger_name
        self.level = level

    def symbols(self) -> dict[str, Any]:
        return {"_trace_logger": logging.getLogger(self.logger_name)}

    def body(self, operation: Operation, delegate_call: str) -> str:
        this = operation.self_name
        return "\n".join(
            [
                f"_trace_logger.log({self.level}, '%s.%s called', "
                f"{this}.__class__.__qualname__, {operation.name!r})",
                f"return {delegate_call}",
            ]
        )

    def __repr__(self) -> str:
        return f"TracingStrategy({self.logger_name!r}, level={self.level})"


class FunctionStrategy:
    """Adapt a plain ``(operation, delegate_call) -> str`` callable."""

    def __init__(
        self,
        func: Callable[[Operation, str], str],
        symbols: Mapping[str, Any] | None = None,
    ):
        self.func = func
        self._symbols = dict(symbols or {})

    def symbols(self) -> dict[str, Any]:
        return dict(self._symbols)

    def body(self, operation: Operation, delegate_call: str) -> str:
        return self.func(operation, delegate_call)


# =============================================================================
# Registry
# =============================================================================

_STRATEGIES: dict[str, Callable[[], MethodBodyStrategy]] = {}


def register_strategy(name: str, factory: Callable[[], MethodBodyStrategy]) -> None:
    """Register a strategy factory under ``name``."""
    _STRATEGIES[name] = factory


def list_strategies() -> list[str]:
    return sorted(_STRATEGIES)


def get_strategy(name: str) -> MethodBodyStrategy:
    """Create the strategy registered under ``name``.

    Raises:
        KeyError: If no strategy has that name
    """
    try:
        factory = _STRATEGIES[name]
    except KeyError:
        raise KeyError(
            f"Unknown strategy: {name!r} (available: {', '.join(list_strategies())})"
        ) from None
    return factory()


def _discover_entry_points() -> None:
    """Register strategies published by installed packages."""
    for ep in entry_points(group="proxygen.strategies"):
        # Builtins take precedence
        if ep.name in _STRATEGIES:
            continue
        try:
            register_strategy(ep.name, ep.load())
        except (ImportError, AttributeError) as e:
            logger.warning("Skipping strategy entry point %s: %s", ep.name, e)


register_strategy("delegate", DelegatingStrategy)
register_strategy("trace", TracingStrategy)
_discover_entry_points()
