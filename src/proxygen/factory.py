"""Public entry point for creating proxy instances.

Usage:
    from proxygen import ProxyFactory, TracingStrategy

    factory = ProxyFactory(Service, TracingStrategy(), prefix="Traced")
    service = factory.new_instance("localhost", 8080)
    assert isinstance(service, Service)
"""

from __future__ import annotations

import logging
from typing import Any

from proxygen.cache import get_cache
from proxygen.config import ProxyConfig, get_config
from proxygen.errors import InstantiationError
from proxygen.generator import ProxySourceGenerator, proxy_binary_name
from proxygen.resolver import InitializerResolver
from proxygen.schema import Initializer
from proxygen.strategies import MethodBodyStrategy, get_strategy

logger = logging.getLogger(__name__)


class ProxyFactory:
    """Creates instances of the proxy of ``target``.

    The proxy class is synthesized on first use and shared through the
    process-wide cache by every factory with the same target and prefix.
    When the target cannot be proxied, instances of the target itself are
    created instead.

    Args:
        target: Class to proxy
        strategy: Supplies the body of every overriding operation; defaults
            to the configured ``default_strategy``
        prefix: Prepended to the proxy's class name; defaults to the
            configured prefix
        config: Settings; defaults to the process-wide configuration
    """

    def __init__(
        self,
        target: type,
        strategy: MethodBodyStrategy | None = None,
        prefix: str | None = None,
        *,
        config: ProxyConfig | None = None,
    ):
        if not isinstance(target, type):
            raise TypeError(f"Expected a class, got {target!r}")
        self.config = config or get_config()
        self.target = target
        self.strategy = strategy or get_strategy(self.config.default_strategy)
        self.prefix = self.config.prefix if prefix is None else prefix
        if self.prefix and not self.prefix.isidentifier():
            raise ValueError(f"Proxy prefix must be an identifier: {self.prefix!r}")
        self.generator = ProxySourceGenerator(self.strategy)
        self.resolver = InitializerResolver(self.config.resolution)

    def __repr__(self) -> str:
        return (
            f"ProxyFactory({self.target.__qualname__}, {self.strategy!r}, "
            f"prefix={self.prefix!r})"
        )

    @property
    def binary_name(self) -> str:
        return proxy_binary_name(self.target, self.prefix)

    @property
    def proxy_class(self) -> type:
        """The proxy class, or the target when it could not be proxied."""
        return get_cache().resolve(self.target, self.prefix, self.generator, config=self.config)

    def source(self) -> str | None:
        """Generated source of the proxy, or None when none was generated."""
        _ = self.proxy_class
        entry = get_cache().entry(self.binary_name)
        if entry is None or entry.target is not self.target:
            return None
        return entry.source

    def get_initializer(self, *argument_types: type | None) -> Initializer:
        """Initializer of the proxy class that accepts ``argument_types``.

        Raises:
            NoMatchingInitializerError: If no public initializer matches
        """
        return self.resolver.resolve(self.proxy_class, argument_types)

    def new_instance(self, *args: Any) -> Any:
        """Create an instance from positional ``args``.

        Raises:
            NoMatchingInitializerError: If no public initializer matches
            InstantiationError: If the initializer raised and
                ``raise_on_instantiation_error`` is set
        """
        argument_types = tuple(None if a is None else type(a) for a in args)
        initializer = self.get_initializer(*argument_types)
        try:
            return initializer(*args)
        except Exception as e:
            logger.warning(
                "Failed to create %s instance with %s args: %r",
                initializer.owner.__qualname__,
                [t.__qualname__ if t else None for t in argument_types],
                e,
            )
            if self.config.raise_on_instantiation_error:
                raise InstantiationError(initializer.owner, argument_types) from e
            return None
