"""Process-wide cache of proxy classes.

Maps each proxy binary name to the class resolved for it: the synthesized
proxy, or the target itself when synthesis failed. Once an entry exists,
every later lookup returns the same class without compiling again.

Usage:
    from proxygen.cache import resolve_proxy_class, get_cache

    cls = resolve_proxy_class(Service, "Traced")
    print(get_cache().stats.to_dict())
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any

from proxygen.compiler import SourceCompiler
from proxygen.config import ProxyConfig, get_config
from proxygen.errors import NonSubclassableTargetError
from proxygen.generator import ProxySourceGenerator, ProxySpec, proxy_binary_name
from proxygen.loader import ProxyLoader
from proxygen.schema import TypeSchema
from proxygen.strategies import get_strategy

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry[T]:
    """A resolved class with metadata."""

    value: T
    target: type
    source: str | None = None
    proxied: bool = True  # False when the entry holds the fallback target
    created: float = field(default_factory=time.time)
    hits: int = 0

    def touch(self) -> None:
        self.hits += 1


@dataclass
class CacheStats:
    """Statistics for cache performance."""

    hits: int = 0
    misses: int = 0
    compilations: int = 0
    fallbacks: int = 0
    entries: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "compilations": self.compilations,
            "fallbacks": self.fallbacks,
            "entries": self.entries,
            "hit_rate": f"{self.hit_rate:.2%}",
        }


class ProxyCache:
    """Binary name to proxy class, with compute-if-absent resolution."""

    def __init__(self, loader: ProxyLoader | None = None) -> None:
        self.loader = loader or ProxyLoader.instance()
        self._entries: dict[str, CacheEntry[type]] = {}
        self._name_locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()
        self._stats = CacheStats()

    @property
    def stats(self) -> CacheStats:
        """Get cache statistics."""
        self._stats.entries = len(self._entries)
        return self._stats

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def entry(self, name: str) -> CacheEntry[type] | None:
        return self._entries.get(name)

    def get(self, name: str) -> type | None:
        """Get the cached class for a binary name, counting the lookup."""
        entry = self._lookup(name)
        return entry.value if entry is not None else None

    def _lookup(self, name: str) -> CacheEntry[type] | None:
        entry = self._entries.get(name)
        with self._lock:
            if entry is None:
                self._stats.misses += 1
                return None
            entry.touch()
            self._stats.hits += 1
        return entry

    def resolve(
        self,
        target: type,
        prefix: str,
        generator: ProxySourceGenerator,
        *,
        config: ProxyConfig | None = None,
    ) -> type:
        """Return the proxy class of ``target``, creating it when absent.

        Final targets, and targets whose proxy fails to generate, compile or
        load, resolve to ``target`` itself.
        """
        config = config or get_config()
        schema = TypeSchema(target)
        if schema.is_final():
            logger.warning("%s", NonSubclassableTargetError(target).to_result().to_compact())
            with self._lock:
                self._stats.fallbacks += 1
            return target

        name = proxy_binary_name(target, prefix)
        cached = self._lookup(name)
        if cached is not None:
            return self._owned(cached, target)

        if not config.single_flight:
            entry = self._publish(name, self._build(schema, prefix, generator, config))
            return self._owned(entry, target)

        with self._name_lock(name):
            entry = self._entries.get(name)
            if entry is None:
                entry = self._publish(name, self._build(schema, prefix, generator, config))
            return self._owned(entry, target)

    def _owned(self, entry: CacheEntry[type], target: type) -> type:
        # Distinct classes can still share a proxy name, e.g. `A_B` and `A.B`
        if entry.target is target:
            return entry.value
        logger.warning(
            "Proxy name of %s.%s is taken by %s.%s; using the class itself",
            target.__module__,
            target.__qualname__,
            entry.target.__module__,
            entry.target.__qualname__,
        )
        with self._lock:
            self._stats.fallbacks += 1
        return target

    def _name_lock(self, name: str) -> threading.Lock:
        with self._lock:
            return self._name_locks.setdefault(name, threading.Lock())

    def _publish(self, name: str, entry: CacheEntry[type]) -> CacheEntry[type]:
        # First published entry wins
        with self._lock:
            return self._entries.setdefault(name, entry)

    def _build(
        self,
        schema: TypeSchema,
        prefix: str,
        generator: ProxySourceGenerator,
        config: ProxyConfig,
    ) -> CacheEntry[type]:
        target = schema.cls
        try:
            generated = generator.generate(ProxySpec.from_schema(schema, prefix))
        except (TypeError, ValueError) as e:
            # Signatures inspect cannot read, or strategy symbols clashing
            logger.warning("Cannot generate a proxy of %s: %s", schema.qualified_name, e)
            return self._fallback(target, None)

        with self._lock:
            self._stats.compilations += 1
        compiler = SourceCompiler(config.dump_source_dir)
        artifact = compiler.compile(generated.name, generated.source, generated.namespace)
        proxy = self.loader.define_class(artifact) if artifact is not None else None

        if proxy is None or not issubclass(proxy, target):
            return self._fallback(target, generated.source)
        return CacheEntry(value=proxy, target=target, source=generated.source)

    def _fallback(self, target: type, source: str | None) -> CacheEntry[type]:
        logger.warning("Using %s.%s in place of its proxy", target.__module__, target.__qualname__)
        with self._lock:
            self._stats.fallbacks += 1
        return CacheEntry(value=target, target=target, source=source, proxied=False)

    def clear(self) -> None:
        """Drop every entry, the classes the loader defined, and the statistics.

        The loader keeps the first class defined under each name, so it is
        cleared too; otherwise a rebuilt proxy would resolve to the old class.
        """
        with self._lock:
            self._entries.clear()
            self._name_locks.clear()
            self._stats = CacheStats()
        self.loader.clear()


# =============================================================================
# Global cache instance
# =============================================================================

_cache: ProxyCache | None = None
_cache_lock = threading.Lock()


def get_cache() -> ProxyCache:
    """Get the global proxy cache."""
    global _cache
    if _cache is None:
        with _cache_lock:
            if _cache is None:
                _cache = ProxyCache()
    return _cache


def set_cache(cache: ProxyCache) -> None:
    """Set the global proxy cache."""
    global _cache
    _cache = cache


def clear_cache() -> None:
    """Clear the global proxy cache and the classes its loader defined."""
    get_cache().clear()


def resolve_proxy_class(
    target: type,
    prefix: str = "",
    generator: ProxySourceGenerator | None = None,
    *,
    config: ProxyConfig | None = None,
) -> type:
    """Resolve the proxy class of ``target`` through the global cache."""
    config = config or get_config()
    if generator is None:
        generator = ProxySourceGenerator(get_strategy(config.default_strategy))
    return get_cache().resolve(target, prefix, generator, config=config)
