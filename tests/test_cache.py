"""Tests for the proxy cache."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from sample_types import (
    Color,
    NoSubclasses,
    Plain,
    Sample,
    Sealed,
    Shelf,
    Shelf_Item,
    make_service,
)

from proxygen.cache import (
    CacheEntry,
    CacheStats,
    ProxyCache,
    clear_cache,
    get_cache,
    resolve_proxy_class,
)
from proxygen.config import ProxyConfig
from proxygen.generator import ProxySourceGenerator
from proxygen.loader import ProxyLoader
from proxygen.strategies import DelegatingStrategy, FunctionStrategy


def delegating():
    return ProxySourceGenerator(DelegatingStrategy())


class TestCacheEntry:
    """Tests for CacheEntry."""

    def test_create_entry(self):
        entry = CacheEntry(value=Sample, target=Sample)

        assert entry.value is Sample
        assert entry.proxied
        assert entry.hits == 0

    def test_touch_updates_hits(self):
        entry = CacheEntry(value=Sample, target=Sample)
        entry.touch()

        assert entry.hits == 1


class TestCacheStats:
    """Tests for CacheStats."""

    def test_hit_rate_zero(self):
        assert CacheStats().hit_rate == 0.0

    def test_hit_rate_calculation(self):
        assert CacheStats(hits=3, misses=1).hit_rate == 0.75

    def test_to_dict(self):
        result = CacheStats(hits=4, misses=2, compilations=2, fallbacks=1, entries=2).to_dict()

        assert result["compilations"] == 2
        assert result["fallbacks"] == 1
        assert "hit_rate" in result


class TestProxyCache:
    """Tests for ProxyCache."""

    def test_resolves_subclass(self):
        cache = ProxyCache(ProxyLoader())

        proxy = cache.resolve(Sample, "", delegating())

        assert proxy is not Sample
        assert issubclass(proxy, Sample)
        assert proxy.__name__ == "SampleProxy"
        assert proxy.__module__ == "sample_types"

    def test_second_resolve_hits_cache(self):
        cache = ProxyCache(ProxyLoader())

        first = cache.resolve(Sample, "", delegating())
        second = cache.resolve(Sample, "", delegating())

        assert first is second
        assert cache.stats.compilations == 1
        assert cache.stats.hits == 1
        assert cache.stats.misses == 1

    def test_prefix_gives_separate_entry(self):
        cache = ProxyCache(ProxyLoader())

        plain = cache.resolve(Sample, "", delegating())
        traced = cache.resolve(Sample, "Traced", delegating())

        assert plain is not traced
        assert "sample_types.TracedSampleProxy" in cache
        assert len(cache) == 2

    def test_entry_keeps_source(self):
        cache = ProxyCache(ProxyLoader())
        cache.resolve(Plain, "", delegating())

        entry = cache.entry("sample_types.PlainProxy")

        assert entry.proxied
        assert "class PlainProxy(Plain):" in entry.source

    def test_final_target_not_proxied(self, caplog):
        caplog.set_level(logging.WARNING, logger="proxygen")
        cache = ProxyCache(ProxyLoader())

        assert cache.resolve(Sealed, "", delegating()) is Sealed
        assert cache.resolve(Color, "", delegating()) is Color
        assert cache.stats.compilations == 0
        assert cache.stats.fallbacks == 2
        assert "class is final" in caplog.text
        assert len(cache) == 0

    def test_compile_failure_falls_back(self, caplog):
        caplog.set_level(logging.WARNING, logger="proxygen")
        cache = ProxyCache(ProxyLoader())
        broken = ProxySourceGenerator(FunctionStrategy(lambda op, call: "return ("))

        proxy = cache.resolve(Plain, "", broken)

        assert proxy is Plain
        assert cache.stats.fallbacks == 1
        assert not cache.entry("sample_types.PlainProxy").proxied
        assert "Compilation of sample_types.PlainProxy failed" in caplog.text

    def test_fallback_is_cached(self):
        cache = ProxyCache(ProxyLoader())
        broken = ProxySourceGenerator(FunctionStrategy(lambda op, call: "return ("))

        cache.resolve(Plain, "", broken)
        cache.resolve(Plain, "", broken)

        assert cache.stats.compilations == 1

    def test_load_failure_falls_back(self):
        cache = ProxyCache(ProxyLoader())

        assert cache.resolve(NoSubclasses, "", delegating()) is NoSubclasses
        assert cache.stats.fallbacks == 1

    def test_clear(self):
        cache = ProxyCache(ProxyLoader())
        cache.resolve(Sample, "", delegating())

        cache.clear()

        assert len(cache) == 0
        assert cache.stats.compilations == 0

    def test_clear_rebuilds_with_new_strategy(self):
        cache = ProxyCache(ProxyLoader())
        first = cache.resolve(Plain, "", delegating())

        cache.clear()
        stub = ProxySourceGenerator(FunctionStrategy(lambda op, call: "return 'stub'"))
        second = cache.resolve(Plain, "", stub)

        assert "sample_types.PlainProxy" in cache.loader
        assert second is not first
        assert second().ping() == "stub"

    def test_same_named_local_classes(self):
        cache = ProxyCache(ProxyLoader())
        hello, hi = make_service("Hello"), make_service("Hi")

        hello_proxy = cache.resolve(hello, "", delegating())
        hi_proxy = cache.resolve(hi, "", delegating())

        assert hello_proxy is not hi_proxy
        assert issubclass(hello_proxy, hello)
        assert issubclass(hi_proxy, hi)
        assert not issubclass(hi_proxy, hello)
        assert cache.stats.compilations == 2

    def test_name_taken_by_other_class(self, caplog):
        caplog.set_level(logging.WARNING, logger="proxygen")
        cache = ProxyCache(ProxyLoader())

        nested = cache.resolve(Shelf.Item, "", delegating())
        top_level = cache.resolve(Shelf_Item, "", delegating())

        assert issubclass(nested, Shelf.Item)
        assert top_level is Shelf_Item
        assert cache.stats.fallbacks == 1
        assert "Proxy name of sample_types.Shelf_Item is taken" in caplog.text


def slow_generator():
    def body(operation, delegate_call):
        time.sleep(0.01)
        return f"return {delegate_call}"

    return ProxySourceGenerator(FunctionStrategy(body))


class TestConcurrentResolution:
    """Tests for concurrent first access."""

    def resolve_concurrently(self, cache, config):
        barrier = threading.Barrier(8)
        generator = slow_generator()

        def resolve():
            barrier.wait()
            return cache.resolve(Sample, "Concurrent", generator, config=config)

        with ThreadPoolExecutor(max_workers=8) as pool:
            futures = [pool.submit(resolve) for _ in range(8)]
            return [f.result() for f in futures]

    def test_single_flight_compiles_once(self):
        cache = ProxyCache(ProxyLoader())

        results = self.resolve_concurrently(cache, ProxyConfig(single_flight=True))

        assert len(set(results)) == 1
        assert results[0] is not Sample
        assert cache.stats.compilations == 1

    def test_without_single_flight_all_agree(self):
        cache = ProxyCache(ProxyLoader())

        results = self.resolve_concurrently(cache, ProxyConfig(single_flight=False))

        assert len(set(results)) == 1
        assert cache.stats.compilations >= 1


class TestGlobalCache:
    """Tests for the process-wide cache."""

    def test_get_cache_shared(self):
        assert get_cache() is get_cache()

    def test_resolve_proxy_class_default_strategy(self):
        proxy = resolve_proxy_class(Plain)

        assert issubclass(proxy, Plain)
        assert proxy().ping() == "pong"
        assert resolve_proxy_class(Plain) is proxy

    def test_clear_cache_forgets_loaded_classes(self):
        proxy = resolve_proxy_class(Plain)

        clear_cache()

        assert len(get_cache()) == 0
        assert "sample_types.PlainProxy" not in get_cache().loader
        assert resolve_proxy_class(Plain) is not proxy
