"""End-to-end tests for ProxyFactory."""

import logging
from numbers import Number

import pytest

from sample_types import (
    AsyncService,
    Box,
    Color,
    Fragile,
    IntBox,
    Locked,
    Money,
    Plain,
    Point,
    Registry,
    Sample,
    Sealed,
    make_service,
)

from proxygen import ProxyFactory
from proxygen.cache import get_cache
from proxygen.config import ProxyConfig, set_config
from proxygen.errors import InstantiationError, NoMatchingInitializerError
from proxygen.loader import ProxyLoader
from proxygen.schema import TypeSchema
from proxygen.strategies import DelegatingStrategy, FunctionStrategy, TracingStrategy


class TestProxyClass:
    """Tests for the synthesized class."""

    def test_proxy_is_strict_subclass(self):
        proxy = ProxyFactory(Sample, DelegatingStrategy()).proxy_class

        assert proxy is not Sample
        assert issubclass(proxy, Sample)

    def test_every_operation_overridden(self):
        proxy = ProxyFactory(Sample, DelegatingStrategy()).proxy_class

        for operation in TypeSchema(Sample).overridable_operations():
            assert operation.name in proxy.__dict__, operation.name

    def test_excluded_operations_inherited(self):
        proxy = ProxyFactory(Sample, DelegatingStrategy()).proxy_class

        assert "locked" not in proxy.__dict__
        assert "helper" not in proxy.__dict__
        assert proxy.helper() == "static"

    def test_final_target_returned_unchanged(self):
        factory = ProxyFactory(Sealed, DelegatingStrategy())

        assert factory.proxy_class is Sealed
        assert type(factory.new_instance()) is Sealed

    def test_enum_not_proxied(self):
        assert ProxyFactory(Color, DelegatingStrategy()).proxy_class is Color

    def test_same_class_compiled_once(self):
        first = ProxyFactory(Sample, DelegatingStrategy(), "Once")
        second = ProxyFactory(Sample, DelegatingStrategy(), "Once")

        assert first.proxy_class is second.proxy_class
        assert get_cache().stats.compilations == 1

    def test_prefix_in_name_and_loadable(self):
        factory = ProxyFactory(Sample, DelegatingStrategy(), "Traced")
        proxy = factory.proxy_class

        assert proxy.__name__ == "TracedSampleProxy"
        assert factory.binary_name == "sample_types.TracedSampleProxy"
        assert ProxyLoader.instance().load_class(factory.binary_name) is proxy

    def test_invalid_prefix(self):
        with pytest.raises(ValueError):
            ProxyFactory(Sample, DelegatingStrategy(), "not-valid")

    def test_rejects_non_class(self):
        with pytest.raises(TypeError):
            ProxyFactory(Sample(), DelegatingStrategy())

    def test_source(self):
        source = ProxyFactory(Plain, DelegatingStrategy()).source()

        assert "class PlainProxy(Plain):" in source

    def test_source_of_final_target(self):
        assert ProxyFactory(Sealed, DelegatingStrategy()).source() is None

    def test_same_named_local_classes(self):
        hello, hi = make_service("Hello"), make_service("Hi")

        first = ProxyFactory(hello, DelegatingStrategy()).new_instance("Ada")
        second = ProxyFactory(hi, DelegatingStrategy()).new_instance("Bob")

        assert isinstance(first, hello)
        assert isinstance(second, hi)
        assert type(second) is not hi
        assert second.greet() == "Hi, Bob"


class TestGetInitializer:
    """Tests for initializer lookup through the factory."""

    def test_int_and_number_share_initializer(self):
        factory = ProxyFactory(Sample, DelegatingStrategy())

        assert factory.get_initializer(int) == factory.get_initializer(Number)

    def test_bool_and_empty_are_distinct(self):
        factory = ProxyFactory(Sample, DelegatingStrategy())
        by_number = factory.get_initializer(Number)

        assert factory.get_initializer(bool) != by_number
        assert factory.get_initializer() != by_number
        assert factory.get_initializer() != factory.get_initializer(bool)

    def test_initializer_belongs_to_proxy(self):
        factory = ProxyFactory(Sample, DelegatingStrategy())

        assert factory.get_initializer(bool).owner is factory.proxy_class


class TestNewInstance:
    """Tests for creating proxy instances."""

    def test_instances_of_proxy(self):
        factory = ProxyFactory(Sample, DelegatingStrategy())

        for args in [(), (True,), (3,), (2.5,), (None,)]:
            instance = factory.new_instance(*args)
            assert type(instance) is factory.proxy_class
            assert isinstance(instance, Sample)

    def test_arguments_forwarded(self):
        instance = ProxyFactory(Sample, DelegatingStrategy()).new_instance(7)

        assert instance.arg == 7

    def test_delegated_operations(self):
        instance = ProxyFactory(Sample, DelegatingStrategy()).new_instance()

        assert instance.greet("Ada") == "Hello, Ada!"
        assert instance.total(1, 2, 3, scale=2) == 12
        assert instance.difference(5, 3) == 2
        assert instance.first(["a", "b"]) == "a"
        assert len(instance) == 3

    def test_declared_exception_propagates(self):
        instance = ProxyFactory(Sample, DelegatingStrategy()).new_instance()

        with pytest.raises(KeyError):
            instance.fetch("missing")
        assert "KeyError" in type(instance).fetch.__doc__

    def test_only_private_initializer(self):
        with pytest.raises(NoMatchingInitializerError):
            ProxyFactory(Locked, DelegatingStrategy()).new_instance()

    def test_too_many_arguments(self):
        with pytest.raises(NoMatchingInitializerError):
            ProxyFactory(Sample, DelegatingStrategy()).new_instance(1, 2)

    def test_initializer_failure_raises(self, caplog):
        caplog.set_level(logging.WARNING, logger="proxygen")
        factory = ProxyFactory(Fragile, DelegatingStrategy())

        with pytest.raises(InstantiationError) as exc_info:
            factory.new_instance(-1)

        assert isinstance(exc_info.value.__cause__, ValueError)
        assert "Failed to create FragileProxy instance" in caplog.text

    def test_initializer_failure_returns_none_when_configured(self):
        config = ProxyConfig(raise_on_instantiation_error=False)
        factory = ProxyFactory(Fragile, DelegatingStrategy(), config=config)

        assert factory.new_instance(-1) is None
        assert factory.new_instance(1).value == 1

    def test_generic_target(self):
        box = ProxyFactory(Box, DelegatingStrategy()).new_instance(3)

        assert box.get() == 3
        assert box.replace(4).get() == 4

    def test_parameterized_base(self):
        box = ProxyFactory(IntBox, DelegatingStrategy()).new_instance(5)

        assert isinstance(box, IntBox)
        assert box.get() == 5

    def test_new_based_target(self):
        point = ProxyFactory(Point, DelegatingStrategy()).new_instance(3, -4)

        assert isinstance(point, Point)
        assert point.norm() == 7

    def test_native_initializer(self):
        registry = ProxyFactory(Registry, DelegatingStrategy()).new_instance()
        registry["a"] = 1

        assert registry.describe() == "1 entries"

    def test_hash_survives_eq_override(self):
        money = ProxyFactory(Money, DelegatingStrategy()).new_instance(5)

        assert money == Money(5)
        assert isinstance(hash(money), int)

    @pytest.mark.asyncio
    async def test_async_operation(self):
        service = ProxyFactory(AsyncService, DelegatingStrategy()).new_instance()

        assert await service.fetch("key") == "KEY"
        assert service.name() == "service"


class TestStrategiesEndToEnd:
    """Tests for custom method bodies."""

    def test_tracing_strategy_logs_calls(self, caplog):
        caplog.set_level(logging.DEBUG, logger="proxygen.trace")
        instance = ProxyFactory(Plain, TracingStrategy(), "Traced").new_instance()

        assert instance.ping() == "pong"
        assert "TracedPlainProxy.ping called" in caplog.text

    def test_stub_strategy(self):
        stub = FunctionStrategy(lambda op, call: "return None")
        instance = ProxyFactory(Sample, stub, "Stub").new_instance()

        assert instance.greet("Ada") is None

    def test_strategy_symbols(self):
        calls = []
        recorder = FunctionStrategy(
            lambda op, call: f"_calls.append({op.name!r})\nreturn {call}",
            symbols={"_calls": calls},
        )
        instance = ProxyFactory(Plain, recorder, "Recorded").new_instance()

        instance.ping()
        instance.ping()

        assert calls == ["ping", "ping"]

    def test_broken_strategy_falls_back(self):
        factory = ProxyFactory(Plain, FunctionStrategy(lambda op, call: "return ("), "Broken")

        assert factory.proxy_class is Plain
        assert type(factory.new_instance()) is Plain

    def test_default_strategy_from_config(self):
        set_config(ProxyConfig(prefix="Configured", default_strategy="trace"))
        factory = ProxyFactory(Plain)

        assert isinstance(factory.strategy, TracingStrategy)
        assert factory.binary_name == "sample_types.ConfiguredPlainProxy"
