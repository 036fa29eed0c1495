"""Runtime synthesis of proxy subclasses.

proxygen writes, compiles and loads a subclass of a target class that
overrides every overridable operation with a body supplied by a pluggable
method-body strategy:
- schema: Reflection over the target (initializers, operations, generics)
- generator: Source of the proxy subclass
- compiler: In-process compilation with diagnostics
- loader / cache: Defining proxy classes once per process
- resolver: Choosing the initializer for runtime arguments
- factory: Creating proxy instances
"""

from proxygen.cache import ProxyCache, clear_cache, get_cache, resolve_proxy_class
from proxygen.compiler import CompiledArtifact, Diagnostic, SourceCompiler
from proxygen.config import ProxyConfig, ResolutionPolicy, apply_config, get_config, set_config
from proxygen.errors import (
    CompileError,
    InstantiationError,
    LoadError,
    NoMatchingInitializerError,
    NonSubclassableTargetError,
    ProxyError,
)
from proxygen.factory import ProxyFactory
from proxygen.generator import ProxySourceGenerator, ProxySpec
from proxygen.loader import ProxyLoader
from proxygen.resolver import InitializerResolver
from proxygen.schema import Initializer, Operation, TypeSchema, private
from proxygen.strategies import (
    DelegatingStrategy,
    FunctionStrategy,
    MethodBodyStrategy,
    TracingStrategy,
    get_strategy,
    register_strategy,
)

__all__ = [
    "CompileError",
    "CompiledArtifact",
    "DelegatingStrategy",
    "Diagnostic",
    "FunctionStrategy",
    "Initializer",
    "InitializerResolver",
    "InstantiationError",
    "LoadError",
    "MethodBodyStrategy",
    "NoMatchingInitializerError",
    "NonSubclassableTargetError",
    "Operation",
    "ProxyCache",
    "ProxyConfig",
    "ProxyError",
    "ProxyFactory",
    "ProxyLoader",
    "ProxySourceGenerator",
    "ProxySpec",
    "ResolutionPolicy",
    "SourceCompiler",
    "TracingStrategy",
    "TypeSchema",
    "apply_config",
    "clear_cache",
    "get_cache",
    "get_config",
    "get_strategy",
    "private",
    "register_strategy",
    "resolve_proxy_class",
    "set_config",
]
