"""Source generation for proxy subclasses.

Given a target class, ``ProxySourceGenerator`` writes the Python source of a
subclass that forwards every public initializer to the target and overrides
every overridable operation with a body supplied by a method-body strategy.

Example output for ``Sample[T: Number]`` with the delegating strategy::

    \"\"\"Proxy of tests.sample_types.Sample.\"\"\"


    class SampleProxy[T: Number](Sample[T]):
        @overload
        def __init__(self) -> None: ...
        @overload
        def __init__(self, value: bool) -> None: ...
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)

        def scale(self, factor: T) -> T:
            return super().scale(factor)

Every object the source refers to is bound in a ``SymbolTable``; the table
becomes the namespace the compiled code is executed in.
"""

from __future__ import annotations

import inspect
import logging
import textwrap
import typing
from dataclasses import dataclass, field
from typing import Any

from proxygen.render import SymbolTable, TypeRenderer, bind_symbols, render_arguments
from proxygen.schema import (
    Initializer,
    InitializerKind,
    Operation,
    TypeParameter,
    TypeSchema,
)
from proxygen.strategies import MethodBodyStrategy, strategy_symbols

logger = logging.getLogger(__name__)

INDENT = "    "


def proxy_simple_name(target: type, prefix: str = "") -> str:
    """Class name of the proxy of ``target``.

    Nested classes are named after their whole qualified name
    (``Outer.Inner`` gives ``Outer_InnerProxy``). Classes defined inside a
    function also carry their id, since every call defines a new class under
    the same qualified name.
    """
    parts = target.__qualname__.split(".")
    name = "_".join(p for p in parts if p != "<locals>")
    if "<locals>" in parts:
        name = f"{name}_{id(target):x}"
    return f"{prefix}{name}Proxy"


def proxy_binary_name(target: type, prefix: str = "") -> str:
    """Module-qualified name of the proxy of ``target``."""
    return f"{target.__module__}.{proxy_simple_name(target, prefix)}"


@dataclass(frozen=True)
class ProxySpec:
    """Everything needed to write one proxy class."""

    target: type
    prefix: str = ""
    type_parameters: tuple[TypeParameter, ...] = ()
    initializers: tuple[Initializer, ...] = ()
    operations: tuple[Operation, ...] = ()

    @classmethod
    def from_schema(cls, schema: TypeSchema, prefix: str = "") -> ProxySpec:
        return cls(
            target=schema.cls,
            prefix=prefix,
            type_parameters=schema.type_parameters(),
            initializers=schema.initializers(include_private=True),
            operations=schema.overridable_operations(),
        )

    @property
    def module(self) -> str:
        return self.target.__module__

    @property
    def simple_name(self) -> str:
        return proxy_simple_name(self.target, self.prefix)

    @property
    def binary_name(self) -> str:
        return proxy_binary_name(self.target, self.prefix)

    @property
    def public_initializers(self) -> tuple[Initializer, ...]:
        return tuple(i for i in self.initializers if not i.private)


@dataclass(frozen=True)
class GeneratedSource:
    """Source text of a proxy plus the namespace it must execute in."""

    name: str
    simple_name: str
    source: str
    namespace: dict[str, Any] = field(default_factory=dict, compare=False)


def _indent(text: str, depth: int = 1) -> str:
    return textwrap.indent(text, INDENT * depth)


def _return_annotation(returns: Any, renderer: TypeRenderer) -> str:
    if returns is inspect.Signature.empty:
        return ""
    return f" -> {renderer.render(returns)}"


class ProxySourceGenerator:
    """Writes proxy source using a method-body strategy."""

    def __init__(self, strategy: MethodBodyStrategy):
        self.strategy = strategy

    def __repr__(self) -> str:
        return f"ProxySourceGenerator({self.strategy!r})"

    def generate(self, spec: ProxySpec) -> GeneratedSource:
        """Generate the source of the proxy described by ``spec``.

        The strategy's bodies are embedded without validation; a malformed
        body shows up as a compile diagnostic later.
        """
        logger.debug("Generating source code for %s", spec.binary_name)

        symbols = SymbolTable(reserved=self._reserved_names(spec))
        bind_symbols(symbols, strategy_symbols(self.strategy))

        class_scope = [p.name for p in spec.type_parameters]
        renderer = TypeRenderer(symbols, class_scope)

        base = symbols.bind(spec.target)
        header = (
            f"class {spec.simple_name}"
            f"{renderer.render_type_parameters(spec.type_parameters)}"
            f"({base}{renderer.render_type_arguments(spec.type_parameters)}):"
        )

        members: list[str] = []
        members.extend(self._initializers(spec, renderer))
        names = set()
        for operation in spec.operations:
            members.append(self._operation(operation, renderer))
            names.add(operation.name)
        if "__eq__" in names and "__hash__" not in names:
            # A class that defines __eq__ alone gets __hash__ = None
            members.append(f"__hash__ = {base}.__hash__")
        if not members:
            members.append("pass")

        body = "\n\n".join(_indent(m) for m in members)
        source = (
            f'"""Proxy of {spec.target.__module__}.{spec.target.__qualname__}."""\n'
            f"\n\n{header}\n{body}\n"
        )

        namespace = symbols.namespace()
        namespace["__name__"] = spec.module
        return GeneratedSource(
            name=spec.binary_name,
            simple_name=spec.simple_name,
            source=source,
            namespace=namespace,
        )

    def _reserved_names(self, spec: ProxySpec) -> set[str]:
        # Names declared in the class body would shadow symbols of the same
        # name for every annotation and default evaluated after them
        reserved = {spec.simple_name, "super", "__name__", "__hash__"}
        reserved.update(p.name for p in spec.type_parameters)
        for operation in spec.operations:
            reserved.add(operation.name)
            reserved.update(p.name for p in operation.type_parameters)
        return reserved

    # -------------------------------------------------------------------------
    # Initializers
    # -------------------------------------------------------------------------

    def _initializers(self, spec: ProxySpec, renderer: TypeRenderer) -> list[str]:
        public = spec.public_initializers
        if not public:
            logger.info("No non-private initializer for %s", spec.target.__qualname__)
            return []

        kind = public[0].kind
        if kind is InitializerKind.NATIVE:
            return []
        if kind is InitializerKind.DEFAULT:
            return ["def __init__(self) -> None:\n" + _indent("super().__init__()")]

        if len(spec.initializers) == 1:
            return [self._forwarding_initializer(public[0], renderer)]

        overload = renderer.symbols.bind(typing.overload)
        stubs = [
            f"@{overload}\n{self._initializer_header(i, renderer)} ..." for i in public
        ]
        if kind is InitializerKind.NEW:
            implementation = "def __new__(cls, *args, **kwargs):\n" + _indent(
                "return super().__new__(cls, *args, **kwargs)"
            )
        else:
            implementation = "def __init__(self, *args, **kwargs):\n" + _indent(
                "super().__init__(*args, **kwargs)"
            )
        return ["\n".join([*stubs, implementation])]

    def _initializer_header(self, initializer: Initializer, renderer: TypeRenderer) -> str:
        params = renderer.render_parameters(initializer.parameters)
        first = "cls" if initializer.kind is InitializerKind.NEW else "self"
        signature = f"{first}, {params}" if params else first
        returns = initializer.signature.return_annotation
        annotation = _return_annotation(returns, renderer)
        return f"def {initializer.kind.value}({signature}){annotation}:"

    def _forwarding_initializer(self, initializer: Initializer, renderer: TypeRenderer) -> str:
        arguments = render_arguments(initializer.parameters)
        if initializer.kind is InitializerKind.NEW:
            call = f"return super().__new__(cls, {arguments})" if arguments else (
                "return super().__new__(cls)"
            )
        else:
            call = f"super().__init__({arguments})"
        return f"{self._initializer_header(initializer, renderer)}\n{_indent(call)}"

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def _operation(self, operation: Operation, renderer: TypeRenderer) -> str:
        scoped = renderer.with_scope(p.name for p in operation.type_parameters)

        params = scoped.render_parameters(operation.parameters)
        signature = f"{operation.self_name}, {params}" if params else operation.self_name
        annotation = _return_annotation(operation.returns, scoped)
        prefix = "async def" if operation.is_async else "def"
        header = (
            f"{prefix} {operation.name}"
            f"{scoped.render_type_parameters(operation.type_parameters)}"
            f"({signature}){annotation}:"
        )

        delegate_call = f"super().{operation.name}({render_arguments(operation.parameters)})"
        if operation.is_async:
            delegate_call = f"await {delegate_call}"

        lines = []
        if operation.doc:
            lines.append(repr(operation.doc))
        body = textwrap.dedent(self.strategy.body(operation, delegate_call)).strip("\n")
        if body.strip():
            lines.append(body)
        elif not lines:
            lines.append("pass")

        return header + "\n" + _indent("\n".join(lines))
