"""Render runtime type information back into Python source text.

Generated proxies refer to classes, defaults and typing constructs that may
not be importable by name (local classes, objects from ``__main__``). Every
such object is bound in a ``SymbolTable`` under a unique identifier; the
table later becomes the namespace the generated code executes in.
"""

from __future__ import annotations

import collections.abc
import inspect
import keyword
import logging
import types
import typing
from collections.abc import Iterable, Mapping
from typing import Any, ForwardRef, ParamSpec, TypeVar, TypeVarTuple, get_args, get_origin

from proxygen.schema import TypeParameter, TypeParameterKind

logger = logging.getLogger(__name__)

_LITERAL_TYPES = (bool, int, str, bytes, type(None))


def _is_identifier(name: Any) -> bool:
    return isinstance(name, str) and name.isidentifier() and not keyword.iskeyword(name)


class SymbolTable:
    """Unique source-level names for runtime objects."""

    def __init__(self, reserved: Iterable[str] = ()):
        self._objects: dict[str, Any] = {}
        self._names: dict[int, str] = {}
        self._reserved: set[str] = set(reserved)

    def __contains__(self, name: str) -> bool:
        return name in self._objects

    def reserve(self, *names: str) -> None:
        """Keep ``names`` free for identifiers the source declares itself."""
        self._reserved.update(names)

    def bind(self, obj: Any, hint: str | None = None) -> str:
        """Return the identifier bound to ``obj``, binding it if needed."""
        existing = self._names.get(id(obj))
        if existing is not None:
            return existing

        base = hint if hint is not None else getattr(obj, "__name__", None)
        if not _is_identifier(base):
            base = "_obj"
        name = base
        counter = 1
        while name in self._reserved or name in self._objects:
            name = f"{base}_{counter}"
            counter += 1

        self._objects[name] = obj
        self._names[id(obj)] = name
        return name

    def bind_named(self, name: str, obj: Any) -> None:
        """Bind ``obj`` under exactly ``name``.

        Raises:
            ValueError: If the name is reserved or bound to another object
        """
        if not _is_identifier(name):
            raise ValueError(f"Not a valid identifier: {name!r}")
        if name in self._reserved or (name in self._objects and self._objects[name] is not obj):
            raise ValueError(f"Symbol {name!r} is already in use")
        self._objects[name] = obj
        self._names.setdefault(id(obj), name)

    def namespace(self) -> dict[str, Any]:
        return dict(self._objects)


class TypeRenderer:
    """Turns annotations into source expressions.

    Type variables whose names are in ``scope`` render as bare names; every
    other object is bound in the symbol table.
    """

    def __init__(self, symbols: SymbolTable, scope: Iterable[str] = ()):
        self.symbols = symbols
        self.scope = frozenset(scope)

    def with_scope(self, names: Iterable[str]) -> TypeRenderer:
        return TypeRenderer(self.symbols, self.scope | set(names))

    def render(self, annotation: Any) -> str:
        try:
            return self._render(annotation)
        except (TypeError, AttributeError, ValueError) as e:
            logger.debug("Binding unrenderable annotation %r: %s", annotation, e)
            return self.symbols.bind(annotation, "_annotation")

    def _render(self, annotation: Any) -> str:
        if annotation is None or annotation is type(None):
            return "None"
        if annotation is Ellipsis:
            return "..."
        if isinstance(annotation, str):
            return repr(annotation)
        if isinstance(annotation, ForwardRef):
            return repr(annotation.__forward_arg__)
        if isinstance(annotation, list):
            return "[" + ", ".join(self.render(a) for a in annotation) + "]"
        if isinstance(annotation, (TypeVar, ParamSpec, TypeVarTuple)):
            if annotation.__name__ in self.scope:
                return annotation.__name__
            return self.symbols.bind(annotation)
        if isinstance(annotation, typing.ParamSpecArgs):
            return f"{self.render(annotation.__origin__)}.args"
        if isinstance(annotation, typing.ParamSpecKwargs):
            return f"{self.render(annotation.__origin__)}.kwargs"

        origin = get_origin(annotation)
        if origin is None:
            return self.symbols.bind(annotation)

        args = get_args(annotation)
        if origin is typing.Union or origin is types.UnionType:
            if any(isinstance(a, (str, ForwardRef)) for a in args):
                return self.symbols.bind(annotation, "_annotation")
            return " | ".join(self.render(a) for a in args)
        if origin is typing.Literal:
            values = ", ".join(self.render_value(a, "_literal") for a in args)
            return f"{self.symbols.bind(typing.Literal)}[{values}]"
        if origin is typing.Annotated:
            inner = self.render(annotation.__origin__)
            metadata = ", ".join(
                self.symbols.bind(m, "_metadata") for m in annotation.__metadata__
            )
            return f"{self.symbols.bind(typing.Annotated)}[{inner}, {metadata}]"
        if origin is collections.abc.Callable and len(args) == 2:
            params, returns = args
            return f"{self.symbols.bind(origin)}[{self.render(params)}, {self.render(returns)}]"

        head = self.symbols.bind(origin)
        if not args:
            return head
        return f"{head}[{', '.join(self.render(a) for a in args)}]"

    def render_value(self, value: Any, hint: str = "_default") -> str:
        """Render a default or literal value."""
        if value is Ellipsis:
            return "..."
        if type(value) in _LITERAL_TYPES:
            return repr(value)
        return self.symbols.bind(value, hint)

    def render_type_parameters(self, parameters: Iterable[TypeParameter]) -> str:
        """PEP 695 type parameter list, e.g. ``[T: Number, *Ts, **P]``."""
        parts = []
        for p in parameters:
            if p.kind is TypeParameterKind.TYPE_VAR_TUPLE:
                parts.append(f"*{p.name}")
            elif p.kind is TypeParameterKind.PARAM_SPEC:
                parts.append(f"**{p.name}")
            elif p.constraints:
                constraints = ", ".join(self.render(c) for c in p.constraints)
                parts.append(f"{p.name}: ({constraints})")
            elif p.bound is not None:
                parts.append(f"{p.name}: {self.render(p.bound)}")
            else:
                parts.append(p.name)
        return f"[{', '.join(parts)}]" if parts else ""

    def render_type_arguments(self, parameters: Iterable[TypeParameter]) -> str:
        """Subscription passing type parameters on, e.g. ``[T, *Ts, P]``."""
        parts = [
            f"*{p.name}" if p.kind is TypeParameterKind.TYPE_VAR_TUPLE else p.name
            for p in parameters
        ]
        return f"[{', '.join(parts)}]" if parts else ""

    def render_parameters(self, parameters: Iterable[inspect.Parameter]) -> str:
        """Parameter list text, keeping kinds, annotations and defaults."""
        parts: list[str] = []
        params = list(parameters)
        saw_keyword_only = False
        for index, p in enumerate(params):
            if p.kind is inspect.Parameter.KEYWORD_ONLY and not saw_keyword_only:
                saw_keyword_only = True
                if not any(q.kind is inspect.Parameter.VAR_POSITIONAL for q in params):
                    parts.append("*")

            if p.kind is inspect.Parameter.VAR_POSITIONAL:
                text = f"*{p.name}"
            elif p.kind is inspect.Parameter.VAR_KEYWORD:
                text = f"**{p.name}"
            else:
                text = p.name

            if p.annotation is not inspect.Parameter.empty:
                text += f": {self.render(p.annotation)}"
            if p.default is not inspect.Parameter.empty:
                separator = " = " if p.annotation is not inspect.Parameter.empty else "="
                text += f"{separator}{self.render_value(p.default, f'_{p.name}_default')}"
            parts.append(text)

            is_last_positional_only = p.kind is inspect.Parameter.POSITIONAL_ONLY and (
                index + 1 == len(params)
                or params[index + 1].kind is not inspect.Parameter.POSITIONAL_ONLY
            )
            if is_last_positional_only:
                parts.append("/")
        return ", ".join(parts)


def render_arguments(parameters: Iterable[inspect.Parameter]) -> str:
    """Call-site text forwarding every parameter under its own name."""
    parts = []
    for p in parameters:
        if p.kind is inspect.Parameter.VAR_POSITIONAL:
            parts.append(f"*{p.name}")
        elif p.kind is inspect.Parameter.VAR_KEYWORD:
            parts.append(f"**{p.name}")
        elif p.kind is inspect.Parameter.KEYWORD_ONLY:
            parts.append(f"{p.name}={p.name}")
        else:
            parts.append(p.name)
    return ", ".join(parts)


def bind_symbols(symbols: SymbolTable, extra: Mapping[str, Any]) -> None:
    for name, obj in extra.items():
        symbols.bind_named(name, obj)
