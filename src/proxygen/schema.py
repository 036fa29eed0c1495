"""Reflection over a target class.

This module answers the questions proxy generation asks about a class:
which type parameters it declares, which initializers a subclass may call,
and which instance operations a subclass may override.

Usage:
    from proxygen.schema import TypeSchema, private

    schema = TypeSchema(MyService)
    for operation in schema.overridable_operations():
        print(operation.name, operation.signature)
"""

from __future__ import annotations

import enum
import inspect
import logging
import typing
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, ParamSpec, TypeVar, TypeVarTuple, get_args, get_origin

logger = logging.getLogger(__name__)

_PRIVATE_MARKER = "__proxygen_private__"

# Py_TPFLAGS_BASETYPE: the type may be used as a base class
_BASETYPE_FLAG = 1 << 10

# Attribute and lifecycle hooks are never intercepted
_RESERVED_NAMES = frozenset(
    {
        "__init__",
        "__new__",
        "__getattribute__",
        "__getattr__",
        "__setattr__",
        "__delattr__",
        "__del__",
        "__init_subclass__",
        "__class_getitem__",
        "__set_name__",
        "__subclasshook__",
        "__annotate__",
    }
)

_TYPE_VARIABLES = (TypeVar, ParamSpec, TypeVarTuple)


def private[F: Callable[..., Any]](func: F) -> F:
    """Mark an initializer as unavailable to generated subclasses.

    Apply it to ``__init__`` (or ``__new__``) directly, or beneath
    ``@overload`` to hide a single overload::

        @overload
        @private
        def __init__(self, token: bytes) -> None: ...
    """
    setattr(func, _PRIVATE_MARKER, True)
    return func


def is_private(func: Any) -> bool:
    return bool(getattr(func, _PRIVATE_MARKER, False))


class TypeParameterKind(enum.Enum):
    TYPE_VAR = "TypeVar"
    PARAM_SPEC = "ParamSpec"
    TYPE_VAR_TUPLE = "TypeVarTuple"


@dataclass(frozen=True)
class TypeParameter:
    """A declared type parameter of a class or an operation.

    Attributes:
        name: Parameter name (e.g. "T")
        kind: TypeVar, ParamSpec or TypeVarTuple
        bound: Upper bound, or None when unbounded
        constraints: Allowed types for a constrained TypeVar
        variable: The typing object itself
    """

    name: str
    kind: TypeParameterKind
    bound: Any = None
    constraints: tuple[Any, ...] = ()
    variable: Any = None

    @classmethod
    def from_variable(cls, variable: Any) -> TypeParameter:
        if isinstance(variable, ParamSpec):
            kind = TypeParameterKind.PARAM_SPEC
        elif isinstance(variable, TypeVarTuple):
            kind = TypeParameterKind.TYPE_VAR_TUPLE
        else:
            kind = TypeParameterKind.TYPE_VAR
        return cls(
            name=variable.__name__,
            kind=kind,
            bound=getattr(variable, "__bound__", None),
            constraints=tuple(getattr(variable, "__constraints__", ())),
            variable=variable,
        )


class InitializerKind(enum.Enum):
    INIT = "__init__"  # Python-level __init__ or one of its overloads
    NEW = "__new__"  # Python-level __new__ when __init__ is object's
    DEFAULT = "default"  # Neither is defined: zero-argument construction
    NATIVE = "native"  # Construction implemented in C


@dataclass(frozen=True)
class Initializer:
    """One way of constructing instances of a class.

    Calling the initializer constructs an instance of ``owner``. Two
    initializers are equal when they describe the same declaration of the
    same class.
    """

    owner: type
    kind: InitializerKind
    index: int
    function: Any = field(default=None)
    signature: inspect.Signature = field(default_factory=inspect.Signature, compare=False)
    private: bool = False

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.owner(*args, **kwargs)

    @property
    def parameters(self) -> tuple[inspect.Parameter, ...]:
        return tuple(self.signature.parameters.values())

    @property
    def parameter_types(self) -> tuple[Any, ...]:
        return tuple(p.annotation for p in self.parameters)

    def __repr__(self) -> str:
        return f"<Initializer {self.owner.__qualname__}{self.signature}>"


@dataclass(frozen=True)
class Operation:
    """An overridable instance operation.

    Attributes:
        name: Operation name
        owner: Class in the MRO that defines the implementation
        function: The implementation
        signature: Signature without the instance parameter, with resolved
            annotations (type variables of parameterized bases substituted)
        self_name: Name of the instance parameter
        type_parameters: Operation-level type parameters
        exceptions: Exception names from the docstring's Raises section
        is_async: Whether the operation is a coroutine function
        doc: The implementation's docstring
    """

    name: str
    owner: type
    function: Callable[..., Any]
    signature: inspect.Signature
    self_name: str = "self"
    type_parameters: tuple[TypeParameter, ...] = ()
    exceptions: tuple[str, ...] = ()
    is_async: bool = False
    doc: str | None = None

    @property
    def parameters(self) -> tuple[inspect.Parameter, ...]:
        return tuple(self.signature.parameters.values())

    @property
    def returns(self) -> Any:
        return self.signature.return_annotation

    @property
    def returns_value(self) -> bool:
        """False only when the operation is annotated to return None."""
        return self.returns is not None and self.returns is not type(None)

    @property
    def is_variadic(self) -> bool:
        return any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in self.parameters)


def parse_raises(docstring: str | None) -> tuple[str, ...]:
    """Extract exception names from a Google-style ``Raises:`` section."""
    if not docstring:
        return ()

    names: list[str] = []
    in_raises = False
    section_indent = 0
    entry_indent: int | None = None

    for line in inspect.cleandoc(docstring).splitlines():
        stripped = line.strip()
        indent = len(line) - len(line.lstrip())

        if stripped.lower() == "raises:":
            in_raises = True
            section_indent = indent
            entry_indent = None
            continue
        if not in_raises or not stripped:
            continue
        if indent <= section_indent:
            # Next section header or dedented prose ends the block
            in_raises = False
            continue
        if entry_indent is None:
            entry_indent = indent
        if indent > entry_indent:
            continue  # Continuation of the previous entry

        name = stripped.split(":", 1)[0].strip()
        if name.replace(".", "").isidentifier() and name not in names:
            names.append(name)

    return tuple(names)


def substitute(annotation: Any, env: dict[Any, Any]) -> Any:
    """Replace type variables in an annotation using ``env``."""
    if not env:
        return annotation
    if isinstance(annotation, _TYPE_VARIABLES):
        return env.get(annotation, annotation)
    if isinstance(annotation, type):
        return annotation
    params = getattr(annotation, "__parameters__", None)
    if not params or not any(p in env for p in params):
        return annotation
    try:
        return annotation[tuple(env.get(p, p) for p in params)]
    except TypeError:
        return annotation


def free_type_variables(annotation: Any) -> tuple[Any, ...]:
    if isinstance(annotation, _TYPE_VARIABLES):
        return (annotation,)
    if isinstance(annotation, type):
        return ()
    params = getattr(annotation, "__parameters__", None)
    return tuple(params) if isinstance(params, tuple) else ()


def _is_public(name: str) -> bool:
    return not name.startswith("_") or (name.startswith("__") and name.endswith("__"))


def _iter_bases(klass: type) -> Iterator[Any]:
    yield from klass.__dict__.get("__orig_bases__", klass.__bases__)


def _defining_class(cls: type, name: str) -> type | None:
    for klass in cls.__mro__:
        if name in klass.__dict__:
            return klass
    return None


class TypeSchema:
    """Reflective view of a target class."""

    def __init__(self, cls: type):
        if not isinstance(cls, type):
            raise TypeError(f"Expected a class, got {cls!r}")
        self.cls = cls

    def __repr__(self) -> str:
        return f"TypeSchema({self.qualified_name})"

    @property
    def module(self) -> str:
        return self.cls.__module__

    @property
    def simple_name(self) -> str:
        return self.cls.__name__

    @property
    def qualified_name(self) -> str:
        return f"{self.cls.__module__}.{self.cls.__qualname__}"

    def is_final(self) -> bool:
        """Whether the class refuses subclasses."""
        cls = self.cls
        if cls.__dict__.get("__final__", False):
            return True
        if not cls.__flags__ & _BASETYPE_FLAG:
            return True
        return isinstance(cls, enum.EnumType) and len(cls.__members__) > 0

    def type_parameters(self) -> tuple[TypeParameter, ...]:
        variables = getattr(self.cls, "__type_params__", ()) or getattr(
            self.cls, "__parameters__", ()
        )
        return tuple(TypeParameter.from_variable(v) for v in variables)

    @cached_property
    def type_arguments(self) -> dict[type, dict[Any, Any]]:
        """Actual type arguments of every parameterized base, keyed by base.

        For ``class Child(Base[str])`` the entry for ``Base`` maps Base's
        ``T`` to ``str``.
        """
        envs: dict[type, dict[Any, Any]] = {self.cls: {}}

        def visit(klass: type, env: dict[Any, Any]) -> None:
            for base in _iter_bases(klass):
                origin = get_origin(base) or base
                if not isinstance(origin, type) or origin in (typing.Generic, typing.Protocol):
                    continue
                args = tuple(substitute(a, env) for a in get_args(base))
                params = getattr(origin, "__parameters__", ())
                base_env = dict(zip(params, args)) if len(params) == len(args) else {}
                if origin not in envs:
                    envs[origin] = base_env
                    visit(origin, base_env)

        visit(self.cls, {})
        return envs

    def _local_namespace(self, owner: type, func: Any) -> dict[str, Any]:
        localns: dict[str, Any] = {owner.__name__: owner}
        for variable in (
            *getattr(owner, "__type_params__", ()),
            *getattr(owner, "__parameters__", ()),
            *getattr(func, "__type_params__", ()),
        ):
            localns[variable.__name__] = variable
        return localns

    def _resolved_signature(self, owner: type, func: Any) -> tuple[inspect.Signature, str]:
        """Signature of ``func`` without its first parameter, hints resolved."""
        sig = inspect.signature(func)
        try:
            hints = typing.get_type_hints(
                func, localns=self._local_namespace(owner, func), include_extras=True
            )
        except (NameError, AttributeError, TypeError, SyntaxError) as e:
            logger.debug("Keeping raw annotations of %s: %s", func.__qualname__, e)
            hints = {}

        env = self.type_arguments.get(owner, {})
        params = list(sig.parameters.values())
        self_name = "self"
        if params and params[0].kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            self_name = params.pop(0).name

        resolved = [
            p.replace(annotation=substitute(hints.get(p.name, p.annotation), env))
            for p in params
        ]
        returns = substitute(hints.get("return", sig.return_annotation), env)
        return sig.replace(parameters=resolved, return_annotation=returns), self_name

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def overridable_operations(self) -> tuple[Operation, ...]:
        """Instance operations a subclass can override, in MRO order."""
        return self._operations

    @cached_property
    def _operations(self) -> tuple[Operation, ...]:
        seen: set[str] = set()
        operations: list[Operation] = []

        for klass in self.cls.__mro__:
            if klass in (object, typing.Generic, typing.Protocol):
                continue
            for name, attr in klass.__dict__.items():
                if name in seen:
                    continue
                seen.add(name)
                if not _is_public(name) or name in _RESERVED_NAMES:
                    continue
                if isinstance(attr, (staticmethod, classmethod)):
                    continue
                if not inspect.isfunction(attr):
                    continue
                if getattr(attr, "__final__", False):
                    logger.debug("Skipping final operation %s.%s", klass.__qualname__, name)
                    continue
                operations.append(self._operation(klass, name, attr))

        return tuple(operations)

    def _operation(self, owner: type, name: str, func: Callable[..., Any]) -> Operation:
        signature, self_name = self._resolved_signature(owner, func)

        class_variables = {p.variable for p in self.type_parameters()}
        own: list[Any] = list(getattr(func, "__type_params__", ()))
        annotations = [p.annotation for p in signature.parameters.values()]
        annotations.append(signature.return_annotation)
        for annotation in annotations:
            for variable in free_type_variables(annotation):
                if variable not in class_variables and variable not in own:
                    own.append(variable)

        doc = inspect.getdoc(func)
        return Operation(
            name=name,
            owner=owner,
            function=func,
            signature=signature,
            self_name=self_name,
            type_parameters=tuple(TypeParameter.from_variable(v) for v in own),
            exceptions=parse_raises(doc),
            is_async=inspect.iscoroutinefunction(func),
            doc=doc,
        )

    # -------------------------------------------------------------------------
    # Initializers
    # -------------------------------------------------------------------------

    def initializers(self, include_private: bool = False) -> tuple[Initializer, ...]:
        """Initializers in declaration order; private ones only on request."""
        if include_private:
            return self._initializers
        return tuple(i for i in self._initializers if not i.private)

    @cached_property
    def _initializers(self) -> tuple[Initializer, ...]:
        cls = self.cls
        init = cls.__init__
        if init is not object.__init__:
            if inspect.isfunction(init):
                return self._declared_initializers(InitializerKind.INIT, init)
            return (self._native_initializer(),)

        new = cls.__new__
        if new is object.__new__:
            return (Initializer(owner=cls, kind=InitializerKind.DEFAULT, index=0),)
        if inspect.isfunction(new):
            return self._declared_initializers(InitializerKind.NEW, new)
        return (self._native_initializer(),)

    def _declared_initializers(
        self, kind: InitializerKind, implementation: Any
    ) -> tuple[Initializer, ...]:
        owner = _defining_class(self.cls, kind.value) or self.cls
        declarations = typing.get_overloads(implementation) or [implementation]
        hidden = is_private(implementation)

        initializers = []
        for index, func in enumerate(declarations):
            signature, _ = self._resolved_signature(owner, func)
            initializers.append(
                Initializer(
                    owner=self.cls,
                    kind=kind,
                    index=index,
                    function=func,
                    signature=signature,
                    private=hidden or is_private(func),
                )
            )
        return tuple(initializers)

    def _native_initializer(self) -> Initializer:
        try:
            signature = inspect.signature(self.cls)
        except (TypeError, ValueError):
            signature = inspect.Signature(
                [
                    inspect.Parameter("args", inspect.Parameter.VAR_POSITIONAL),
                    inspect.Parameter("kwargs", inspect.Parameter.VAR_KEYWORD),
                ]
            )
        return Initializer(
            owner=self.cls, kind=InitializerKind.NATIVE, index=0, signature=signature
        )
