"""Selecting the initializer that matches a runtime argument list.

Arguments are described by their types; ``None`` stands for an argument
whose type is unknown (a ``None`` value). Parameter annotations are erased
to runtime classes before comparison:

    list[int]        -> list
    T (bound=Number) -> Number
    int | str        -> (int, str)
    Any, missing     -> object

An initializer matches exactly when it takes exactly that many positional
parameters and every erased parameter type *is* the argument type. It
matches by assignment when the arguments bind positionally and every known
argument type is a subclass of its parameter type.
"""

from __future__ import annotations

import inspect
import logging
import types
import typing
import weakref
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, ForwardRef, get_args, get_origin

from proxygen.config import ResolutionPolicy
from proxygen.errors import NoMatchingInitializerError
from proxygen.schema import Initializer, TypeSchema

logger = logging.getLogger(__name__)

# A runtime class, or a tuple of them for unions
type Erased = type | tuple[type, ...]


def _flatten(parts: Sequence[Erased]) -> tuple[type, ...]:
    flat: list[type] = []
    for part in parts:
        for t in part if isinstance(part, tuple) else (part,):
            if t not in flat:
                flat.append(t)
    return tuple(flat)


def erase(annotation: Any) -> Erased:
    """Reduce an annotation to what ``issubclass`` can check."""
    if annotation is inspect.Parameter.empty or annotation is typing.Any:
        return object
    if annotation is None:
        return types.NoneType
    if isinstance(annotation, (str, ForwardRef)):
        return object
    if isinstance(annotation, typing.NewType):
        return erase(annotation.__supertype__)
    if isinstance(annotation, typing.TypeAliasType):
        return erase(annotation.__value__)
    if isinstance(annotation, typing.TypeVar):
        if annotation.__constraints__:
            return _flatten([erase(c) for c in annotation.__constraints__])
        if annotation.__bound__ is not None:
            return erase(annotation.__bound__)
        return object
    if isinstance(annotation, (typing.ParamSpec, typing.TypeVarTuple)):
        return object

    origin = get_origin(annotation)
    if origin is typing.Annotated:
        return erase(get_args(annotation)[0])
    if origin is typing.Union or origin is types.UnionType:
        return _flatten([erase(a) for a in get_args(annotation)])
    if origin is typing.Literal:
        return _flatten([type(v) for v in get_args(annotation)])
    if origin is typing.Unpack:
        return object
    if origin is not None:
        return erase(origin)
    if isinstance(annotation, type):
        return annotation
    return object


def is_assignable(argument: type | None, parameter: Erased) -> bool:
    if argument is None:
        return True
    try:
        return issubclass(argument, parameter)
    except TypeError:
        # Non-runtime-checkable protocols and other exotic annotations
        return False


def _narrower(a: Erased, b: Erased) -> bool:
    members = a if isinstance(a, tuple) else (a,)
    try:
        return all(issubclass(m, b) for m in members)
    except TypeError:
        return False


@dataclass(frozen=True)
class MatchCandidate:
    """An initializer with its parameter types erased."""

    initializer: Initializer
    positional: tuple[Erased, ...]
    required: int
    variadic: Erased | None = None  # Element type of *args, when present
    requires_keywords: bool = False

    @classmethod
    def from_initializer(cls, initializer: Initializer) -> MatchCandidate:
        positional: list[Erased] = []
        required = 0
        variadic: Erased | None = None
        requires_keywords = False
        for p in initializer.parameters:
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD):
                positional.append(erase(p.annotation))
                if p.default is p.empty:
                    required = len(positional)
            elif p.kind is p.VAR_POSITIONAL:
                variadic = erase(p.annotation)
            elif p.kind is p.KEYWORD_ONLY and p.default is p.empty:
                requires_keywords = True
        return cls(initializer, tuple(positional), required, variadic, requires_keywords)

    def binds(self, count: int) -> bool:
        if self.requires_keywords or count < self.required:
            return False
        return count <= len(self.positional) or self.variadic is not None

    def parameter_type(self, index: int) -> Erased:
        if index < len(self.positional):
            return self.positional[index]
        assert self.variadic is not None
        return self.variadic

    def is_exact(self, argument_types: Sequence[type | None]) -> bool:
        if len(argument_types) != len(self.positional) or not self.binds(len(argument_types)):
            return False
        return all(
            arg is not None and param is arg
            for arg, param in zip(argument_types, self.positional)
        )

    def accepts(self, argument_types: Sequence[type | None]) -> bool:
        if not self.binds(len(argument_types)):
            return False
        return all(
            is_assignable(arg, self.parameter_type(i)) for i, arg in enumerate(argument_types)
        )

    def is_narrower_than(self, other: MatchCandidate, count: int) -> bool:
        return all(
            _narrower(self.parameter_type(i), other.parameter_type(i)) for i in range(count)
        )


class InitializerResolver:
    """Finds the public initializer of a class for given argument types."""

    def __init__(self, policy: ResolutionPolicy = ResolutionPolicy.FIRST):
        self.policy = policy
        self._candidates: weakref.WeakKeyDictionary[type, tuple[MatchCandidate, ...]] = (
            weakref.WeakKeyDictionary()
        )

    def candidates(self, cls: type) -> tuple[MatchCandidate, ...]:
        """Public initializers of ``cls`` in declaration order."""
        found = self._candidates.get(cls)
        if found is None:
            found = tuple(
                MatchCandidate.from_initializer(i) for i in TypeSchema(cls).initializers()
            )
            self._candidates[cls] = found
        return found

    def resolve(self, cls: type, argument_types: Sequence[type | None]) -> Initializer:
        """Pick the initializer for ``argument_types``.

        Raises:
            NoMatchingInitializerError: If no public initializer accepts them
        """
        argument_types = tuple(argument_types)
        candidates = self.candidates(cls)

        for candidate in candidates:
            if candidate.is_exact(argument_types):
                logger.debug("Exact match %r for %s", candidate.initializer, argument_types)
                return candidate.initializer

        assignable = [c for c in candidates if c.accepts(argument_types)]
        if not assignable:
            raise NoMatchingInitializerError(cls, argument_types)

        chosen = assignable[0]
        if self.policy is ResolutionPolicy.MOST_SPECIFIC:
            count = len(argument_types)
            for candidate in assignable:
                if all(
                    candidate.is_narrower_than(other, count)
                    for other in assignable
                    if other is not candidate
                ):
                    chosen = candidate
                    break

        logger.debug("Assignable match %r for %s", chosen.initializer, argument_types)
        return chosen.initializer
