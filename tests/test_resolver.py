"""Tests for initializer resolution."""

import inspect
import types
import typing
from numbers import Number

import pytest

from sample_types import Account, Bag, Configured, Holder, Locked, Plain, Sample

from proxygen.config import ResolutionPolicy
from proxygen.errors import NoMatchingInitializerError
from proxygen.resolver import InitializerResolver, MatchCandidate, erase, is_assignable
from proxygen.schema import TypeSchema

UserId = typing.NewType("UserId", int)


class TestErase:
    """Tests for annotation erasure."""

    def test_plain_class(self):
        assert erase(int) is int

    def test_missing_and_any(self):
        assert erase(inspect.Parameter.empty) is object
        assert erase(typing.Any) is object
        assert erase("Unresolved") is object

    def test_none(self):
        assert erase(None) is types.NoneType

    def test_generic_alias(self):
        assert erase(list[int]) is list
        assert erase(typing.Dict[str, int]) is dict

    def test_type_variable(self):
        assert erase(typing.TypeVar("T")) is object
        assert erase(typing.TypeVar("N", bound=Number)) is Number
        assert erase(typing.TypeVar("S", str, bytes)) == (str, bytes)

    def test_union(self):
        assert erase(int | str) == (int, str)
        assert erase(typing.Optional[list[int]]) == (list, types.NoneType)

    def test_annotated_and_new_type(self):
        assert erase(typing.Annotated[int, "meta"]) is int
        assert erase(UserId) is int

    def test_literal(self):
        assert erase(typing.Literal["a", "b", 1]) == (str, int)


class TestIsAssignable:
    """Tests for is_assignable."""

    def test_none_always_assignable(self):
        assert is_assignable(None, int)

    def test_subclass(self):
        assert is_assignable(bool, int)
        assert is_assignable(int, Number)
        assert not is_assignable(str, int)

    def test_union_members(self):
        assert is_assignable(str, (int, str))

    def test_uncheckable_is_false(self):
        class Shape(typing.Protocol):
            def area(self) -> float: ...

        assert not is_assignable(int, Shape)


class TestMatchCandidate:
    """Tests for arity and matching of a single initializer."""

    def candidate(self, cls, index=0):
        return MatchCandidate.from_initializer(TypeSchema(cls).initializers()[index])

    def test_exact(self):
        candidate = self.candidate(Sample, 1)

        assert candidate.is_exact((bool,))
        assert not candidate.is_exact((int,))
        assert not candidate.is_exact((None,))

    def test_variadic_binds_any_count(self):
        candidate = self.candidate(Bag)

        assert candidate.binds(0)
        assert candidate.binds(5)
        assert candidate.accepts((str, str, None))
        assert not candidate.accepts((str, int))
        assert not candidate.is_exact((str,))

    def test_required_keyword_only_never_binds(self):
        candidate = self.candidate(Configured)

        assert candidate.requires_keywords
        assert not candidate.accepts((str,))


class TestInitializerResolver:
    """Tests for InitializerResolver."""

    def test_same_initializer_for_int_and_number(self):
        resolver = InitializerResolver()

        assert resolver.resolve(Sample, (int,)) == resolver.resolve(Sample, (Number,))

    def test_distinct_initializers(self):
        resolver = InitializerResolver()
        by_number = resolver.resolve(Sample, (Number,))
        by_bool = resolver.resolve(Sample, (bool,))
        empty = resolver.resolve(Sample, ())

        assert len({by_number, by_bool, empty}) == 3
        assert empty.parameters == ()
        assert by_bool.parameter_types == (bool,)

    def test_none_argument_accepted(self):
        resolver = InitializerResolver()

        initializer = resolver.resolve(Sample, (None,))

        assert initializer.parameter_types == (bool,)

    def test_too_many_arguments(self):
        with pytest.raises(NoMatchingInitializerError) as exc_info:
            InitializerResolver().resolve(Sample, (int, int))

        error = exc_info.value
        assert error.target is Sample
        assert error.argument_types == (int, int)
        assert "['int', 'int']" in str(error)
        assert "sample_types.Sample" in str(error)

    def test_no_match_is_type_error(self):
        with pytest.raises(TypeError):
            InitializerResolver().resolve(Sample, (str,))

    def test_only_private_initializer(self):
        with pytest.raises(NoMatchingInitializerError):
            InitializerResolver().resolve(Locked, (str,))

    def test_private_overload_unreachable(self):
        resolver = InitializerResolver()

        assert resolver.resolve(Account, (str,)).parameter_types == (str,)
        with pytest.raises(NoMatchingInitializerError):
            resolver.resolve(Account, (str, int))

    def test_default_initializer(self):
        initializer = InitializerResolver().resolve(Plain, ())

        assert type(initializer()) is Plain

    def test_first_policy_uses_declaration_order(self):
        initializer = InitializerResolver(ResolutionPolicy.FIRST).resolve(Holder, (bool,))

        assert initializer.parameter_types == (object,)

    def test_most_specific_policy(self):
        initializer = InitializerResolver(ResolutionPolicy.MOST_SPECIFIC).resolve(
            Holder, (bool,)
        )

        assert initializer.parameter_types == (int,)

    def test_exact_match_wins_over_order(self):
        initializer = InitializerResolver(ResolutionPolicy.FIRST).resolve(Holder, (int,))

        assert initializer.parameter_types == (int,)

    def test_candidates_cached(self):
        resolver = InitializerResolver()

        assert resolver.candidates(Sample) is resolver.candidates(Sample)
