"""Tests for route pattern compilation, matching and URL building."""

import pytest

from flightdeck.exceptions import ConfigurationError
from flightdeck.pattern import compile_pattern


class TestNamedParameters:
    """Test @name parameters."""

    def test_single_parameter(self):
        assert compile_pattern("/users/@id").match("/users/42") == ({"id": "42"}, None)

    def test_parameters_keep_pattern_order(self):
        compiled = compile_pattern("/@b/@a")
        params, _ = compiled.match("/one/two")
        assert compiled.param_names == ("b", "a")
        assert list(params.items()) == [("b", "one"), ("a", "two")]

    def test_parameter_does_not_cross_slash(self):
        assert compile_pattern("/users/@id").match("/users/42/extra") is None

    def test_parameter_requires_a_value(self):
        assert compile_pattern("/users/@id").match("/users/") is None

    def test_values_are_url_decoded(self):
        params, _ = compile_pattern("/users/@name").match("/users/john%20doe")
        assert params == {"name": "john doe"}

    def test_trailing_slash_tolerated(self):
        assert compile_pattern("/users/@id").match("/users/42/") == ({"id": "42"}, None)
        assert compile_pattern("/users").match("/users/") is not None

    def test_literal_text_is_escaped(self):
        compiled = compile_pattern("/files/report.pdf")
        assert compiled.match("/files/report.pdf") is not None
        assert compiled.match("/files/reportXpdf") is None

    def test_duplicate_parameter_rejected(self):
        with pytest.raises(ConfigurationError, match="Duplicate parameter 'id'"):
            compile_pattern("/a/@id/b/@id")


class TestConstraints:
    """Test @name:regex constraints."""

    def test_numeric_constraint(self):
        compiled = compile_pattern("/users/@id:[0-9]+")
        assert compiled.match("/users/123") == ({"id": "123"}, None)
        assert compiled.match("/users/abc") is None

    def test_constraint_ends_at_slash(self):
        compiled = compile_pattern("/users/@id:[0-9]+/edit")
        assert compiled.match("/users/5/edit") == ({"id": "5"}, None)

    def test_fixed_length_token(self):
        compiled = compile_pattern("/token/@token:[a-z0-9]{16}")
        assert compiled.match("/token/abcdefgh12345678") is not None
        assert compiled.match("/token/abcdefgh1234567") is None

    def test_invalid_constraint_rejected(self):
        with pytest.raises(ConfigurationError, match="Invalid pattern"):
            compile_pattern("/users/@id:[0-9")


class TestOptionalSegments:
    """Test parenthesised optional segments."""

    def test_all_omitted(self):
        params, _ = compile_pattern("/blog(/@year(/@month(/@day)))").match("/blog")
        assert params == {"year": None, "month": None, "day": None}

    def test_partially_supplied(self):
        params, _ = compile_pattern("/blog(/@year(/@month(/@day)))").match("/blog/2024/05")
        assert params == {"year": "2024", "month": "05", "day": None}

    def test_fully_supplied(self):
        params, _ = compile_pattern("/blog(/@year(/@month(/@day)))").match("/blog/2024/05/17")
        assert params == {"year": "2024", "month": "05", "day": "17"}

    def test_unbalanced_open(self):
        with pytest.raises(ConfigurationError, match="Unbalanced"):
            compile_pattern("/blog(/@year")

    def test_unbalanced_close(self):
        with pytest.raises(ConfigurationError, match="Unbalanced"):
            compile_pattern("/blog/@year)")


class TestSplat:
    """Test trailing * wildcards."""

    def test_splat_captures_remainder(self):
        assert compile_pattern("/files/*").match("/files/a/b.txt") == ({}, "a/b.txt")

    def test_splat_may_be_empty(self):
        assert compile_pattern("/files/*").match("/files") == ({}, "")

    def test_splat_after_parameter(self):
        params, splat = compile_pattern("/user/@name/*").match("/user/bob/photos/1")
        assert params == {"name": "bob"}
        assert splat == "photos/1"

    def test_bare_star_matches_everything(self):
        compiled = compile_pattern("*")
        assert compiled.match("/") == ({}, "")
        assert compiled.match("/any/path/here") == ({}, "any/path/here")

    def test_splat_is_not_a_parameter(self):
        assert compile_pattern("/files/*").param_names == ()


class TestCaseSensitivity:
    """Test the case_sensitive flag."""

    def test_case_insensitive_by_default(self):
        assert compile_pattern("/Users/@id").match("/users/1") is not None

    def test_case_sensitive(self):
        compiled = compile_pattern("/Users/@id", case_sensitive=True)
        assert compiled.match("/users/1") is None
        assert compiled.match("/Users/1") is not None


class TestCaching:
    """Test that compilation is cached."""

    def test_same_arguments_same_object(self):
        assert compile_pattern("/cached/@id") is compile_pattern("/cached/@id")

    def test_case_flag_is_part_of_the_key(self):
        assert compile_pattern("/cached") is not compile_pattern("/cached", case_sensitive=True)


class TestBuild:
    """Test URL building from parameters."""

    def test_required_parameters(self):
        assert compile_pattern("/users/@id/posts/@post").build({"id": 5, "post": 9}) == "/users/5/posts/9"

    def test_missing_required_parameter(self):
        with pytest.raises(ConfigurationError, match="Missing value for required parameter 'id'"):
            compile_pattern("/users/@id").build({})

    def test_optional_groups_dropped(self):
        compiled = compile_pattern("/blog(/@year(/@month))")
        assert compiled.build({}) == "/blog"
        assert compiled.build({"year": 2024}) == "/blog/2024"
        assert compiled.build({"year": 2024, "month": 5}) == "/blog/2024/5"

    def test_values_not_checked_against_constraints(self):
        assert compile_pattern("/users/@id:[0-9]+").build({"id": "abc"}) == "/users/abc"

    def test_splat_pattern(self):
        assert compile_pattern("/files/*").build() == "/files"

    def test_root(self):
        assert compile_pattern("/").build() == "/"
        assert compile_pattern("*").build() == "/"
