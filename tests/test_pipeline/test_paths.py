"""Tests for routelens.pipeline.paths -- dialects, parameters, composition."""

from __future__ import annotations

import pytest

from routelens.models import ParameterLocation, Schema
from routelens.pipeline.paths import (
    PathDialect,
    combine_paths,
    compose_path,
    extract_path_params,
    normalize_path,
    normalize_path_with_types,
)


class TestBraceDialect:
    """``{id}`` spellings used by FastAPI, Spring, ASP.NET and Laravel."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("/users/{id}", "/users/{id}"),
            ("/users/{id:int}", "/users/{id}"),
            ("/users/{id:\\d+}", "/users/{id}"),
            ("/users/{id?}", "/users/{id}"),
            ("/files/{*rest}", "/files/{rest}"),
            ("/files/{**slug}", "/files/{slug}"),
            ("/codes/{code:[a-z]{2}}", "/codes/{code}"),
        ],
    )
    def test_normalizes(self, raw: str, expected: str) -> None:
        assert normalize_path(raw, PathDialect.BRACE) == expected

    def test_converter_type_is_kept(self) -> None:
        result = normalize_path_with_types("/users/{id:int}/{flag:bool}", PathDialect.BRACE)
        assert result.param_types == {
            "id": Schema(type="integer"),
            "flag": Schema(type="boolean"),
        }

    def test_regex_constraint_implies_no_type(self) -> None:
        result = normalize_path_with_types("/users/{id:\\d+}", PathDialect.BRACE)
        assert result.param_types == {}

    def test_colon_is_literal(self) -> None:
        assert normalize_path("/items/:id", PathDialect.BRACE) == "/items/:id"

    def test_unmatched_brace_stays_literal(self) -> None:
        assert normalize_path("/broken/{id", PathDialect.BRACE) == "/broken/{id"


class TestAngleDialect:
    """``<id>`` spellings used by Flask and Rocket."""

    def test_converter(self) -> None:
        result = normalize_path_with_types("/users/<int:user_id>", PathDialect.ANGLE)
        assert result.path == "/users/{user_id}"
        assert result.param_types["user_id"] == Schema(type="integer")

    def test_plain_and_segments(self) -> None:
        assert normalize_path("/files/<path..>", PathDialect.ANGLE) == "/files/{path}"
        assert normalize_path("/hello/<name>", PathDialect.ANGLE) == "/hello/{name}"

    def test_converter_with_arguments(self) -> None:
        result = normalize_path_with_types("/n/<int(signed=True):n>", PathDialect.ANGLE)
        assert result.path == "/n/{n}"
        assert result.param_types["n"].type == "integer"

    def test_path_converter_is_string(self) -> None:
        result = normalize_path_with_types("/static/<path:filename>", PathDialect.ANGLE)
        assert result.param_types["filename"] == Schema(type="string")


class TestColonDialect:
    """``:id`` and ``*rest`` used by Phoenix, Sinatra and Gleam."""

    def test_named_and_glob(self) -> None:
        assert normalize_path("/users/:id/files/*path", PathDialect.COLON) == "/users/{id}/files/{path}"

    def test_angle_is_literal(self) -> None:
        assert normalize_path("/a/<b>", PathDialect.COLON) == "/a/<b>"

    def test_colon_inside_segment_is_literal(self) -> None:
        assert normalize_path("/time/12:30", PathDialect.COLON) == "/time/12:30"


class TestDollarDialect:
    """Play routes-file spellings."""

    def test_regex_parameter(self) -> None:
        assert normalize_path("/items/$id<[0-9]+>", PathDialect.DOLLAR) == "/items/{id}"

    def test_colon_and_star(self) -> None:
        assert normalize_path("/users/:name/*file", PathDialect.DOLLAR) == "/users/{name}/{file}"


class TestExtractPathParams:
    def test_order_and_types(self) -> None:
        params = extract_path_params("/orgs/{org}/users/{id}", {"id": Schema(type="integer")})
        assert [p.name for p in params] == ["org", "id"]
        assert all(p.location == ParameterLocation.PATH and p.required for p in params)
        assert params[0].schema_.type == "string"
        assert params[1].schema_.type == "integer"

    def test_no_tokens(self) -> None:
        assert extract_path_params("/health") == []


class TestComposition:
    def test_combine_empty_prefix(self) -> None:
        assert combine_paths("", "users") == "/users"

    def test_combine_single_slash(self) -> None:
        assert combine_paths("/api/", "/users") == "/api/users"
        assert combine_paths("/api", "users") == "/api/users"

    def test_compose_chain(self) -> None:
        assert compose_path(["/api", "/v1/", "items"]) == "/api/v1/items"

    def test_compose_skips_empty_members(self) -> None:
        assert compose_path(["", None, "/users"]) == "/users"

    def test_compose_nothing_is_root(self) -> None:
        assert compose_path([]) == "/"
        assert compose_path(["", None]) == "/"


class TestIdempotence:
    """Normalizing a canonical path changes nothing."""

    @pytest.mark.parametrize(
        "raw, dialect",
        [
            ("/users/{id:int}/posts/{slug}", PathDialect.BRACE),
            ("/codes/{id:[0-9]{2,3}}", PathDialect.BRACE),
            ("/files/{*rest}", PathDialect.BRACE),
            ("/broken/{id", PathDialect.BRACE),
            ("/codes/{code:[a-z]{2}", PathDialect.BRACE),
            ("/users/<int:user_id>/<path:rest>", PathDialect.ANGLE),
            ("/static/<path..>", PathDialect.ANGLE),
            ("/broken/<id", PathDialect.ANGLE),
            ("/users/:id/files/*rest", PathDialect.COLON),
            ("/time/12:30/{literal", PathDialect.COLON),
            ("/items/$id<[0-9]+>/:name/*rest", PathDialect.DOLLAR),
            ("/", PathDialect.DOLLAR),
        ],
    )
    def test_normalize_twice(self, raw: str, dialect: PathDialect) -> None:
        once = normalize_path(raw, dialect)
        assert normalize_path(once, dialect) == once
