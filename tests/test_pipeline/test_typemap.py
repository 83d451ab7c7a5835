"""Tests for routelens.pipeline.typemap -- per-language type mapping."""

from __future__ import annotations

import pytest

from routelens.models import Schema
from routelens.pipeline.typemap import (
    CSHARP,
    ELIXIR,
    GLEAM,
    JAVA,
    PHP,
    PYTHON,
    RUBY,
    RUST,
    SCALA,
    TABLES,
    map_type,
    split_generic,
    split_top_level,
)


class TestPython:
    @pytest.mark.parametrize(
        "expr, expected",
        [
            ("str", {"type": "string"}),
            ("int", {"type": "integer"}),
            ("float", {"type": "number"}),
            ("bool", {"type": "boolean"}),
            ("datetime", {"type": "string", "format": "date-time"}),
            ("UUID", {"type": "string", "format": "uuid"}),
            ("EmailStr", {"type": "string", "format": "email"}),
            ("List[str]", {"type": "array", "items": {"type": "string"}}),
            ("Optional[int]", {"type": "integer", "nullable": True}),
            ("int | None", {"type": "integer", "nullable": True}),
            ("Dict[str, int]", {"type": "object"}),
            ("Annotated[int, Query()]", {"type": "integer"}),
            ("typing.List[int]", {"type": "array", "items": {"type": "integer"}}),
            ("list", {"type": "array"}),
            ("set", {"type": "array"}),
            ("tuple", {"type": "array"}),
            ("Optional[list]", {"type": "array", "nullable": True}),
        ],
    )
    def test_mapping(self, expr: str, expected: dict) -> None:
        assert map_type(expr, PYTHON).to_openapi() == expected

    def test_unknown_name_is_string(self) -> None:
        assert map_type("SomethingElse", PYTHON) == Schema(type="string")

    def test_empty_expression_is_string(self) -> None:
        assert map_type("  ", PYTHON) == Schema(type="string")

    def test_union_of_several_with_none(self) -> None:
        schema = map_type("int | str | None", PYTHON)
        assert schema.type == "string"
        assert schema.nullable


class TestJava:
    def test_boxed_and_primitive(self) -> None:
        assert map_type("Long", JAVA).to_openapi() == {"type": "integer", "format": "int64"}
        assert map_type("int", JAVA).to_openapi() == {"type": "integer", "format": "int32"}

    def test_collections(self) -> None:
        schema = map_type("List<Long>", JAVA)
        assert schema.type == "array"
        assert schema.items.format == "int64"

    def test_array_suffix(self) -> None:
        assert map_type("String[]", JAVA).to_openapi() == {"type": "array", "items": {"type": "string"}}

    def test_byte_array_is_binary(self) -> None:
        assert map_type("byte[]", JAVA).to_openapi() == {"type": "string", "format": "binary"}

    def test_transparent_wrapper(self) -> None:
        assert map_type("ResponseEntity<Integer>", JAVA).format == "int32"

    def test_optional(self) -> None:
        assert map_type("Optional<String>", JAVA).nullable


class TestOtherLanguages:
    def test_csharp_nullable_suffix(self) -> None:
        assert map_type("int?", CSHARP).to_openapi() == {"type": "integer", "format": "int32", "nullable": True}

    def test_csharp_task_of_list(self) -> None:
        schema = map_type("Task<IEnumerable<Guid>>", CSHARP)
        assert schema.type == "array"
        assert schema.items.format == "uuid"

    def test_php_nullable_prefix_and_case(self) -> None:
        assert map_type("?int", PHP).to_openapi() == {"type": "integer", "nullable": True}
        assert map_type("STRING", PHP).type == "string"

    def test_php_cast_names(self) -> None:
        assert map_type("immutable_datetime", PHP).format == "date-time"
        assert map_type("real", PHP).type == "number"

    def test_rust_references_and_options(self) -> None:
        assert map_type("&str", RUST).type == "string"
        schema = map_type("Option<Vec<u8>>", RUST)
        assert schema.nullable
        assert schema.type == "array"
        assert schema.items.type == "integer"

    def test_rust_json_extractor(self) -> None:
        assert map_type("Json<i64>", RUST).format == "int64"

    def test_scala(self) -> None:
        assert map_type("Option[Int]", SCALA).to_openapi() == {"type": "integer", "format": "int32", "nullable": True}
        assert map_type("Seq[String]", SCALA).items.type == "string"

    def test_elixir(self) -> None:
        assert map_type("array(string)", ELIXIR).to_openapi() == {"type": "array", "items": {"type": "string"}}
        assert map_type("utc_datetime", ELIXIR).format == "date-time"

    def test_gleam(self) -> None:
        assert map_type("List(Int)", GLEAM).items.type == "integer"
        assert map_type("Option(String)", GLEAM).nullable

    def test_ruby(self) -> None:
        assert map_type("TrueClass", RUBY).type == "boolean"
        assert map_type("Array[Integer]", RUBY).items.type == "integer"

    def test_tables_are_indexed_by_language(self) -> None:
        assert set(TABLES) == {"python", "java", "scala", "csharp", "php", "rust", "elixir", "gleam", "ruby"}


class TestSplitting:
    def test_split_generic(self) -> None:
        assert split_generic("Dict[str, int]", (("[", "]"),)) == ("Dict", "str, int")

    def test_split_generic_requires_closing_at_end(self) -> None:
        assert split_generic("List<String> x", (("<", ">"),)) is None
        assert split_generic("String", (("<", ">"),)) is None

    def test_split_top_level(self) -> None:
        assert split_top_level("a, Map<b, c>, d") == ["a", "Map<b, c>", "d"]
        assert split_top_level("int | None", "|") == ["int", "None"]
