"""Tests for routelens.sources.python -- AST facts, models, docstrings."""

from __future__ import annotations

import textwrap

import pytest

from routelens.exceptions import SourceParseError
from routelens.sources.python import (
    find_calls,
    is_optional_annotation,
    parse_param_docs,
    pydantic_models,
    scan_python,
    split_docstring,
)


SOURCE = textwrap.dedent(
    '''
    from fastapi import APIRouter, FastAPI
    from pydantic import BaseModel, Field

    app = FastAPI()
    router = APIRouter(prefix="/users", tags=["users"])


    class Base(BaseModel):
        id: int


    class User(Base):
        """A registered user."""

        name: str = Field(..., description="Display name")
        email: str | None = None
        tags: list[str] = Field(default_factory=list)
        _secret: str = "x"


    @router.get("/{user_id}")
    async def read_user(user_id: int, verbose: bool = False) -> User:
        """Read one user.

        Args:
            user_id: The user's id.
            verbose: Include
                extra detail.
        """


    app.include_router(router, prefix="/api")
    '''
)


class TestScanPython:
    def test_calls(self) -> None:
        facts = scan_python(SOURCE, "main.py")
        by_target = {(c.target, c.assigned_to) for c in facts.calls}
        assert ("FastAPI", "app") in by_target
        assert ("APIRouter", "router") in by_target
        include = next(c for c in facts.calls if c.simple_name == "include_router")
        assert include.receiver == "app"
        assert include.arguments.positional == ["router"]
        assert include.arguments.keywords == {"prefix": "'/api'"}

    def test_functions(self) -> None:
        facts = scan_python(SOURCE, "main.py")
        func = facts.functions[0]
        assert func.name == "read_user"
        deco = func.decorator("get")
        assert deco is not None and deco.name == "router.get"
        assert deco.arguments.positional == ["'/{user_id}'"]
        assert [(p.name, p.annotation, p.default) for p in func.parameters] == [
            ("user_id", "int", None),
            ("verbose", "bool", "False"),
        ]
        assert func.return_type == "User"
        assert func.line == deco.line

    def test_methods_are_not_module_functions(self) -> None:
        facts = scan_python("class C:\n    def m(self, x: int):\n        pass\n")
        assert facts.functions == []
        assert [p.name for p in facts.classes[0].methods[0].parameters] == ["x"]

    def test_syntax_error(self) -> None:
        with pytest.raises(SourceParseError):
            scan_python("def broken(:\n", "bad.py")

    def test_plain_class_attributes_and_inner_classes(self) -> None:
        facts = scan_python(
            textwrap.dedent(
                """
                class UserSerializer(ModelSerializer):
                    email = EmailField(required=False)

                    class Meta:
                        fields = ["id", "email"]
                """
            )
        )
        cls = facts.classes[0]
        email = cls.field_named("email")
        assert email is not None and email.is_static
        assert email.default == "EmailField(required=False)"
        meta = cls.inner_class("Meta")
        assert meta is not None
        assert meta.field_named("fields").default == "['id', 'email']"
        assert cls.inner_class("Config") is None

    def test_find_calls_reaches_nested_calls(self) -> None:
        source = "urlpatterns = [\n    path('a/', views.a),\n    path('b/', include('b.urls')),\n]\n"
        calls = find_calls(source, ["path", "include"])
        assert [(c.simple_name, c.line) for c in calls] == [("path", 2), ("path", 3), ("include", 3)]
        assert calls[2].arguments.positional == ["'b.urls'"]

    def test_find_calls_syntax_error(self) -> None:
        with pytest.raises(SourceParseError):
            find_calls("urlpatterns = [\n", ["path"], "urls.py")


class TestPydanticModels:
    def test_inheritance_and_fields(self) -> None:
        models = {m.name: m for m in pydantic_models(scan_python(SOURCE))}
        assert set(models) == {"Base", "User"}
        user = models["User"]
        assert user.description == "A registered user."
        fields = {f.name: f for f in user.fields}
        assert list(fields) == ["id", "name", "email", "tags"]
        assert not fields["name"].has_default
        assert fields["name"].description == "Display name"
        assert fields["email"].is_optional and fields["email"].has_default
        assert fields["tags"].has_default

    @pytest.mark.parametrize(
        "annotation, expected",
        [
            ("Optional[int]", True),
            ("typing.Optional[str]", True),
            ("int | None", True),
            ("None | int", True),
            ("Union[int, None]", True),
            ("int", False),
            ("NoneLike", False),
        ],
    )
    def test_optional_annotations(self, annotation: str, expected: bool) -> None:
        assert is_optional_annotation(annotation) is expected


class TestDocstrings:
    def test_split(self) -> None:
        assert split_docstring("Summary.\n\nMore.") == ("Summary.", "Summary.\n\nMore.")
        assert split_docstring(None) == (None, None)

    def test_param_docs(self) -> None:
        facts = scan_python(SOURCE)
        docs = parse_param_docs(facts.functions[0].docstring)
        assert docs == {"user_id": "The user's id.", "verbose": "Include extra detail."}

    def test_param_docs_stop_at_next_section(self) -> None:
        doc = "X.\n\nArgs:\n    a: First.\n\nReturns:\n    thing: Not a param.\n"
        assert parse_param_docs(doc) == {"a": "First."}
