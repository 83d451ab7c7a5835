"""Tests for the Flask adapter."""

from __future__ import annotations

import pytest

from routelens.adapters.flask import FlaskAdapter
from routelens.models import HTTPMethod


APP = '''
from flask import Blueprint, Flask
from flask.views import MethodView

app = Flask(__name__)
bp = Blueprint("users", __name__, url_prefix="/users")


@app.route("/")
def index():
    """Landing page."""


@app.route("/submit", methods=["POST", "PUT"])
def submit():
    ...


@bp.get("/<int:user_id>")
def show(user_id):
    ...


class ItemAPI(MethodView):
    def get(self, item_id):
        """Fetch an item."""

    def delete(self, item_id):
        ...

    def helper(self):
        ...


class HealthView(MethodView):
    def get(self):
        ...


app.add_url_rule("/items/<item_id>", view_func=ItemAPI.as_view("item"))
app.register_blueprint(bp, url_prefix="/api/users")
'''


@pytest.fixture
def routes(make_source):
    return FlaskAdapter().extract_routes([make_source("app.py", APP)])


class TestFlaskRoutes:
    def test_function_routes(self, routes) -> None:
        assert [(r.method, r.path, r.handler) for r in routes[:3]] == [
            (HTTPMethod.GET, "/", "index"),
            (HTTPMethod.POST, "/submit", "submit"),
            (HTTPMethod.GET, "/api/users/{user_id}", "show"),
        ]

    def test_only_first_method_is_used(self, routes) -> None:
        assert [r.method for r in routes if r.path == "/submit"] == [HTTPMethod.POST]

    def test_converter_type(self, routes) -> None:
        assert routes[2].parameters[0].schema_.type == "integer"

    def test_summary_from_docstring(self, routes) -> None:
        assert routes[0].summary == "Landing page."
        assert routes[0].operation_id == "getIndex"

    def test_method_view(self, routes) -> None:
        views = [r for r in routes if r.handler.startswith("ItemAPI.")]
        assert [(r.method, r.path) for r in views] == [
            (HTTPMethod.GET, "/items/{item_id}"),
            (HTTPMethod.DELETE, "/items/{item_id}"),
        ]
        assert views[0].operation_id == "getItemsByitem_id"
        assert views[0].tags == ["Item"]
        assert views[0].summary == "Fetch an item."

    def test_unregistered_view_uses_class_name(self, routes) -> None:
        health = [r for r in routes if r.handler == "HealthView.get"]
        assert [r.path for r in health] == ["/health"]


class TestFlaskSchemas:
    def test_no_models(self, make_source) -> None:
        assert FlaskAdapter().extract_schemas([make_source("app.py", APP)]) == []

    def test_pydantic_models(self, make_source) -> None:
        source = make_source(
            "models.py",
            """
            from pydantic import BaseModel

            class Item(BaseModel):
                name: str
                price: float = 0.0
            """,
        )
        [schema] = FlaskAdapter().extract_schemas([source])
        assert schema.title == "Item"
        assert schema.required == ["name"]
