"""Tests for the Gleam (Wisp) adapter."""

from __future__ import annotations

import pytest

from routelens.adapters.gleam import GleamAdapter, dispatch_arms, segment_path
from routelens.models import HTTPMethod


ROUTER = """
import gleam/http.{Get, Post}
import wisp.{type Request, type Response}

pub fn handle_request(req: Request) -> Response {
  use req <- web.middleware(req)
  case wisp.path_segments(req) {
    [] -> home(req)
    ["users"] -> users_handler(req)
    ["users", id] -> show_user(req, id)
    ["files", ..rest] -> serve(req, rest)
    ["legacy"] | ["old"] -> wisp.redirect("/")
    ["items", _] -> wisp.not_found()
    // ["commented"] -> home(req)
    _ -> wisp.not_found()
  }
}

fn home(req: Request) -> Response {
  wisp.ok()
}

fn users_handler(req: Request) -> Response {
  case req.method {
    Get -> list_users(req)
    Post -> create_user(req)
    _ -> wisp.method_not_allowed([Get, Post])
  }
}

fn show_user(req: Request, id: String) -> Response {
  use <- wisp.require_method(req, http.Delete)
  wisp.ok()
}
"""

TYPES = """
import gleam/option.{type Option}

pub type User {
  User(id: Int, name: String, email: Option(String))
  Guest(name: String)
}

pub type Color {
  Red
  Green
}

type Internal {
  Internal(secret: String)
}
"""


@pytest.fixture
def routes(make_source):
    return GleamAdapter().extract_routes([make_source("src/app/router.gleam", ROUTER)])


class TestGleamRoutes:
    def test_routes(self, routes) -> None:
        assert [(r.method, r.path, r.handler) for r in routes] == [
            (HTTPMethod.GET, "/", "home"),
            (HTTPMethod.GET, "/users", "users_handler"),
            (HTTPMethod.POST, "/users", "users_handler"),
            (HTTPMethod.DELETE, "/users/{id}", "show_user"),
            (HTTPMethod.GET, "/files/{rest}", "serve"),
            (HTTPMethod.GET, "/legacy", "<anonymous>"),
            (HTTPMethod.GET, "/old", "<anonymous>"),
        ]

    def test_operation_ids(self, routes) -> None:
        assert routes[0].operation_id == "getHome"
        assert routes[3].operation_id == "deleteShow_user"
        assert routes[5].operation_id == "getLegacy"

    def test_path_parameters(self, routes) -> None:
        assert [p.name for p in routes[3].parameters] == ["id"]
        assert routes[3].tags == ["users"]

    def test_dispatch_arms(self) -> None:
        arms = dispatch_arms('["a"] | ["b"] -> x(req)\n  [] -> y(req)\n  _ -> z()')
        assert [arm.segments for arm in arms] == [['"a"'], ['"b"'], []]
        assert arms[0].body == "x(req)"

    def test_segment_path(self) -> None:
        assert segment_path([]) == "/"
        assert segment_path(['"users"', "id"]) == "/users/:id"
        assert segment_path(['"static"', "..files"]) == "/static/*files"
        assert segment_path(['"users"', "_"]) is None
        assert segment_path(['"prefix-" <> rest']) is None


class TestGleamSchemas:
    def test_public_custom_types(self, make_source) -> None:
        schemas = GleamAdapter().extract_schemas([make_source("src/app/user.gleam", TYPES)])
        assert [s.title for s in schemas] == ["User"]
        user = schemas[0]
        assert list(user.properties) == ["id", "name", "email"]
        assert user.required == ["name"]
        assert user.properties["id"].type == "integer"
        assert user.properties["email"].nullable


class TestGleamDetection:
    def test_gleam_toml(self, write_project) -> None:
        root = write_project({"gleam.toml": '[dependencies]\nwisp = ">= 1.0.0 and < 2.0.0"\n'})
        assert GleamAdapter().detect(root)
