"""Tests for the Rocket adapter."""

from __future__ import annotations

import pytest

from routelens.adapters.rocket import RocketAdapter, _rename, module_path, mount_entry
from routelens.models import HTTPMethod, ParameterLocation


MAIN = """
#[macro_use] extern crate rocket;

mod users;

#[launch]
fn rocket() -> _ {
    rocket::build()
        .mount("/users", routes![users::list_users, users::get_user, users::create_user])
        .mount("/", routes![health])
}

#[get("/health")]
fn health() -> &'static str {
    "ok"
}
"""

USERS = """
use rocket::serde::json::Json;

#[derive(Serialize, Deserialize)]
#[serde(rename_all = "camelCase")]
pub struct User {
    pub user_id: u64,
    pub display_name: String,
    #[serde(default)]
    pub nick_name: Option<String>,
    #[serde(skip)]
    pub secret: String,
}

pub struct Internal {
    pub value: u32,
}

#[get("/all")]
pub fn list_users() -> Json<Vec<User>> {
    todo!()
}

#[get("/<id>?<verbose>")]
pub fn get_user(id: u64, verbose: Option<bool>) -> Option<Json<User>> {
    todo!()
}

#[post("/new", data = "<user>")]
pub fn create_user(user: Json<User>) -> Json<User> {
    todo!()
}

#[get("/orphan/<name>")]
fn orphan(name: &str) {}
"""


@pytest.fixture
def files(make_source):
    return [make_source("src/main.rs", MAIN), make_source("src/users.rs", USERS)]


@pytest.fixture
def routes(files):
    return RocketAdapter().extract_routes(files)


class TestRocketRoutes:
    def test_mount_prefixes_across_files(self, routes) -> None:
        assert [(r.method, r.path, r.handler) for r in routes] == [
            (HTTPMethod.GET, "/health", "health"),
            (HTTPMethod.GET, "/users/all", "list_users"),
            (HTTPMethod.GET, "/users/{id}", "get_user"),
            (HTTPMethod.POST, "/users/new", "create_user"),
            (HTTPMethod.GET, "/orphan/{name}", "orphan"),
        ]

    def test_source_file(self, routes) -> None:
        assert routes[0].source_file == "src/main.rs"
        assert routes[1].source_file == "src/users.rs"

    def test_path_and_query_parameters(self, routes) -> None:
        get_user = routes[2]
        by_name = {p.name: p for p in get_user.parameters}
        assert by_name["id"].location == ParameterLocation.PATH
        assert by_name["id"].schema_.type == "integer"
        assert by_name["id"].schema_.format == "int64"
        assert by_name["verbose"].location == ParameterLocation.QUERY
        assert by_name["verbose"].schema_.type == "boolean"
        assert not by_name["verbose"].required

    def test_request_body_from_data_attribute(self, routes) -> None:
        body = routes[3].request_body
        assert body is not None
        assert body.content["application/json"].schema_.ref == "#/components/schemas/User"

    def test_responses(self, routes) -> None:
        listed = routes[1].responses["200"].content["application/json"].schema_
        assert listed.type == "array"
        assert listed.items.ref == "#/components/schemas/User"
        shown = routes[2].responses["200"].content["application/json"].schema_
        assert shown.ref == "#/components/schemas/User"
        assert routes[0].responses == {}

    def test_single_file_extraction_ignores_other_mounts(self, make_source) -> None:
        routes = RocketAdapter().file_routes(make_source("src/users.rs", USERS))
        assert [r.path for r in routes][:2] == ["/all", "/{id}"]

    def test_route_attribute_with_method(self, make_source) -> None:
        source = make_source(
            "src/main.rs",
            """
            #[route(PUT, uri = "/items/<id>")]
            fn replace(id: i32) {}
            """,
        )
        routes = RocketAdapter().extract_routes([source])
        assert [(r.method, r.path) for r in routes] == [(HTTPMethod.PUT, "/items/{id}")]
        assert routes[0].parameters[0].schema_.format == "int32"

    def test_same_named_handlers_keep_their_own_mounts(self, make_source) -> None:
        main = make_source(
            "src/main.rs",
            """
            fn rocket() -> _ {
                rocket::build()
                    .mount("/users", routes![users::list])
                    .mount("/posts", routes![crate::posts::list])
            }
            """,
        )
        handler = """
            #[get("/")]
            pub fn list() {}
            """
        files = [main, make_source("src/users.rs", handler), make_source("src/posts.rs", handler)]
        routes = RocketAdapter().extract_routes(files)
        assert [(r.source_file, r.path) for r in routes] == [
            ("src/users.rs", "/users/"),
            ("src/posts.rs", "/posts/"),
        ]

    def test_inline_modules_qualify_handlers(self, make_source) -> None:
        source = make_source(
            "src/main.rs",
            """
            mod users {
                #[get("/<id>")]
                pub fn show(id: u32) {}
            }

            mod admin {
                #[get("/<id>")]
                pub fn show(id: u32) {}
            }

            fn rocket() -> _ {
                rocket::build()
                    .mount("/users", routes![users::show])
                    .mount("/admin", routes![admin::show])
            }
            """,
        )
        routes = RocketAdapter().extract_routes([source])
        assert [r.path for r in routes] == ["/users/{id}", "/admin/{id}"]

    def test_module_path(self) -> None:
        assert module_path("src/main.rs") == ()
        assert module_path("src/lib.rs") == ()
        assert module_path("src/api/users.rs") == ("api", "users")
        assert module_path("server/src/api/users/mod.rs") == ("api", "users")

    def test_mount_entry(self) -> None:
        assert mount_entry("crate::api::users::list") == (("api", "users"), "list")
        assert mount_entry(" health ") == ((), "health")


class TestRocketSchemas:
    def test_serde_struct(self, files) -> None:
        schemas = RocketAdapter().extract_schemas(files)
        assert [s.title for s in schemas] == ["User"]
        user = schemas[0]
        assert list(user.properties) == ["userId", "displayName", "nickName"]
        assert user.required == ["userId", "displayName"]
        assert user.properties["nickName"].nullable

    def test_rename_rules(self) -> None:
        assert _rename("created_at", "camelCase") == "createdAt"
        assert _rename("created_at", "PascalCase") == "CreatedAt"
        assert _rename("created_at", "kebab-case") == "created-at"
        assert _rename("created_at", "SCREAMING_SNAKE_CASE") == "CREATED_AT"
        assert _rename("created_at", None) == "created_at"


class TestRocketDetection:
    def test_cargo_dependency(self, write_project) -> None:
        root = write_project({"Cargo.toml": '[dependencies]\nrocket = { version = "0.5", features = ["json"] }\n'})
        assert RocketAdapter().detect(root)

    def test_other_crate(self, write_project) -> None:
        root = write_project({"Cargo.toml": '[dependencies]\naxum = "0.7"\n'})
        assert not RocketAdapter().detect(root)
