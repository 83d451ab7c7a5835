"""Tests for the Laravel adapter."""

from __future__ import annotations

import pytest

from routelens.adapters.laravel import LaravelAdapter
from routelens.models import HTTPMethod


API_ROUTES = """<?php

use App\\Http\\Controllers\\UserController;
use Illuminate\\Support\\Facades\\Route;

Route::get('/status', function () {
    return ['ok' => true];
});

Route::prefix('v1')->middleware('auth:sanctum')->group(function () {
    Route::get('/users/{id}', [UserController::class, 'show']);
    Route::post('users', 'UserController@store');
    Route::controller(OrderController::class)->prefix('orders')->group(function () {
        Route::get('/{order}', 'show');
    });
});

Route::match(['get', 'post'], '/search', [SearchController::class, 'run']);
Route::any('/webhook', WebhookController::class);
Route::apiResource('photos', PhotoController::class)->only(['index', 'show']);
Route::resource('posts', PostController::class, ['except' => ['create', 'edit', 'destroy']]);
// Route::get('/commented', fn () => 1);
"""

WEB_ROUTES = """<?php

Route::get('/', fn () => view('welcome'));
Route::group(['prefix' => 'admin', 'controller' => 'App\\Http\\Controllers\\AdminController'], function () {
    Route::get('/dashboard', 'index');
});
"""

MODELS = """<?php

namespace App\\Models;

class User extends Model
{
    protected $fillable = ['name', 'email'];

    protected $casts = [
        'email_verified_at' => 'datetime',
        'is_admin' => 'boolean',
        'age' => 'integer',
    ];
}

final class UserData
{
    public static int $count = 0;
    public string $nickname = '';

    public function __construct(
        public readonly string $name,
        public ?int $age = null,
        private string $secret,
    ) {}
}

class UserController extends Controller
{
    public string $view = 'users';
}
"""


@pytest.fixture
def routes(make_source):
    return LaravelAdapter().extract_routes([make_source("routes/api.php", API_ROUTES)])


def _find(routes, method, path):
    return [r for r in routes if r.method == method and r.path == path]


class TestLaravelRoutes:
    def test_closure_route_uses_path_id(self, routes) -> None:
        status = routes[0]
        assert (status.method, status.path) == (HTTPMethod.GET, "/api/status")
        assert status.operation_id == "getApiStatus"
        assert status.tags == ["status"]

    def test_group_prefixes(self, routes) -> None:
        assert [(r.method, r.path, r.handler, r.operation_id) for r in routes[1:4]] == [
            (HTTPMethod.GET, "/api/v1/users/{id}", "UserController@show", "getShow"),
            (HTTPMethod.POST, "/api/v1/users", "UserController@store", "postStore"),
            (HTTPMethod.GET, "/api/v1/orders/{order}", "OrderController@show", "getShow"),
        ]

    def test_match(self, routes) -> None:
        search = [r for r in routes if r.path == "/api/search"]
        assert [(r.method, r.operation_id) for r in search] == [
            (HTTPMethod.GET, "getRun"),
            (HTTPMethod.POST, "postRun"),
        ]

    def test_any_expands_to_standard_verbs(self, routes) -> None:
        webhook = [r for r in routes if r.path == "/api/webhook"]
        assert [r.method.value for r in webhook] == ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
        assert webhook[0].handler == "WebhookController"

    def test_api_resource_only(self, routes) -> None:
        photos = [(r.method, r.path, r.handler) for r in routes if r.path.startswith("/api/photos")]
        assert photos == [
            (HTTPMethod.GET, "/api/photos", "PhotoController@index"),
            (HTTPMethod.GET, "/api/photos/{id}", "PhotoController@show"),
        ]

    def test_resource_except_option(self, routes) -> None:
        posts = [(r.method.value, r.path) for r in routes if r.path.startswith("/api/posts")]
        assert posts == [
            ("GET", "/api/posts"),
            ("POST", "/api/posts"),
            ("GET", "/api/posts/{id}"),
            ("PUT", "/api/posts/{id}"),
            ("PATCH", "/api/posts/{id}"),
        ]

    def test_commented_routes_are_ignored(self, routes) -> None:
        assert not [r for r in routes if r.path.endswith("/commented")]
        assert len(routes) == 19

    def test_web_routes_have_no_api_prefix(self, make_source) -> None:
        routes = LaravelAdapter().extract_routes([make_source("routes/web.php", WEB_ROUTES)])
        assert [(r.path, r.handler, r.operation_id) for r in routes] == [
            ("/", "<anonymous>", "get"),
            ("/admin/dashboard", "AdminController@index", "getIndex"),
        ]


class TestLaravelSchemas:
    @pytest.fixture
    def schemas(self, make_source):
        return {s.title: s for s in LaravelAdapter().extract_schemas([make_source("app/Models/User.php", MODELS)])}

    def test_controllers_are_skipped(self, schemas) -> None:
        assert set(schemas) == {"User", "UserData"}

    def test_eloquent_fillable_and_casts(self, schemas) -> None:
        user = schemas["User"]
        assert list(user.properties) == ["name", "email", "email_verified_at", "is_admin", "age"]
        assert user.properties["email_verified_at"].format == "date-time"
        assert user.properties["is_admin"].type == "boolean"
        assert user.properties["age"].type == "integer"
        assert user.required == []

    def test_plain_class_properties(self, schemas) -> None:
        data = schemas["UserData"]
        assert list(data.properties) == ["name", "age", "nickname"]
        assert data.required == ["name"]
        assert data.properties["age"].nullable


class TestLaravelDetection:
    def test_composer(self, write_project) -> None:
        root = write_project({"composer.json": '{"require": {"laravel/framework": "^11.0"}}'})
        assert LaravelAdapter().detect(root)

    def test_symfony(self, write_project) -> None:
        root = write_project({"composer.json": '{"require": {"symfony/framework-bundle": "^7.0"}}'})
        assert not LaravelAdapter().detect(root)
