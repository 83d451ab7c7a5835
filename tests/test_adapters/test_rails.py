"""Tests for the Rails adapter."""

from __future__ import annotations

import pytest

from routelens.adapters.rails import RailsAdapter, strip_optional, symbols
from routelens.models import HTTPMethod


ROUTES = """Rails.application.routes.draw do
  root 'pages#home'

  get 'about', to: 'pages#about'
  get 'status' => 'health#show'
  match 'search', to: 'search#index', via: [:get, :post]

  resources :photos, only: [:index, :show] do
    member do
      post :like
    end
    collection do
      get :popular
    end
    resources :comments, only: %i[index create]
  end

  resource :profile, except: [:new, :edit, :destroy]

  namespace :admin do
    resources :users, only: :index
    get 'stats(.:format)', to: 'dashboard#stats'
  end

  scope '/v1', module: 'api' do
    resources :tokens, param: :token, only: [:show, :destroy]
  end

  # get 'commented', to: 'pages#gone'
end
"""

CONTROLLER = """class Admin::UsersController < ApplicationController
  def show
    user = User.find(params[:id])
    render json: { id: user.id, name: user.name, active: true, created_at: user.created_at }
  end

  def error
    render json: { error: 'not found' }, status: :not_found
  end

  private

  def user_params
    params.require(:user_account).permit(:name, :email, :team_id, tags: [])
  end
end
"""


def _summary(routes):
    return [(r.method.value, r.path, r.handler) for r in routes]


@pytest.fixture
def routes(make_source):
    return RailsAdapter().extract_routes([make_source("config/routes.rb", ROUTES)])


class TestRailsRoutes:
    def test_routes(self, routes) -> None:
        assert _summary(routes) == [
            ("GET", "/", "pages#home"),
            ("GET", "/about", "pages#about"),
            ("GET", "/status", "health#show"),
            ("GET", "/search", "search#index"),
            ("POST", "/search", "search#index"),
            ("GET", "/photos", "photos#index"),
            ("GET", "/photos/{id}", "photos#show"),
            ("POST", "/photos/{id}/like", "photos#like"),
            ("GET", "/photos/popular", "photos#popular"),
            ("GET", "/photos/{photo_id}/comments", "comments#index"),
            ("POST", "/photos/{photo_id}/comments", "comments#create"),
            ("POST", "/profile", "profile#create"),
            ("GET", "/profile", "profile#show"),
            ("PUT", "/profile", "profile#update"),
            ("PATCH", "/profile", "profile#update"),
            ("GET", "/admin/users", "admin/users#index"),
            ("GET", "/admin/stats", "admin/dashboard#stats"),
            ("GET", "/v1/tokens/{token}", "api/tokens#show"),
            ("DELETE", "/v1/tokens/{token}", "api/tokens#destroy"),
        ]

    def test_operation_ids_follow_actions(self, routes) -> None:
        assert routes[0].operation_id == "getHome"
        assert routes[7].operation_id == "postLike"

    def test_tags_and_lines(self, routes) -> None:
        assert routes[6].tags == ["photos"]
        assert routes[6].source_line == 8
        assert routes[1].source_line == 4

    def test_only_route_files_are_read(self, make_source) -> None:
        source = make_source("app/models/user.rb", "get 'x', to: 'a#b'\n")
        assert RailsAdapter().extract_routes([source]) == []

    def test_bare_path_names_controller(self, make_source) -> None:
        source = make_source("config/routes.rb", "Rails.application.routes.draw do\n  get 'reports/summary'\nend\n")
        routes = RailsAdapter().extract_routes([source])
        assert _summary(routes) == [("GET", "/reports/summary", "reports#summary")]

    def test_match_all(self, make_source) -> None:
        source = make_source("config/routes/api.rb", "match 'hook', to: 'hooks#receive', via: :all\n")
        assert [r.method for r in RailsAdapter().extract_routes([source])] == [
            HTTPMethod.GET,
            HTTPMethod.POST,
            HTTPMethod.PUT,
            HTTPMethod.PATCH,
            HTTPMethod.DELETE,
        ]


class TestRailsSchemas:
    @pytest.fixture
    def schemas(self, make_source):
        source = make_source("app/controllers/admin/users_controller.rb", CONTROLLER)
        return {s.title: s for s in RailsAdapter().extract_schemas([source])}

    def test_names(self, schemas) -> None:
        assert set(schemas) == {"User", "UserAccountRequest"}

    def test_render_hash_types(self, schemas) -> None:
        user = schemas["User"]
        assert list(user.properties) == ["id", "name", "active", "created_at"]
        assert user.properties["id"].type == "integer"
        assert user.properties["active"].type == "boolean"
        assert user.properties["created_at"].format == "date-time"

    def test_permitted_params(self, schemas) -> None:
        request = schemas["UserAccountRequest"]
        assert list(request.properties) == ["name", "email", "team_id", "tags"]
        assert request.properties["team_id"].type == "integer"
        assert request.properties["tags"].type == "array"

    def test_non_controllers_are_ignored(self, make_source) -> None:
        source = make_source("app/models/user.rb", CONTROLLER)
        assert RailsAdapter().extract_schemas([source]) == []


class TestHelpers:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (":index", ["index"]),
            ("[:index, :show]", ["index", "show"]),
            ("%i[new edit]", ["new", "edit"]),
            ("['create']", ["create"]),
            (None, []),
        ],
    )
    def test_symbols(self, raw, expected) -> None:
        assert symbols(raw) == expected

    def test_strip_optional(self) -> None:
        assert strip_optional("/photos(.:format)") == "/photos"
        assert strip_optional("/files(/:dir(/:name))") == "/files"


class TestRailsDetection:
    def test_gemfile(self, write_project) -> None:
        assert RailsAdapter().detect(write_project({"Gemfile": "gem 'rails', '~> 7.1'\n"}))

    def test_routes_file(self, write_project) -> None:
        assert RailsAdapter().detect(write_project({"config/routes.rb": "Rails.application.routes.draw do\nend\n"}))

    def test_sinatra_is_not_rails(self, write_project) -> None:
        assert not RailsAdapter().detect(write_project({"Gemfile": "gem 'sinatra'\n"}))
