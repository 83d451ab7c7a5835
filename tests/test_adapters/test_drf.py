"""Tests for the Django REST framework adapter."""

from __future__ import annotations

import pytest

from routelens.adapters.drf import DRFAdapter, UrlConf, regex_route, schema_name
from routelens.models import HTTPMethod


PROJECT_URLS = """
    from django.urls import include, path, re_path

    from users import views

    urlpatterns = [
        path("api/", include("api.urls")),
        path("users/<int:pk>/", views.user_detail),
        re_path(r"^reports/(?P<year>[0-9]{4})/$", views.ReportView.as_view()),
    ]
"""

API_URLS = """
    from django.urls import include, path
    from rest_framework.routers import DefaultRouter

    from users.views import UserViewSet

    router = DefaultRouter()
    router.register(r"users", UserViewSet, basename="user")

    urlpatterns = [
        path("", include(router.urls)),
    ]
"""

VIEWS = '''
    from rest_framework import generics, mixins, viewsets
    from rest_framework.decorators import action, api_view

    from users.serializers import UserSerializer


    class UserViewSet(viewsets.ModelViewSet):
        """Users."""

        serializer_class = UserSerializer

        @action(detail=True, methods=["post"], url_path="set-password")
        def set_password(self, request, pk=None):
            """Change the password."""

        @action(detail=False)
        def recent(self, request):
            pass


    class TagViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
        lookup_field = "slug"


    @api_view(["GET", "PUT"])
    def user_detail(request, pk):
        """Read or replace one user."""


    @api_view()
    def health_check(request):
        pass


    class ReportView(generics.ListCreateAPIView):
        serializer_class = UserSerializer

        def delete(self, request, year):
            pass
'''

SERIALIZERS = '''
    from rest_framework import serializers


    class ProfileSerializer(serializers.Serializer):
        bio = serializers.CharField(required=False, allow_blank=True)
        website = serializers.URLField(allow_null=True, help_text="Personal site")


    class UserSerializer(serializers.ModelSerializer):
        """A registered user."""

        profile = ProfileSerializer(read_only=True)
        tags = serializers.ListField(child=serializers.IntegerField())
        groups = serializers.PrimaryKeyRelatedField(many=True, queryset=Group.objects.all())

        class Meta:
            model = User
            fields = ["id", "username", "email", "profile", "tags", "created_at"]
            read_only_fields = ["id"]
'''


@pytest.fixture
def routes(make_source):
    files = [
        make_source("mysite/urls.py", PROJECT_URLS),
        make_source("api/urls.py", API_URLS),
        make_source("users/views.py", VIEWS),
    ]
    return DRFAdapter().extract_routes(files)


def _by_handler(routes, prefix):
    return [(r.method.value, r.path, r.operation_id) for r in routes if r.handler.startswith(prefix)]


class TestFunctionViews:
    def test_api_view_expands_methods_at_mounted_path(self, routes) -> None:
        detail = [r for r in routes if r.handler == "user_detail"]
        assert [(r.method, r.path) for r in detail] == [
            (HTTPMethod.GET, "/users/{pk}/"),
            (HTTPMethod.PUT, "/users/{pk}/"),
        ]
        assert detail[0].summary == "Read or replace one user."
        assert detail[0].parameters[0].schema_.type == "integer"

    def test_unmounted_function_gets_derived_path(self, routes) -> None:
        health = [r for r in routes if r.handler == "health_check"]
        assert [(r.method, r.path) for r in health] == [(HTTPMethod.GET, "/health-check")]


class TestViewSets:
    def test_router_registration_under_include(self, routes) -> None:
        assert _by_handler(routes, "UserViewSet.") == [
            ("GET", "/api/users/", "getList"),
            ("POST", "/api/users/", "postCreate"),
            ("GET", "/api/users/{pk}/", "getRetrieve"),
            ("PUT", "/api/users/{pk}/", "putUpdate"),
            ("PATCH", "/api/users/{pk}/", "patchPartial_update"),
            ("DELETE", "/api/users/{pk}/", "deleteDestroy"),
            ("POST", "/api/users/{pk}/set-password/", "postSet_password"),
            ("GET", "/api/users/recent/", "getRecent"),
        ]

    def test_serializer_drives_bodies_and_responses(self, routes) -> None:
        users = {(r.method.value, r.operation_id): r for r in routes if r.handler.startswith("UserViewSet.")}
        create = users[("POST", "postCreate")]
        assert create.request_body is not None and create.request_body.required
        assert create.request_body.content["application/json"].schema_.ref == "#/components/schemas/User"
        assert list(create.responses) == ["201"]
        assert not users[("PATCH", "patchPartial_update")].request_body.required
        listing = users[("GET", "getList")].responses["200"].content["application/json"].schema_
        assert listing.type == "array"
        assert list(users[("DELETE", "deleteDestroy")].responses) == ["204"]

    def test_tags_and_summaries(self, routes) -> None:
        set_password = next(r for r in routes if r.handler == "UserViewSet.set_password")
        assert set_password.tags == ["UserViewSet"]
        assert set_password.summary == "Change the password."

    def test_mixins_and_lookup_field(self, routes) -> None:
        assert _by_handler(routes, "TagViewSet.") == [
            ("GET", "/tag", "getList"),
            ("GET", "/tag/{slug}", "getRetrieve"),
        ]

    def test_router_without_trailing_slash(self, make_source) -> None:
        source = make_source(
            "shop/urls.py",
            """
            from rest_framework import routers, viewsets


            class ItemViewSet(viewsets.ReadOnlyModelViewSet):
                pass


            router = routers.SimpleRouter(trailing_slash=False)
            router.register("items", ItemViewSet)
            urlpatterns = router.urls
            """,
        )
        routes = DRFAdapter().extract_routes([source])
        assert [(r.method.value, r.path) for r in routes] == [("GET", "/items"), ("GET", "/items/{pk}")]


class TestGenericViews:
    def test_methods_from_definitions_and_name(self, routes) -> None:
        assert _by_handler(routes, "ReportView.") == [
            ("DELETE", "/reports/{year}/", "deleteReportsByyear"),
            ("GET", "/reports/{year}/", "getReportsByyear"),
            ("POST", "/reports/{year}/", "postReportsByyear"),
        ]
        post = next(r for r in routes if r.handler == "ReportView.post")
        assert post.request_body is not None


class TestErrors:
    def test_broken_file_does_not_hide_others(self, make_source) -> None:
        files = [
            make_source("broken/urls.py", "urlpatterns = [\n"),
            make_source("users/views.py", VIEWS),
        ]
        routes = DRFAdapter().extract_routes(files)
        assert any(r.handler == "UserViewSet.list" for r in routes)

    def test_files_without_rest_framework_are_ignored(self, make_source) -> None:
        source = make_source("app/views.py", "def api_view(f):\n    return f\n\n@api_view\ndef x():\n    pass\n")
        assert DRFAdapter().extract_routes([source]) == []


class TestSchemas:
    @pytest.fixture
    def schemas(self, make_source):
        source = make_source("users/serializers.py", SERIALIZERS)
        return {s.title: s for s in DRFAdapter().extract_schemas([source])}

    def test_names_drop_serializer_suffix(self, schemas) -> None:
        assert set(schemas) == {"Profile", "User"}
        assert schemas["User"].description == "A registered user."

    def test_declared_fields(self, schemas) -> None:
        profile = schemas["Profile"]
        assert profile.required == []
        assert profile.properties["website"].format == "uri"
        assert profile.properties["website"].nullable
        assert profile.properties["website"].description == "Personal site"

    def test_meta_fields_order_and_types(self, schemas) -> None:
        user = schemas["User"]
        assert list(user.properties) == ["id", "username", "email", "profile", "tags", "created_at", "groups"]
        assert user.properties["id"].type == "integer"
        assert user.properties["email"].format == "email"
        assert user.properties["profile"].type == "object"
        assert user.properties["tags"].items.type == "integer"
        assert user.properties["created_at"].format == "date-time"
        assert user.required == ["tags", "groups"]


class TestUrlConf:
    @pytest.mark.parametrize(
        ("pattern", "expected"),
        [
            (r"^reports/(?P<year>[0-9]{4})/$", "reports/<year>/"),
            (r"^files/(?P<name>(foo|bar))\.txt$", "files/<name>.txt"),
            ("^$", ""),
        ],
    )
    def test_regex_route(self, pattern: str, expected: str) -> None:
        assert regex_route(pattern) == expected

    def test_include_chain(self, make_source) -> None:
        conf = UrlConf()
        conf.read(make_source("mysite/urls.py", PROJECT_URLS))
        conf.read(make_source("api/urls.py", API_URLS))
        assert conf.chain("api/urls.py") == ["api/"]
        assert conf.viewset_mounts("UserViewSet") == [(["api/", ""], "users", True)]

    def test_schema_name(self) -> None:
        assert schema_name("serializers.UserSerializer") == "User"
        assert schema_name("Serializer") == "Serializer"


class TestDetection:
    def test_requirements(self, write_project) -> None:
        root = write_project({"requirements.txt": "Django==5.0\ndjangorestframework==3.15\n"})
        assert DRFAdapter().detect(root)

    def test_plain_django_is_not_drf(self, write_project) -> None:
        root = write_project({"requirements.txt": "Django==5.0\n"})
        assert not DRFAdapter().detect(root)
