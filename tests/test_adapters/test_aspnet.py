"""Tests for the ASP.NET Core adapter."""

from __future__ import annotations

import pytest

from routelens.adapters.aspnet import AspNetAdapter
from routelens.models import HTTPMethod, ParameterLocation


CONTROLLER = """
using Microsoft.AspNetCore.Mvc;

namespace Shop.Controllers;

[ApiController]
[Route("api/[controller]")]
public class ProductsController : ControllerBase
{
    [HttpGet]
    public ActionResult<IEnumerable<Product>> List([FromHeader(Name = "X-Tenant")] string tenant, [FromQuery] int page = 1)
    {
        return Ok();
    }

    [HttpGet("{id:int}")]
    public async Task<ActionResult<Product>> Get(int id, CancellationToken token)
    {
        return Ok();
    }

    [HttpPost]
    public IActionResult Create([FromBody] Product product)
    {
        return Ok();
    }

    [HttpDelete("/admin/products/{id}")]
    public Task Delete(Guid id)
    {
        return Task.CompletedTask;
    }

    [HttpPut("[action]/{id}")]
    public Product Rename(int id, string? name)
    {
        return null;
    }

    private void Helper() { }
}
"""

PROGRAM = """
var builder = WebApplication.CreateBuilder(args);
var app = builder.Build();

var api = app.MapGroup("/api");
var todos = api.MapGroup("/todos");

todos.MapGet("/{id}", (int id) => Results.Ok(id));
// app.MapGet("/commented", () => "no");
app.MapDelete("/health", () => Results.NoContent());

app.Run();
"""

MODELS = """
namespace Shop.Models;

public class Product
{
    public int Id { get; set; }
    public string Name { get; set; } = "";
    public decimal? Price { get; set; }
    public static int Count { get; set; }
}

public record Point(int X, int Y);

public class Empty
{
}
"""


@pytest.fixture
def routes(make_source):
    return AspNetAdapter().extract_routes([make_source("Controllers/ProductsController.cs", CONTROLLER)])


class TestControllerRoutes:
    def test_routes(self, routes) -> None:
        assert [(r.method, r.path, r.handler) for r in routes] == [
            (HTTPMethod.GET, "/api/products", "List"),
            (HTTPMethod.GET, "/api/products/{id}", "Get"),
            (HTTPMethod.POST, "/api/products", "Create"),
            (HTTPMethod.DELETE, "/admin/products/{id}", "Delete"),
            (HTTPMethod.PUT, "/api/products/rename/{id}", "Rename"),
        ]

    def test_tags_from_controller(self, routes) -> None:
        assert all(r.tags == ["Products"] for r in routes)

    def test_header_and_query(self, routes) -> None:
        tenant, page = routes[0].parameters
        assert (tenant.name, tenant.location, tenant.required) == ("X-Tenant", ParameterLocation.HEADER, True)
        assert (page.name, page.location, page.required) == ("page", ParameterLocation.QUERY, False)
        assert page.schema_.format == "int32"

    def test_route_constraint_and_services(self, routes) -> None:
        get = routes[1]
        assert [p.name for p in get.parameters] == ["id"]
        assert get.parameters[0].schema_.type == "integer"

    def test_guid_path_parameter(self, routes) -> None:
        param = routes[3].parameters[0]
        assert param.schema_.format == "uuid"
        assert not param.schema_.nullable

    def test_nullable_query_is_optional(self, routes) -> None:
        name = next(p for p in routes[4].parameters if p.name == "name")
        assert name.location == ParameterLocation.QUERY
        assert not name.required

    def test_request_body(self, routes) -> None:
        assert routes[2].request_body.content["application/json"].schema_.ref == "#/components/schemas/Product"

    def test_responses(self, routes) -> None:
        listed = routes[0].responses["200"].content["application/json"].schema_
        assert listed.type == "array"
        assert listed.items.ref == "#/components/schemas/Product"
        assert routes[1].responses["200"].content["application/json"].schema_.ref == "#/components/schemas/Product"
        assert routes[2].responses == {}
        assert routes[3].responses == {}


class TestMinimalApis:
    def test_map_group_chain(self, make_source) -> None:
        routes = AspNetAdapter().extract_routes([make_source("Program.cs", PROGRAM)])
        assert [(r.method, r.path, r.operation_id) for r in routes] == [
            (HTTPMethod.GET, "/api/todos/{id}", "getApiTodosByid"),
            (HTTPMethod.DELETE, "/health", "deleteHealth"),
        ]
        assert routes[0].tags == ["todos"]


class TestAspNetSchemas:
    @pytest.fixture
    def schemas(self, make_source):
        files = [make_source("Models/Product.cs", MODELS), make_source("Controllers/ProductsController.cs", CONTROLLER)]
        return {s.title: s for s in AspNetAdapter().extract_schemas(files)}

    def test_models_only(self, schemas) -> None:
        assert set(schemas) == {"Product", "Point"}

    def test_properties(self, schemas) -> None:
        product = schemas["Product"]
        assert list(product.properties) == ["Id", "Name", "Price"]
        assert product.required == ["Id"]
        assert product.properties["Price"].nullable

    def test_positional_record(self, schemas) -> None:
        assert schemas["Point"].required == ["X", "Y"]


class TestAspNetDetection:
    def test_web_sdk_project(self, write_project) -> None:
        root = write_project({"Shop.csproj": '<Project Sdk="Microsoft.NET.Sdk.Web"></Project>'})
        assert AspNetAdapter().detect(root)

    def test_console_project(self, write_project) -> None:
        root = write_project({"Tool.csproj": '<Project Sdk="Microsoft.NET.Sdk"></Project>'})
        assert not AspNetAdapter().detect(root)
