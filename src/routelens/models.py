"""Canonical Pydantic models shared across all routelens modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Configuration models** -- serialised as JSON in the user's config directory
or in a project's ``routelens.json``:
    :class:`ScanConfig`, :class:`AdaptersConfig`, :class:`OutputConfig`,
    :class:`OpenAPIInfoConfig`, :class:`GlobalConfig`, and
    :class:`ProjectConfig`.

**Canonical API models** -- produced by the adapters, framework-agnostic and
immutable once built:
    :class:`HTTPMethod`, :class:`ParameterLocation`, :class:`Schema`,
    :class:`Parameter`, :class:`MediaType`, :class:`RequestBody`,
    :class:`Response`, and :class:`Route`.

**Extraction inputs** -- what the orchestrator hands to adapters and what the
fact extractors hand to the schema builder:
    :class:`SourceFile`, :class:`AdapterInfo`, :class:`ModelField`, and
    :class:`ModelDescriptor`.
"""

from __future__ import annotations

import enum
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from routelens.exceptions import SourceParseError

PATH_TOKEN_RE = re.compile(r"\{([^{}/]+)\}")
"""Matches one canonical ``{name}`` path token."""

REF_PREFIX = "#/components/schemas/"
"""Prefix of every component schema reference."""


# --- Scan Config ---


class ScanConfig(BaseModel):
    """File discovery and fan-out settings.

    ``include`` and ``exclude`` are gitwildmatch patterns (the ``.gitignore``
    dialect) evaluated relative to the scanned project root. An empty
    ``include`` list means "every file with a known extension".
    """

    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)
    respect_gitignore: bool = True
    workers: int = Field(default=4, ge=1, description="Parallel per-file extraction workers")
    max_file_size: int = Field(
        default=1_000_000, ge=1, description="Files larger than this (bytes) are skipped"
    )


class AdaptersConfig(BaseModel):
    """Explicit adapter allow/deny lists stored in :class:`GlobalConfig`."""

    enabled: list[str] = Field(default_factory=list)
    disabled: list[str] = Field(default_factory=list)


class OutputConfig(BaseModel):
    """Output formatting preferences."""

    format: str = Field(default="json", description="Output format: json, yaml, table")
    no_color: bool = False


class OpenAPIInfoConfig(BaseModel):
    """Values for the ``info`` block and version of the emitted document."""

    title: str = "API"
    version: str = "1.0.0"
    description: Optional[str] = None
    openapi_version: str = "3.0.3"


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/routelens/config.json``.

    Loaded and saved by :func:`~routelens.config.load_global_config` and
    :func:`~routelens.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by project config, environment
    variables, or CLI flags. See :func:`~routelens.config.resolve_config`
    for the full precedence chain.
    """

    frameworks: list[str] = Field(
        default_factory=list,
        description="Adapters to run; empty means detect from the project",
    )
    scan: ScanConfig = Field(default_factory=ScanConfig)
    adapters: AdaptersConfig = Field(default_factory=AdaptersConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    openapi: OpenAPIInfoConfig = Field(default_factory=OpenAPIInfoConfig)
    default_responses: dict[str, str] = Field(
        default_factory=lambda: {"200": "Successful response"},
        description="Responses attached to routes that declare none",
    )


class ProjectConfig(BaseModel):
    """Project-local overrides read from ``<project>/routelens.json``.

    Every section is optional; a present section replaces the corresponding
    section of :class:`GlobalConfig` wholesale.
    """

    model_config = ConfigDict(extra="forbid")

    frameworks: Optional[list[str]] = None
    scan: Optional[ScanConfig] = None
    adapters: Optional[AdaptersConfig] = None
    openapi: Optional[OpenAPIInfoConfig] = None
    default_responses: Optional[dict[str, str]] = None


# --- Canonical API models ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods a :class:`Route` can carry (uppercase wire spelling)."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    @classmethod
    def parse(cls, value: str) -> Optional["HTTPMethod"]:
        """Return the member for *value* (any case), or ``None`` if unknown."""
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class ParameterLocation(str, enum.Enum):
    """Locations where an API parameter can appear, per OpenAPI ``in`` field."""

    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"


class Schema(BaseModel):
    """An OpenAPI schema object, restricted to what route extraction produces.

    A schema is either a reference (``ref`` set, serialised as ``$ref``) or an
    inline definition; never both. ``required`` lists property names and is
    always a subset of ``properties``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ref: Optional[str] = Field(default=None, alias="$ref")
    title: Optional[str] = None
    type: Optional[str] = None
    format: Optional[str] = None
    description: Optional[str] = None
    nullable: bool = False
    properties: dict[str, Schema] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)
    items: Optional[Schema] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "Schema":
        if self.ref is not None and (self.type is not None or self.properties):
            raise ValueError("a schema reference cannot carry an inline definition")
        unknown = [name for name in self.required if name not in self.properties]
        if unknown:
            raise ValueError(f"required names not in properties: {', '.join(unknown)}")
        return self

    @classmethod
    def reference(cls, name: str) -> "Schema":
        """Build a ``$ref`` schema pointing at component *name*."""
        return cls(ref=REF_PREFIX + name)

    def to_openapi(self) -> dict[str, Any]:
        """Serialise to an OpenAPI schema dict, omitting unset members."""
        return self.model_dump(
            mode="json", by_alias=True, exclude_none=True, exclude_defaults=True
        )


class Parameter(BaseModel):
    """A single route parameter.

    Path parameters are always required; the model rejects anything else.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    location: ParameterLocation = Field(alias="in")
    required: bool = False
    schema_: Schema = Field(default_factory=lambda: Schema(type="string"), alias="schema")
    description: Optional[str] = None

    @model_validator(mode="after")
    def _check_path_required(self) -> "Parameter":
        if self.location == ParameterLocation.PATH and not self.required:
            raise ValueError(f"path parameter '{self.name}' must be required")
        return self

    def to_openapi(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "in": self.location.value,
            "required": self.required,
            "schema": self.schema_.to_openapi(),
        }
        if self.description:
            data["description"] = self.description
        return data


class MediaType(BaseModel):
    """Schema carried under one media type of a request or response body."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    schema_: Schema = Field(alias="schema")


class RequestBody(BaseModel):
    """Request body of a :class:`Route`, keyed by media type."""

    model_config = ConfigDict(frozen=True)

    required: bool = True
    description: Optional[str] = None
    content: dict[str, MediaType] = Field(default_factory=dict)

    @classmethod
    def json_body(cls, schema: Schema, required: bool = True) -> "RequestBody":
        """Body with a single ``application/json`` media type."""
        return cls(required=required, content={"application/json": MediaType(schema=schema)})


class Response(BaseModel):
    """One response of a :class:`Route`."""

    model_config = ConfigDict(frozen=True)

    description: str
    content: dict[str, MediaType] = Field(default_factory=dict)


class Route(BaseModel):
    """A normalised HTTP route.

    ``path`` is canonical (only ``{name}`` tokens) and the path parameters in
    ``parameters`` correspond one-to-one, left to right, with those tokens.
    Query, header and cookie parameters follow the path parameters.
    """

    model_config = ConfigDict(frozen=True)

    method: HTTPMethod
    path: str
    handler: str = ""
    operation_id: str = Field(min_length=1)
    tags: list[str] = Field(default_factory=list)
    summary: Optional[str] = None
    description: Optional[str] = None
    parameters: list[Parameter] = Field(default_factory=list)
    request_body: Optional[RequestBody] = None
    responses: dict[str, Response] = Field(default_factory=dict)
    source_file: str = ""
    source_line: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_path_parameters(self) -> "Route":
        tokens = PATH_TOKEN_RE.findall(self.path)
        names = [p.name for p in self.path_parameters]
        if tokens != names:
            raise ValueError(
                f"path parameters {names} do not match tokens {tokens} in '{self.path}'"
            )
        return self

    @property
    def path_parameters(self) -> list[Parameter]:
        """Only the path parameters, in path order."""
        return [p for p in self.parameters if p.location == ParameterLocation.PATH]


# --- Extraction inputs ---


class SourceFile(BaseModel):
    """A source file already read into memory, tagged with its language."""

    model_config = ConfigDict(frozen=True)

    path: str
    language: str
    content: bytes = b""

    def text(self) -> str:
        """Decode the content as UTF-8 (a leading BOM is dropped).

        Raises:
            SourceParseError: If the bytes are not valid UTF-8.
        """
        try:
            return self.content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise SourceParseError(f"{self.path} is not valid UTF-8: {exc}", self.path) from exc


class AdapterInfo(BaseModel):
    """Descriptive metadata an adapter reports about itself."""

    name: str
    version: str
    description: str = ""
    supported_frameworks: list[str] = Field(default_factory=list)


class ModelField(BaseModel):
    """One field of a :class:`ModelDescriptor`."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    is_optional: bool = False
    has_default: bool = False
    description: Optional[str] = None


class ModelDescriptor(BaseModel):
    """Language-neutral description of a data model.

    Built by the fact extractors from Pydantic models, Java DTOs, case
    classes, serde structs, Ecto schemas and Gleam custom types, and turned
    into a :class:`Schema` by :func:`routelens.pipeline.schemas.build_schema`.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    fields: list[ModelField] = Field(default_factory=list)
    description: Optional[str] = None
