"""Abstract base class for framework adapters.

Every adapter subclasses :class:`FrameworkAdapter`, names the framework it
understands, and implements :meth:`~FrameworkAdapter.routes_from_file`.
Everything else has a working default:

* :meth:`~FrameworkAdapter.detect` searches the adapter's
  :attr:`~FrameworkAdapter.manifests` for its markers.
* :meth:`~FrameworkAdapter.extract_routes` and
  :meth:`~FrameworkAdapter.extract_schemas` select the files in the
  adapter's languages and run the per-file hooks, so a file that fails to
  parse contributes nothing instead of aborting the batch.

Adapters are registered as entry points in the ``routelens.adapters`` group
and collected by :class:`~routelens.registry.AdapterRegistry`.

Example:
    Minimal adapter implementation::

        class BottleAdapter(FrameworkAdapter):
            dialect = PathDialect.ANGLE
            languages = ("python",)
            manifests = {"requirements.txt": ("bottle",)}

            @property
            def name(self) -> str:
                return "bottle"

            def routes_from_file(self, file):
                ...
"""

from __future__ import annotations

import fnmatch
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import (
    Any,
    Callable,
    Collection,
    Iterable,
    Mapping,
    Optional,
    Sequence,
    TypeVar,
    Union,
)

from routelens.exceptions import AdapterError
from routelens.models import (
    AdapterInfo,
    HTTPMethod,
    MediaType,
    ModelDescriptor,
    Parameter,
    ParameterLocation,
    Response,
    Route,
    Schema,
    SourceFile,
)
from routelens.pipeline.paths import PathDialect
from routelens.pipeline.routes import build_route
from routelens.pipeline.schemas import build_schema
from routelens.pipeline.typemap import PYTHON, TypeTable, map_type, split_generic, split_top_level

logger = logging.getLogger(__name__)

T = TypeVar("T")

PYTHON_MANIFESTS = ("requirements.txt", "pyproject.toml", "setup.py", "setup.cfg", "Pipfile", "poetry.lock")


class FrameworkAdapter(ABC):
    """Base class for all routelens framework adapters.

    Subclasses must implement :attr:`name` and :meth:`routes_from_file`, and
    usually set the class attributes below.

    Attributes:
        dialect: Path parameter syntax the framework uses.
        type_table: Type vocabulary of the framework's language.
        languages: Language tags of the :class:`SourceFile` values consumed.
        extensions: File suffixes the adapter claims.
        manifests: Manifest file name (or glob) to the markers whose presence,
            case-insensitively, identifies the framework.
        marker_paths: Relative paths whose mere existence identifies the
            framework.
        batch_files: Route declarations in one file depend on other files
            (mount tables, route includes), so the adapter must see the whole
            batch at once and cannot be fanned out per file.
    """

    dialect: PathDialect = PathDialect.BRACE
    type_table: TypeTable = PYTHON
    languages: tuple[str, ...] = ()
    extensions: tuple[str, ...] = ()
    manifests: Mapping[str, tuple[str, ...]] = {}
    marker_paths: tuple[str, ...] = ()
    batch_files: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the unique adapter name used for registration and selection.

        Returns:
            A short lowercase identifier (e.g. ``"fastapi"``).
        """
        ...

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def description(self) -> str:
        return ""

    @property
    def supported_frameworks(self) -> list[str]:
        return [self.name]

    def info(self) -> AdapterInfo:
        """Descriptive metadata for listings."""
        return AdapterInfo(
            name=self.name,
            version=self.version,
            description=self.description,
            supported_frameworks=self.supported_frameworks,
        )

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect(self, project_root: Union[str, Path]) -> bool:
        """Whether the project at *project_root* uses this framework.

        Args:
            project_root: Directory holding the project's manifests.

        Returns:
            ``True`` if a manifest mentions one of the markers or a marker
            path exists. Missing manifests are simply not a match.

        Raises:
            AdapterError: If a manifest exists but cannot be read.
        """
        root = Path(project_root)
        for relative in self.marker_paths:
            if (root / relative).exists():
                logger.debug("%s: found %s", self.name, relative)
                return True
        for pattern, markers in self.manifests.items():
            for manifest in self._manifest_files(root, pattern):
                if self._mentions(manifest, markers):
                    logger.debug("%s: detected through %s", self.name, manifest.name)
                    return True
        return False

    @staticmethod
    def _manifest_files(root: Path, pattern: str) -> list[Path]:
        if any(char in pattern for char in "*?["):
            try:
                return sorted(p for p in root.iterdir() if fnmatch.fnmatch(p.name, pattern))
            except FileNotFoundError:
                return []
            except OSError as exc:
                raise AdapterError(f"Cannot list {root}: {exc}") from exc
        return [root / pattern]

    def _mentions(self, manifest: Path, markers: Iterable[str]) -> bool:
        try:
            content = manifest.read_text(encoding="utf-8", errors="replace").lower()
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
            return False
        except OSError as exc:
            raise AdapterError(f"{self.name}: cannot read {manifest}: {exc}") from exc
        return any(marker.lower() in content for marker in markers)

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def accepts(self, file: SourceFile) -> bool:
        """Whether *file* is in one of the adapter's languages."""
        return file.language in self.languages

    def extract_routes(self, files: Sequence[SourceFile]) -> list[Route]:
        """Routes declared in *files*, in file order.

        Files in other languages are ignored; a file that fails to parse
        contributes no routes.
        """
        selected = [f for f in files if self.accepts(f)]
        if self.batch_files:
            return self._guarded(self.routes_from_batch, selected, "batch")
        routes: list[Route] = []
        for file in selected:
            routes.extend(self.file_routes(file))
        return routes

    def extract_schemas(self, files: Sequence[SourceFile]) -> list[Schema]:
        """Component schemas declared in *files*, in file order."""
        schemas: list[Schema] = []
        for file in files:
            if self.accepts(file):
                schemas.extend(self.file_schemas(file))
        return schemas

    def file_routes(self, file: SourceFile) -> list[Route]:
        """Routes of one file, or ``[]`` if the file cannot be processed."""
        return self._guarded(self.routes_from_file, file, file.path)

    def file_schemas(self, file: SourceFile) -> list[Schema]:
        """Schemas of one file, or ``[]`` if the file cannot be processed."""
        return self._guarded(self.schemas_from_file, file, file.path)

    def _guarded(self, hook: Callable[[Any], Iterable[T]], arg: Any, label: str) -> list[T]:
        try:
            return list(hook(arg))
        except Exception as exc:
            logger.debug("%s: skipping %s: %s: %s", self.name, label, type(exc).__name__, exc)
            return []

    @abstractmethod
    def routes_from_file(self, file: SourceFile) -> Iterable[Route]:
        """Extract the routes declared in one source file.

        Implementations may raise any parse error; the caller skips the file.
        """
        ...

    def routes_from_batch(self, files: Sequence[SourceFile]) -> Iterable[Route]:
        """Extract routes from a whole batch; used when :attr:`batch_files` is set."""
        routes: list[Route] = []
        for file in files:
            routes.extend(self.file_routes(file))
        return routes

    def schemas_from_file(self, file: SourceFile) -> Iterable[Schema]:
        """Extract component schemas from one source file. Defaults to none."""
        return []

    # ------------------------------------------------------------------
    # Pipeline shortcuts
    # ------------------------------------------------------------------

    def route(
        self, method: Union[HTTPMethod, str], raw_path: str, file: SourceFile, **kwargs: Any
    ) -> Route:
        """:func:`~routelens.pipeline.routes.build_route` in this adapter's dialect."""
        return build_route(method, raw_path, self.dialect, source_file=file.path, **kwargs)

    def schema(self, descriptor: ModelDescriptor) -> Schema:
        """:func:`~routelens.pipeline.schemas.build_schema` with this adapter's types."""
        return build_schema(descriptor, self.type_table)

    def map_type(self, expr: str) -> Schema:
        return map_type(expr, self.type_table)

    def reference_schema(self, expr: str, models: Optional[Collection[str]] = None) -> Schema:
        """:func:`reference_schema` with this adapter's types."""
        return reference_schema(expr, self.type_table, models)


# ---------------------------------------------------------------------------
# Shared builders
# ---------------------------------------------------------------------------


def json_response(description: str, schema: Optional[Schema] = None) -> Response:
    """A response, with an ``application/json`` body when *schema* is given."""
    content = {"application/json": MediaType(schema=schema)} if schema is not None else {}
    return Response(description=description, content=content)


def parameter(
    name: str,
    location: ParameterLocation,
    schema: Optional[Schema] = None,
    required: bool = False,
    description: Optional[str] = None,
) -> Parameter:
    """A non-path :class:`Parameter` typed ``string`` unless *schema* says otherwise."""
    return Parameter(
        name=name,
        location=location,
        required=required,
        schema=schema or Schema(type="string"),
        description=description,
    )


def _bare_type_name(expr: str) -> str:
    return re.split(r"\.|::|\\", expr.strip())[-1]


def reference_schema(expr: str, table: TypeTable, models: Optional[Collection[str]] = None) -> Schema:
    """Map *expr* like :func:`~routelens.pipeline.typemap.map_type`, but refer to models.

    A class-like name (capitalised, not a primitive, list or map spelling of
    *table*) becomes a ``$ref``; when *models* is given only those names do.
    List, optional and transparent wrappers are unwrapped around it, so
    ``List<UserDto>`` is an array of references.
    """
    text = expr.strip()
    for prefix in table.strip_prefixes:
        if text.startswith(prefix):
            text = text[len(prefix) :].strip()
    if table.nullable_suffix and text.endswith("?"):
        inner = reference_schema(text[:-1], table, models)
        return inner if inner.ref else inner.model_copy(update={"nullable": True})
    if table.array_suffix and text.endswith("[]") and not table.is_primitive(text):
        return Schema(type="array", items=reference_schema(text[:-2], table, models))

    generic = split_generic(text, table.brackets)
    if generic is not None:
        wrapper, inner = generic
        args = split_top_level(inner)
        first = args[0] if args else ""
        if table.is_list(wrapper):
            return Schema(type="array", items=reference_schema(inner, table, models))
        if table.is_optional(wrapper) or table.is_transparent(wrapper):
            resolved = reference_schema(first, table, models)
            if table.is_optional(wrapper) and not resolved.ref:
                return resolved.model_copy(update={"nullable": True})
            return resolved
        return map_type(text, table)

    name = _bare_type_name(text)
    if models is not None:
        is_model = name in models
    else:
        is_model = (
            bool(re.fullmatch(r"[A-Z]\w*", name))
            and not table.is_primitive(text)
            and not table.is_list(name)
            and not table.is_map(name)
        )
    return Schema.reference(name) if is_model else map_type(text, table)
