"""Framework-independent normalization pipeline.

Every adapter funnels its raw declarations through these modules, so the
behaviour they implement is identical across frameworks:

* :mod:`~routelens.pipeline.paths` -- dialect normalization, path parameter
  extraction, prefix composition.
* :mod:`~routelens.pipeline.identifiers` -- operation ids and tags.
* :mod:`~routelens.pipeline.typemap` -- type expressions to schemas.
* :mod:`~routelens.pipeline.schemas` -- model descriptors to schemas.
* :mod:`~routelens.pipeline.routes` -- route assembly from raw facts.
"""

from routelens.pipeline.identifiers import (
    ANONYMOUS_HANDLER,
    generate_operation_id,
    infer_tags,
    tag_from_identity,
)
from routelens.pipeline.paths import (
    NormalizedPath,
    PathDialect,
    combine_paths,
    compose_path,
    extract_path_params,
    normalize_path,
    normalize_path_with_types,
)
from routelens.pipeline.routes import build_route
from routelens.pipeline.schemas import build_schema
from routelens.pipeline.typemap import TABLES, TypeTable, map_type

__all__ = [
    "ANONYMOUS_HANDLER",
    "NormalizedPath",
    "PathDialect",
    "TABLES",
    "TypeTable",
    "build_route",
    "build_schema",
    "combine_paths",
    "compose_path",
    "extract_path_params",
    "generate_operation_id",
    "infer_tags",
    "map_type",
    "normalize_path",
    "normalize_path_with_types",
    "tag_from_identity",
]
