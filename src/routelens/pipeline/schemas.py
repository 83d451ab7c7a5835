"""Model descriptors to component schemas."""

from __future__ import annotations

from routelens.models import ModelDescriptor, Schema
from routelens.pipeline.typemap import TypeTable, map_type


def build_schema(descriptor: ModelDescriptor, table: TypeTable) -> Schema:
    """Turn a language-neutral model descriptor into an object schema.

    Every field becomes a property mapped through :func:`map_type`. A field
    stays out of ``required`` when it is declared optional or carries a
    default value; a default alone is enough. Declared optionality also marks
    the property nullable, on top of whatever the type's own wrapper says.

    Args:
        descriptor: Model name plus its ordered fields.
        table: Type vocabulary of the model's source language.

    Returns:
        ``Schema(title=name, type="object", properties=..., required=...)``.
    """
    properties: dict[str, Schema] = {}
    required: list[str] = []
    for model_field in descriptor.fields:
        prop = map_type(model_field.type, table)
        update: dict[str, object] = {}
        if model_field.is_optional:
            update["nullable"] = True
        if model_field.description:
            update["description"] = model_field.description
        if update:
            prop = prop.model_copy(update=update)
        properties[model_field.name] = prop
        if not (model_field.is_optional or model_field.has_default):
            if model_field.name not in required:
                required.append(model_field.name)
    return Schema(
        title=descriptor.name,
        type="object",
        description=descriptor.description,
        properties=properties,
        required=required,
    )
