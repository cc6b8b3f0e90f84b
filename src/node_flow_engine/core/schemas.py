"""Value-shape descriptors for handle payloads.

A schema is any type annotation pydantic understands: a BaseModel subclass,
``list[Model]``, ``str``, ``float`` and so on. Nodes attach schemas to their
output handles so downstream nodes (Get Property, Merge Objects) can derive
their own handle types from what is connected upstream.
"""

from __future__ import annotations

import re
import types
from typing import Any, Literal, Union, get_args, get_origin

from pydantic import BaseModel, Field, TypeAdapter, create_model
from pydantic.errors import PydanticInvalidForJsonSchema, PydanticSchemaGenerationError

from .handles import FlowDataType


_INDEX_PATTERN = re.compile(r"\[(\d+)\]")


def split_path(path: str) -> list[str | int]:
    """
    Parse a property path into segments.

    "results[0].field" -> ["results", 0, "field"]
    "a.b.2" -> ["a", "b", 2]
    """
    if not path:
        return []
    normalized = _INDEX_PATTERN.sub(r".\1", path)
    segments: list[str | int] = []
    for part in normalized.split("."):
        if part == "":
            continue
        segments.append(int(part) if part.isdigit() else part)
    return segments


def get_path(value: Any, path: str, default: Any = None) -> Any:
    """Navigate into nested dicts, lists and objects by dotted/indexed path."""
    current = value
    for segment in split_path(path):
        if current is None:
            return default
        if isinstance(segment, int):
            if isinstance(current, (list, tuple)) and -len(current) <= segment < len(current):
                current = current[segment]
            elif isinstance(current, dict) and str(segment) in current:
                current = current[str(segment)]
            else:
                return default
        elif isinstance(current, dict):
            if segment not in current:
                return default
            current = current[segment]
        elif hasattr(current, segment):
            current = getattr(current, segment)
        else:
            return default
    return current


def _unwrap(schema: Any) -> Any:
    """Strip Optional[...] / Annotated[...] wrappers down to the core type."""
    while True:
        origin = get_origin(schema)
        if origin is Union or origin is types.UnionType:
            args = [a for a in get_args(schema) if a is not type(None)]
            if len(args) != 1:
                return schema
            schema = args[0]
            continue
        metadata = getattr(schema, "__metadata__", None)
        if metadata is not None:
            schema = get_args(schema)[0]
            continue
        return schema


def _is_model(schema: Any) -> bool:
    return isinstance(schema, type) and issubclass(schema, BaseModel)


def flow_type_for_schema(schema: Any) -> FlowDataType:
    """Map a schema to the handle type it implies."""
    if schema is None or schema is Any:
        return FlowDataType.ANY
    schema = _unwrap(schema)
    if _is_model(schema):
        return FlowDataType.OBJECT
    origin = get_origin(schema) or schema
    if origin in (list, tuple, set):
        return FlowDataType.ARRAY
    if origin is dict:
        return FlowDataType.OBJECT
    if origin is Literal:
        return FlowDataType.STRING
    if schema is bool:
        return FlowDataType.BOOLEAN
    if schema in (int, float):
        return FlowDataType.NUMBER
    if schema is str:
        return FlowDataType.STRING
    return FlowDataType.ANY


def flow_type_for_value(value: Any) -> FlowDataType:
    """Infer the handle type of a runtime value."""
    if value is None:
        return FlowDataType.ANY
    if isinstance(value, bool):
        return FlowDataType.BOOLEAN
    if isinstance(value, (int, float)):
        return FlowDataType.NUMBER
    if isinstance(value, str):
        return FlowDataType.STRING
    if isinstance(value, (list, tuple)):
        return FlowDataType.ARRAY
    if isinstance(value, (dict, BaseModel)):
        return FlowDataType.OBJECT
    return FlowDataType.ANY


def schema_at_path(schema: Any, path: str) -> Any:
    """
    Find the schema of a nested property.

    Walks model fields for names and list element types for numeric
    segments. Returns None when the path cannot be followed.
    """
    current = schema
    for segment in split_path(path):
        if current is None:
            return None
        core = _unwrap(current)
        if _is_model(core):
            field = core.model_fields.get(str(segment))
            if field is None:
                return None
            current = field.annotation
        elif get_origin(core) in (list, tuple, set):
            if not isinstance(segment, int):
                return None
            args = get_args(core)
            current = args[0] if args else Any
        else:
            return None
    return current


def element_schema(schema: Any) -> Any:
    """Element schema of a list schema, or None."""
    if schema is None:
        return None
    core = _unwrap(schema)
    if get_origin(core) not in (list, tuple, set):
        return None
    args = get_args(core)
    return args[0] if args else None


def merge_object_schemas(schemas: list[Any], name: str = "MergedObject") -> type[BaseModel] | None:
    """
    Merge several object schemas into one model.

    Later schemas override fields of earlier ones, matching dict-merge
    semantics at runtime. Non-object schemas are ignored.
    """
    fields: dict[str, Any] = {}
    for schema in schemas:
        core = _unwrap(schema) if schema is not None else None
        if not _is_model(core):
            continue
        for field_name, info in core.model_fields.items():
            fields[field_name] = (info.annotation, info)
    if not fields:
        return None
    return create_model(name, **fields)


_PRIMITIVES = {
    "string": str,
    "number": float,
    "boolean": bool,
}


def _annotation_for_field(definition: dict[str, Any], name_hint: str) -> Any:
    field_type = definition.get("type", "string")
    if field_type in _PRIMITIVES:
        return _PRIMITIVES[field_type]
    if field_type == "enum":
        values = definition.get("values") or []
        if not values:
            return str
        return Literal[tuple(values)]
    if field_type == "object":
        return build_schema(definition.get("fields") or [], name=f"{name_hint.title()}Object")
    if field_type == "array":
        items = definition.get("items")
        if items:
            return list[_annotation_for_field(items, f"{name_hint}_item")]
        return list[Any]
    return Any


def build_type(definition: dict[str, Any], name: str = "DynamicType") -> Any:
    """Type for a single definition (same shape as one ``build_schema`` field, minus the name)."""
    return _annotation_for_field(definition, name)


def build_schema(fields: list[dict[str, Any]], name: str = "DynamicSchema") -> type[BaseModel]:
    """
    Build a pydantic model from a list of field definitions.

    Each definition is ``{"name", "type", "description"?, "values"?, "fields"?, "items"?}``
    where type is one of string, number, boolean, enum, object, array.
    """
    model_fields: dict[str, Any] = {}
    for definition in fields:
        field_name = definition.get("name")
        if not field_name:
            continue
        annotation = _annotation_for_field(definition, field_name)
        description = definition.get("description") or None
        model_fields[field_name] = (annotation, Field(..., description=description))
    return create_model(name, **model_fields)


def coerce_value(schema: Any, value: Any) -> Any:
    """Validate and coerce a runtime value against a schema (raises pydantic.ValidationError)."""
    if schema is None or schema is Any:
        return value
    if _is_model(schema):
        return schema.model_validate(value).model_dump()
    return TypeAdapter(schema).validate_python(value)


def describe_schema(schema: Any) -> dict[str, Any] | None:
    """JSON Schema for a schema, or None if it has no useful description."""
    if schema is None or schema is Any:
        return None
    if _is_model(schema):
        return schema.model_json_schema()
    try:
        return TypeAdapter(schema).json_schema()
    except (PydanticSchemaGenerationError, PydanticInvalidForJsonSchema):
        return None
