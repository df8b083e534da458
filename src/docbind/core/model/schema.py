"""Schema Derivation.

Derives a ``$jsonSchema`` validator from a document type's declared shape.
Derivation only looks at annotations and field metadata, never at
instances, so the same shape always yields an equal schema; re-creating a
collection therefore never rewrites an unchanged validator.

Type mapping:

======================  ===========================================
Annotation              Schema
======================  ===========================================
``str``                 ``{"bsonType": "string"}``
``bool``                ``{"bsonType": "bool"}``
``int``                 ``{"bsonType": ["int", "long"]}``
``float``               ``{"bsonType": "double"}``
``Decimal``             ``{"bsonType": "decimal"}``
``datetime`` / ``date`` ``{"bsonType": "date"}``
``bytes`` / ``UUID``    ``{"bsonType": "binData"}``
``ObjectId``            ``{"bsonType": "objectId"}``
``list[X]``/``set[X]``  ``{"bsonType": "array", "items": ...}``
``dict[str, X]``        ``{"bsonType": "object", "additionalProperties": ...}``
nested model            recursive object schema
``Enum`` / ``Literal``  ``{"bsonType": ..., "enum": [...]}``
``Optional[X]``         schema of X accepting ``null``
other unions            ``{"anyOf": [...]}``
``Any``                 ``{}``
======================  ===========================================
"""

import contextvars
import copy
import datetime
import decimal
import enum
import functools
import uuid
from typing import Any, get_args

import annotated_types
from bson import ObjectId
from pydantic import BaseModel

from docbind.core.exceptions import ModelDefinitionError
from docbind.core.model.annotations import (
    NoneType,
    element_type,
    is_literal,
    is_mapping,
    is_model,
    is_sequence,
    is_set,
    is_union,
    strip_annotated,
    type_name,
    unwrap_optional,
    value_type,
)
from docbind.core.model.codec import encode_value
from docbind.core.model.document import describe

# Order matters: bool before int, datetime before date.
_PRIMITIVES: tuple[tuple[type, str | list[str]], ...] = (
    (bool, "bool"),
    (int, ["int", "long"]),
    (float, "double"),
    (str, "string"),
    (bytes, "binData"),
    (decimal.Decimal, "decimal"),
    (datetime.datetime, "date"),
    (datetime.date, "date"),
    (uuid.UUID, "binData"),
    (ObjectId, "objectId"),
)

_deriving: contextvars.ContextVar[frozenset[type]] = contextvars.ContextVar(
    "_deriving", default=frozenset()
)


def _primitive(tp: Any) -> str | list[str] | None:
    if not isinstance(tp, type):
        return None
    for py_type, bson_type in _PRIMITIVES:
        if issubclass(tp, py_type):
            return list(bson_type) if isinstance(bson_type, list) else bson_type
    return None


def _enum_schema(values: list[Any], owner: type) -> dict[str, Any]:
    bson_types: list[str] = []
    for value in values:
        found = _primitive(type(value)) if value is not None else "null"
        if found is None:
            raise ModelDefinitionError(owner, f"cannot derive schema for enum value {value!r}")
        for bson_type in found if isinstance(found, list) else [found]:
            if bson_type not in bson_types:
                bson_types.append(bson_type)
    schema: dict[str, Any] = {
        "bsonType": bson_types[0] if len(bson_types) == 1 else bson_types,
        "enum": [encode_value(value) for value in values],
    }
    return schema


def _allow_null(schema: dict[str, Any]) -> dict[str, Any]:
    if not schema:
        return schema
    schema = dict(schema)
    if "bsonType" in schema:
        current = schema["bsonType"]
        types = list(current) if isinstance(current, list) else [current]
        if "null" not in types:
            types.append("null")
        schema["bsonType"] = types
        if "enum" in schema and None not in schema["enum"]:
            schema["enum"] = [*schema["enum"], None]
    elif "anyOf" in schema:
        schema["anyOf"] = [*schema["anyOf"], {"bsonType": "null"}]
    return schema


def _apply_constraints(schema: dict[str, Any], metadata: tuple[Any, ...]) -> dict[str, Any]:
    if not metadata:
        return schema
    schema = dict(schema)
    is_array = schema.get("bsonType") == "array"
    for meta in metadata:
        if isinstance(meta, annotated_types.Ge):
            schema["minimum"] = meta.ge
        elif isinstance(meta, annotated_types.Gt):
            schema["minimum"] = meta.gt
            schema["exclusiveMinimum"] = True
        elif isinstance(meta, annotated_types.Le):
            schema["maximum"] = meta.le
        elif isinstance(meta, annotated_types.Lt):
            schema["maximum"] = meta.lt
            schema["exclusiveMaximum"] = True
        elif isinstance(meta, annotated_types.MinLen):
            schema["minItems" if is_array else "minLength"] = meta.min_length
        elif isinstance(meta, annotated_types.MaxLen):
            schema["maxItems" if is_array else "maxLength"] = meta.max_length
        elif getattr(meta, "pattern", None) is not None:
            schema["pattern"] = meta.pattern
    return schema


def schema_for(annotation: Any, owner: type, metadata: tuple[Any, ...] = ()) -> dict[str, Any]:
    """Derive the schema of a single annotation.

    Args:
        annotation: The annotation to describe.
        owner: Model the annotation belongs to (for error messages).
        metadata: Constraint objects attached to the field.

    Raises:
        ModelDefinitionError: If the annotation has no schema equivalent.
    """
    annotation, extra = strip_annotated(annotation)
    metadata = metadata + extra
    if annotation is Any or annotation is object:
        return {}

    inner, nullable = unwrap_optional(annotation)
    if inner is NoneType:
        return {"bsonType": "null"}

    schema = _apply_constraints(_schema_for_non_null(inner, owner), metadata)
    return _allow_null(schema) if nullable else schema


def _schema_for_non_null(tp: Any, owner: type) -> dict[str, Any]:
    if tp is Any:
        return {}
    if is_union(tp):
        return {"anyOf": [schema_for(arg, owner) for arg in get_args(tp)]}
    if is_literal(tp):
        return _enum_schema(list(get_args(tp)), owner)
    if isinstance(tp, type) and issubclass(tp, enum.Enum):
        return _enum_schema([member.value for member in tp], owner)
    if is_model(tp):
        return _object_schema(tp)
    if is_sequence(tp):
        schema: dict[str, Any] = {"bsonType": "array"}
        items = schema_for(element_type(tp), owner)
        if items:
            schema["items"] = items
        if is_set(tp):
            schema["uniqueItems"] = True
        return schema
    if is_mapping(tp):
        schema = {"bsonType": "object"}
        values = schema_for(value_type(tp), owner)
        if values:
            schema["additionalProperties"] = values
        return schema

    primitive = _primitive(tp)
    if primitive is None:
        raise ModelDefinitionError(owner, f"cannot derive schema for {type_name(tp)}")
    return {"bsonType": primitive}


def _object_schema(model: type[BaseModel]) -> dict[str, Any]:
    active = _deriving.get()
    if model in active:
        # $jsonSchema has no references, a recursive shape cannot be expressed
        raise ModelDefinitionError(model, "recursive document shape")
    token = _deriving.set(active | {model})
    try:
        return _object_body(model)
    finally:
        _deriving.reset(token)


def _object_body(model: type[BaseModel]) -> dict[str, Any]:
    info = describe(model)
    required = []
    properties: dict[str, Any] = {}
    for spec in info.fields:
        # the identifier is always present once stored
        if spec.required or spec is info.id_field:
            required.append(spec.external_name)
        prop = schema_for(spec.annotation, model, spec.metadata)
        if spec.description:
            prop = {**prop, "description": spec.description}
        properties[spec.external_name] = prop

    schema: dict[str, Any] = {"bsonType": "object"}
    if required:
        schema["required"] = required
    schema["properties"] = properties
    if model.model_config.get("extra") == "forbid":
        schema["additionalProperties"] = False
    return schema


@functools.cache
def _derive(model: type[BaseModel]) -> dict[str, Any]:
    return _object_schema(model)


def derive_schema(model: type[BaseModel]) -> dict[str, Any]:
    """Derive the ``$jsonSchema`` body for ``model``.

    Returns a fresh copy on each call; equal shapes give equal dicts.

    Example:
        >>> derive_schema(User)["required"]
        ['_id', 'name', 'age']
    """
    return copy.deepcopy(_derive(model))


def validator_for(model: type[BaseModel]) -> dict[str, Any]:
    """Collection validator document: ``{"$jsonSchema": derive_schema(model)}``."""
    return {"$jsonSchema": derive_schema(model)}


__all__ = ["derive_schema", "schema_for", "validator_for"]
