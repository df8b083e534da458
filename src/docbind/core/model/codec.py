"""Conversion between typed instances and generic document trees.

pydantic does the structural (de)serialization; this module adds what the
store needs on top of it:

- identifiers go through the model's ``IdentifierAdapter``;
- ``UUID`` values become BSON ``Binary`` subtype 4 and back;
- ``Enum`` members become their values, sets and tuples become lists,
  ``date`` becomes a midnight ``datetime``, ``Decimal`` becomes ``Decimal128``.

Failures surface as ``EncodeError`` / ``DecodeError`` carrying the dotted
path of the offending value when it is known.
"""

import datetime
import decimal
import enum
import uuid
from collections.abc import Mapping
from typing import Any

from bson import Binary, Decimal128
from bson.binary import UUID_SUBTYPE
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from docbind.core.exceptions import DecodeError, EncodeError
from docbind.core.model.annotations import is_model
from docbind.core.model.document import ID_FIELD, Document, describe

_MISSING = object()


# =============================================================================
# ENCODING
# =============================================================================


def encode_value(value: Any, path: str = "") -> Any:
    """Normalize a Python value into a BSON-compatible document value."""
    if isinstance(value, BaseModel):
        return encode_value(value.model_dump(by_alias=True), path)
    if isinstance(value, enum.Enum):
        return encode_value(value.value, path)
    if isinstance(value, uuid.UUID):
        return Binary.from_uuid(value)
    if isinstance(value, decimal.Decimal):
        return Decimal128(value)
    if isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
        return datetime.datetime(value.year, value.month, value.day)
    if isinstance(value, Mapping):
        encoded = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise EncodeError(
                    f"document keys must be strings, got {type(key).__name__}", path=path or None
                )
            encoded[key] = encode_value(item, _join(path, key))
        return encoded
    if isinstance(value, (set, frozenset)):
        # sets have no stable order; sort for deterministic output
        return [encode_value(item, path) for item in sorted(value, key=repr)]
    if isinstance(value, (list, tuple)):
        return [encode_value(item, _join(path, str(i))) for i, item in enumerate(value)]
    return value


def encode_document(instance: BaseModel) -> Document:
    """Serialize a document instance into a generic document tree.

    A ``None`` identifier is left out so the caller (or the server) can
    assign one.

    Raises:
        EncodeError: If a value cannot be represented.
        IdentifierFormatError: If the identifier has an unsupported shape.
    """
    info = describe(type(instance))
    try:
        dumped = instance.model_dump(by_alias=True)
    except (TypeError, ValueError) as e:
        raise EncodeError(str(e)) from e

    document: Document = {}
    for key, value in dumped.items():
        if key == ID_FIELD and info.id_adapter is not None:
            if value is None:
                continue
            document[key] = info.id_adapter.encode(value)
        else:
            document[key] = encode_value(value, key)
    return document


# =============================================================================
# DECODING
# =============================================================================


def decode_value(value: Any) -> Any:
    """Turn native document values back into Python values pydantic accepts."""
    if isinstance(value, Binary) and value.subtype == UUID_SUBTYPE and len(value) == 16:
        return value.as_uuid()
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, Mapping):
        return {key: decode_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode_value(item) for item in value]
    return value


def decode_document[M: BaseModel](model: type[M], raw: Any) -> M:
    """Deserialize a raw document into an instance of ``model``.

    Raises:
        DecodeError: If ``raw`` is not a document or does not fit the model.
        IdentifierFormatError: If ``_id`` has an unsupported shape.
    """
    if not isinstance(raw, Mapping):
        raise DecodeError(f"expected a document, got {type(raw).__name__}")

    info = describe(model)
    data = {}
    for key, value in raw.items():
        if key == ID_FIELD and info.id_adapter is not None:
            data[key] = info.id_adapter.decode(value)
        else:
            data[key] = decode_value(value)

    try:
        return model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        path = ".".join(str(part) for part in first["loc"]) or None
        raise DecodeError(
            f"{first['msg']} ({e.error_count()} error(s) for {model.__name__})", path=path
        ) from e


def decode_as(annotation: Any, raw: Any, path: str | None = None) -> Any:
    """Deserialize a single value against an annotation (used by ``distinct``)."""
    if is_model(annotation):
        return decode_document(annotation, raw)
    adapter = TypeAdapter(annotation, config=ConfigDict(arbitrary_types_allowed=True))
    try:
        return adapter.validate_python(decode_value(raw))
    except ValidationError as e:
        raise DecodeError(e.errors()[0]["msg"], path=path) from e


# =============================================================================
# DOCUMENT HELPERS
# =============================================================================


def take(document: Document, key: str) -> Any:
    """Remove ``key`` from ``document`` and return its value.

    Raises:
        DecodeError: If the key is missing.
    """
    value = document.pop(key, _MISSING)
    if value is _MISSING:
        raise DecodeError("key was not found in the document", path=key)
    return value


def take_typed(document: Document, key: str, kind: type | tuple[type, ...]) -> Any:
    """Remove ``key`` if its value is an instance of ``kind``.

    Booleans are not accepted where integers are expected.

    Raises:
        DecodeError: If the key is missing or the value has another type.
    """
    value = document.get(key, _MISSING)
    if value is _MISSING:
        raise DecodeError("key was not found in the document", path=key)
    kinds = kind if isinstance(kind, tuple) else (kind,)
    if not isinstance(value, kinds) or (isinstance(value, bool) and bool not in kinds):
        names = " | ".join(k.__name__ for k in kinds)
        raise DecodeError(f"expected {names}, got {type(value).__name__}", path=key)
    return document.pop(key)


def take_document(document: Document, key: str) -> Document:
    """Remove and return an embedded document."""
    return take_typed(document, key, dict)


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


__all__ = [
    "decode_as",
    "decode_document",
    "decode_value",
    "encode_document",
    "encode_value",
    "take",
    "take_document",
    "take_typed",
]
