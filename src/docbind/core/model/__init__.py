"""Document model: typed document definitions and their stored form.

Main Components
---------------
- **Doc / Embedded**: Base classes for document types and nested shapes.
- **describe**: Cached structural description (fields, collection, id).
- **fields / raw**: Typed field references and the untyped escape.
- **IdentifierAdapter**: Domain identifier <-> native identifier.
- **encode_document / decode_document**: Instance <-> document tree.
- **derive_schema / validator_for**: ``$jsonSchema`` from the declared shape.
- **Index**: Index declarations for ``Doc.indexes()``.

Quick Start
-----------
    >>> from uuid import UUID, uuid4
    >>> from pydantic import Field
    >>> from docbind.core.model import Doc, fields
    >>>
    >>> class User(Doc):
    ...     id: UUID = Field(default_factory=uuid4, alias="_id")
    ...     name: str
    ...     age: int
    >>>
    >>> F = fields(User)
    >>> ((F.age >= 18) & (F.name != "root")).to_document()
    {'$and': [{'age': {'$gte': 18}}, {'name': {'$ne': 'root'}}]}
"""

# =============================================================================
# DOCUMENTS
# =============================================================================
from docbind.core.model.document import (
    ID_FIELD,
    Doc,
    Document,
    Embedded,
    FieldSpec,
    ModelInfo,
    default_collection_name,
    describe,
)

# =============================================================================
# IDENTIFIERS AND CODEC
# =============================================================================
from docbind.core.model.identifier import SUPPORTED_ID_TYPES, IdentifierAdapter
from docbind.core.model.codec import (
    decode_as,
    decode_document,
    decode_value,
    encode_document,
    encode_value,
    take,
    take_document,
    take_typed,
)

# =============================================================================
# FIELD PATHS
# =============================================================================
from docbind.core.model.paths import (
    ALL,
    ANY,
    FieldPath,
    FieldRef,
    Segment,
    fields,
    parse_path,
    raw,
)

# =============================================================================
# SCHEMA AND INDEXES
# =============================================================================
from docbind.core.model.schema import derive_schema, validator_for
from docbind.core.model.indexes import Index

__all__ = [
    # Documents
    "Doc",
    "Embedded",
    "Document",
    "FieldSpec",
    "ModelInfo",
    "ID_FIELD",
    "default_collection_name",
    "describe",
    # Identifiers
    "IdentifierAdapter",
    "SUPPORTED_ID_TYPES",
    # Codec
    "encode_document",
    "decode_document",
    "encode_value",
    "decode_value",
    "decode_as",
    "take",
    "take_typed",
    "take_document",
    # Paths
    "ANY",
    "ALL",
    "FieldPath",
    "FieldRef",
    "Segment",
    "fields",
    "parse_path",
    "raw",
    # Schema
    "derive_schema",
    "validator_for",
    "Index",
]
