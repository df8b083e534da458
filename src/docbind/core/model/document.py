"""Document Model.

A document type is a pydantic model deriving from ``Doc``. It declares:

- its fields, in order, with ordinary annotations (nested models, ``Optional``,
  ``list``/``set``/``tuple``, ``dict[str, X]``, enums, ``Literal``);
- exactly one identifier field, i.e. the field whose external name is
  ``_id`` (``id: UUID = Field(default_factory=uuid4, alias="_id")``);
- optionally ``__collection__`` (defaults to the pluralized snake-case class
  name) and an ``indexes()`` classmethod.

``describe()`` turns a model class into a ``ModelInfo``: the cached, purely
structural description every other component works from.

Example:
    >>> class User(Doc):
    ...     id: UUID = Field(default_factory=uuid4, alias="_id")
    ...     name: str
    ...     age: int
    >>> describe(User).collection
    'users'
    >>> describe(User).id_field.external_name
    '_id'
"""

import functools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

import inflection
from pydantic import BaseModel, ConfigDict

from docbind.core.exceptions import ModelDefinitionError
from docbind.core.model.annotations import unwrap_optional
from docbind.core.model.identifier import IdentifierAdapter

if TYPE_CHECKING:
    from docbind.core.model.indexes import Index

logger = logging.getLogger(__name__)

#: Generic document tree: string keys, BSON-compatible values.
type Document = dict[str, Any]

ID_FIELD = "_id"


class Embedded(BaseModel):
    """Base class for nested (embedded) document shapes without identity."""

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)


class Doc(BaseModel):
    """Base class for top-level documents stored in their own collection."""

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    __collection__: ClassVar[str | None] = None

    @classmethod
    def collection_name(cls) -> str:
        """External collection name of this document type."""
        return describe(cls).collection

    @classmethod
    def indexes(cls) -> list["Index"]:
        """Indexes to create on the collection. None by default.

        The ``_id`` index always exists and need not be declared.
        """
        return []

    def id_value(self) -> Any:
        """Return the identifier of this instance (may be None)."""
        id_field = describe(type(self)).id_field
        return getattr(self, id_field.name)


# =============================================================================
# DESCRIPTION
# =============================================================================


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """Declared shape of one field.

    Attributes:
        name: Python attribute name.
        external_name: Name used in stored documents (alias, if any).
        annotation: Declared annotation (``Optional`` kept).
        required: Whether the field has no default.
        nullable: Whether ``None`` is an accepted value.
        description: Optional field description.
        metadata: Constraint objects attached to the field (``Ge``, ``MaxLen``...).
    """

    name: str
    external_name: str
    annotation: Any
    required: bool
    nullable: bool
    description: str | None = None
    metadata: tuple[Any, ...] = ()


@dataclass(frozen=True, slots=True)
class ModelInfo:
    """Structural description of a model class.

    Attributes:
        model: The model class.
        collection: External name (collection name for ``Doc`` subclasses).
        fields: Field specs in declaration order.
        id_field: The identifier field (``Doc`` subclasses only).
        id_adapter: Identifier adapter for ``id_field``.
    """

    model: type[BaseModel]
    collection: str
    fields: tuple[FieldSpec, ...]
    id_field: FieldSpec | None = None
    id_adapter: IdentifierAdapter | None = None

    def field(self, name: str) -> FieldSpec | None:
        """Look up a field by its Python name."""
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    def external(self, external_name: str) -> FieldSpec | None:
        """Look up a field by its external name."""
        for spec in self.fields:
            if spec.external_name == external_name:
                return spec
        return None

    @property
    def external_names(self) -> tuple[str, ...]:
        """External names of all fields, in declaration order."""
        return tuple(spec.external_name for spec in self.fields)


def _field_specs(model: type[BaseModel]) -> tuple[FieldSpec, ...]:
    specs = []
    for name, info in model.model_fields.items():
        external = info.serialization_alias or info.alias or name
        _, nullable = unwrap_optional(info.annotation)
        specs.append(
            FieldSpec(
                name=name,
                external_name=external,
                annotation=info.annotation,
                required=info.is_required(),
                nullable=nullable,
                description=info.description,
                metadata=tuple(info.metadata),
            )
        )
    return tuple(specs)


def default_collection_name(model: type) -> str:
    """Pluralized snake-case name: ``OrderItem`` -> ``order_items``."""
    return inflection.pluralize(inflection.underscore(model.__name__))


@functools.cache
def describe(model: type[BaseModel]) -> ModelInfo:
    """Describe a model class (cached).

    ``Doc`` subclasses must declare exactly one ``_id`` field of a type the
    ``IdentifierAdapter`` supports; other models are described without one.

    Raises:
        ModelDefinitionError: If ``model`` is not a pydantic model or its
            identifier is missing or unsupported.
    """
    if not (isinstance(model, type) and issubclass(model, BaseModel)):
        raise ModelDefinitionError(
            model if isinstance(model, type) else type(model), "not a pydantic model"
        )

    specs = _field_specs(model)
    seen: set[str] = set()
    for spec in specs:
        if spec.external_name in seen:
            raise ModelDefinitionError(model, f"duplicate external name '{spec.external_name}'")
        seen.add(spec.external_name)

    if not issubclass(model, Doc):
        return ModelInfo(model=model, collection=default_collection_name(model), fields=specs)

    id_fields = [spec for spec in specs if spec.external_name == ID_FIELD]
    if not id_fields:
        raise ModelDefinitionError(
            model, f"no identifier field (declare one with Field(alias='{ID_FIELD}'))"
        )
    id_field = id_fields[0]
    id_type, _ = unwrap_optional(id_field.annotation)
    if not IdentifierAdapter.supports(id_type):
        raise ModelDefinitionError(
            model, f"identifier type {id_type!r} is not supported by the identifier adapter"
        )

    collection = model.__collection__ or default_collection_name(model)
    info = ModelInfo(
        model=model,
        collection=collection,
        fields=specs,
        id_field=id_field,
        id_adapter=IdentifierAdapter(id_type),
    )
    logger.debug(
        "Described document type %s (collection=%s, fields=%s)",
        model.__name__,
        collection,
        info.external_names,
    )
    return info


__all__ = [
    "Doc",
    "Document",
    "Embedded",
    "FieldSpec",
    "ModelInfo",
    "ID_FIELD",
    "default_collection_name",
    "describe",
]
