"""Expression DSL - Filters.

Filters are immutable trees built from typed field references:

    >>> F = fields(User)
    >>> f = (F.age >= 18) & (F.name != "root")
    >>> f.to_document()
    {'$and': [{'age': {'$gte': 18}}, {'name': {'$ne': 'root'}}]}

Every node remembers the document type its references were resolved
against. Combining nodes bound to different types, or running a filter on a
collection of another type, raises ``DocumentTypeMismatchError``. Nodes
built only from raw references (``raw("...")``) are unbound and combine
with anything.

Lowering (``to_document()``) is total and deterministic:

- ``eq`` gives ``{path: value}``; every other field operator gives
  ``{path: {"$op": value}}``;
- ``and``/``or``/``nor`` keep their children in tree order;
- ``not`` over a field predicate gives ``{path: {"$not": {...}}}``, over a
  logical node ``{"$nor": [child]}``;
- ``match_all()`` gives ``{}``.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from docbind.core.exceptions import (
    DocumentTypeMismatchError,
    ExpressionError,
    TypeMismatchError,
)
from docbind.core.model.annotations import is_model, unwrap_optional
from docbind.core.model.codec import encode_value
from docbind.core.model.document import Document
from docbind.core.model.paths import FieldPath, FieldRef, require_path
from docbind.core.query.operands import (
    as_value_list,
    check_comparable,
    check_element,
    is_string_annotation,
    require_array,
)

#: ``$type`` aliases accepted by ``type_is``.
BSON_TYPE_ALIASES: frozenset[str] = frozenset(
    {
        "double",
        "string",
        "object",
        "array",
        "binData",
        "objectId",
        "bool",
        "date",
        "null",
        "regex",
        "int",
        "timestamp",
        "long",
        "decimal",
        "number",
    }
)

_REGEX_OPTIONS = frozenset("imxsu")


# =============================================================================
# NODES
# =============================================================================


class Filter:
    """Base class of filter nodes.

    Filters combine with ``&`` (and), ``|`` (or) and ``~`` (not). They have
    no truth value: ``if filt:`` or ``a and b`` raise ``TypeError``.
    """

    __slots__ = ()

    model: type | None

    def to_document(self) -> Document:
        raise NotImplementedError

    def __and__(self, other: "Filter") -> "Filter":
        return and_(self, other)

    def __or__(self, other: "Filter") -> "Filter":
        return or_(self, other)

    def __invert__(self) -> "Filter":
        return not_(self)

    def __bool__(self) -> bool:
        raise TypeError("Filter has no truth value; combine filters with & and |")


@dataclass(frozen=True, slots=True)
class Predicate(Filter):
    """A single field condition, e.g. ``age >= 18``.

    Attributes:
        model: Document type of the field (None for raw paths).
        path: Structured path of the field.
        op: Operator name without ``$`` (``eq``, ``gte``, ``elemMatch``...).
        operand: Operand as given (encoded on lowering).
        options: ``$options`` for ``regex``.
    """

    model: type | None
    path: FieldPath
    op: str
    operand: Any
    options: str = ""

    def condition(self) -> Any:
        """The right-hand side under the path, without ``$not``."""
        if self.op == "elemMatch":
            return {"$elemMatch": self.operand.to_document()}
        if self.op == "regex":
            condition = {"$regex": self.operand}
            if self.options:
                condition["$options"] = self.options
            return condition
        return {f"${self.op}": encode_value(self.operand, self.path.query)}

    def to_document(self) -> Document:
        if self.op == "eq":
            return {self.path.query: encode_value(self.operand, self.path.query)}
        return {self.path.query: self.condition()}


@dataclass(frozen=True, slots=True)
class And(Filter):
    model: type | None
    children: tuple[Filter, ...]

    def to_document(self) -> Document:
        return {"$and": [child.to_document() for child in self.children]}


@dataclass(frozen=True, slots=True)
class Or(Filter):
    model: type | None
    children: tuple[Filter, ...]

    def to_document(self) -> Document:
        return {"$or": [child.to_document() for child in self.children]}


@dataclass(frozen=True, slots=True)
class Nor(Filter):
    model: type | None
    children: tuple[Filter, ...]

    def to_document(self) -> Document:
        return {"$nor": [child.to_document() for child in self.children]}


@dataclass(frozen=True, slots=True)
class Not(Filter):
    model: type | None
    child: Filter

    def to_document(self) -> Document:
        child = self.child
        if isinstance(child, Predicate):
            return {child.path.query: {"$not": child.condition()}}
        return {"$nor": [child.to_document()]}


@dataclass(frozen=True, slots=True)
class MatchAll(Filter):
    """Matches every document; the identity of ``&``."""

    model: type | None = None

    def to_document(self) -> Document:
        return {}


@dataclass(frozen=True, slots=True)
class RawFilter(Filter):
    """A pre-built filter document, passed through after value encoding."""

    document: Mapping[str, Any]
    model: type | None = None

    def to_document(self) -> Document:
        return encode_value(dict(self.document))


# =============================================================================
# MODEL BINDING
# =============================================================================


def merge_models(filters: tuple[Filter, ...], context: str = "filter") -> type | None:
    """Return the single document type the filters are bound to.

    Raises:
        DocumentTypeMismatchError: If two filters are bound to different types.
    """
    model = None
    for filt in filters:
        if filt.model is None:
            continue
        if model is None:
            model = filt.model
        elif filt.model is not model:
            raise DocumentTypeMismatchError(model, filt.model, context)
    return model


def check_filter_model(filt: Filter, model: type) -> None:
    """Reject a filter bound to a document type other than ``model``."""
    if not isinstance(filt, Filter):
        raise ExpressionError(f"expected a filter, got {type(filt).__name__}", value=filt)
    if filt.model is not None and filt.model is not model:
        raise DocumentTypeMismatchError(model, filt.model, "filter")


def _require_filters(items: tuple[Any, ...], what: str) -> tuple[Filter, ...]:
    for item in items:
        if not isinstance(item, Filter):
            raise ExpressionError(
                f"{what} expects filters, got {type(item).__name__}", value=item
            )
    return items


def _query_path(ref: FieldRef) -> FieldPath:
    path = require_path(ref)
    if path.has_all_marker:
        raise ExpressionError("'$[]' is only valid in updates", field=str(path))
    return path


# =============================================================================
# FIELD OPERATORS
# =============================================================================


def _compare(op: str, ref: FieldRef, value: Any, allow_none: bool = False) -> Predicate:
    path = _query_path(ref)
    if value is None:
        if not allow_none:
            # null has no order
            raise TypeMismatchError(
                field=path.query, expected="a comparable value", actual="NoneType"
            )
    else:
        check_comparable(ref, value)
    return Predicate(ref.model, path, op, value)


def eq(ref: FieldRef, value: Any) -> Filter:
    """``ref == value``. ``None`` also matches a missing field."""
    return _compare("eq", ref, value, allow_none=True)


def ne(ref: FieldRef, value: Any) -> Filter:
    """``ref != value``."""
    return _compare("ne", ref, value, allow_none=True)


def lt(ref: FieldRef, value: Any) -> Filter:
    return _compare("lt", ref, value)


def lte(ref: FieldRef, value: Any) -> Filter:
    return _compare("lte", ref, value)


def gt(ref: FieldRef, value: Any) -> Filter:
    return _compare("gt", ref, value)


def gte(ref: FieldRef, value: Any) -> Filter:
    return _compare("gte", ref, value)


def in_(ref: FieldRef, values: Any) -> Filter:
    """``ref`` equals one of ``values``."""
    path = _query_path(ref)
    items = as_value_list(values, "in_")
    for item in items:
        if item is not None:
            check_comparable(ref, item)
    return Predicate(ref.model, path, "in", items)


def nin(ref: FieldRef, values: Any) -> Filter:
    """``ref`` equals none of ``values``."""
    path = _query_path(ref)
    items = as_value_list(values, "nin")
    for item in items:
        if item is not None:
            check_comparable(ref, item)
    return Predicate(ref.model, path, "nin", items)


def exists(ref: FieldRef, present: bool = True) -> Filter:
    if not isinstance(present, bool):
        raise ExpressionError("exists expects a boolean", value=present)
    return Predicate(ref.model, _query_path(ref), "exists", present)


def regex(ref: FieldRef, pattern: str, options: str = "") -> Filter:
    """Match a string field (or array of strings) against ``pattern``."""
    path = _query_path(ref)
    if not isinstance(pattern, str):
        raise ExpressionError("regex pattern must be a string", field=path.query, value=pattern)
    unknown = set(options) - _REGEX_OPTIONS
    if unknown:
        raise ExpressionError(
            f"unknown regex options {''.join(sorted(unknown))!r}", field=path.query, value=options
        )
    if not ref.is_raw and not is_string_annotation(ref.annotation):
        raise ExpressionError("regex requires a string field", field=path.query)
    return Predicate(ref.model, path, "regex", pattern, options)


def size(ref: FieldRef, length: int) -> Filter:
    """Match arrays with exactly ``length`` elements."""
    path = _query_path(ref)
    require_array(ref)
    if isinstance(length, bool) or not isinstance(length, int) or length < 0:
        raise ExpressionError(
            "size expects a non-negative integer", field=path.query, value=length
        )
    return Predicate(ref.model, path, "size", length)


def all_(ref: FieldRef, values: Any) -> Filter:
    """Match arrays containing every one of ``values``."""
    path = _query_path(ref)
    items = as_value_list(values, "all_")
    for item in items:
        check_element(ref, item)
    return Predicate(ref.model, path, "all", items)


def type_is(ref: FieldRef, bson_type: str | int) -> Filter:
    """Match values stored with the given BSON type alias (or number)."""
    path = _query_path(ref)
    if isinstance(bson_type, str):
        if bson_type not in BSON_TYPE_ALIASES:
            raise ExpressionError("unknown BSON type alias", field=path.query, value=bson_type)
    elif isinstance(bson_type, bool) or not isinstance(bson_type, int):
        raise ExpressionError("type_is expects an alias or a type number", value=bson_type)
    return Predicate(ref.model, path, "type", bson_type)


def elem_match(ref: FieldRef, subfilter: Filter) -> Filter:
    """Match arrays with at least one element satisfying ``subfilter``.

    ``subfilter`` is built over the element type, e.g.
    ``elem_match(F.items, fields(Item).qty > 2)``.
    """
    path = _query_path(ref)
    element = require_array(ref)
    if not isinstance(subfilter, Filter):
        raise ExpressionError("elem_match expects a filter", field=path.query, value=subfilter)
    element_model, _ = unwrap_optional(element)
    if is_model(element_model) and subfilter.model is not None:
        if subfilter.model is not element_model:
            raise DocumentTypeMismatchError(element_model, subfilter.model, "elem_match")
    return Predicate(ref.model, path, "elemMatch", subfilter)


# =============================================================================
# LOGICAL OPERATORS
# =============================================================================


def and_(*filters: Filter) -> Filter:
    """Conjunction; nested ``And`` nodes are flattened, ``MatchAll`` dropped."""
    _require_filters(filters, "and_")
    model = merge_models(filters)
    children: list[Filter] = []
    for filt in filters:
        if isinstance(filt, And):
            children.extend(filt.children)
        elif not isinstance(filt, MatchAll):
            children.append(filt)
    if not children:
        return MatchAll(model)
    if len(children) == 1:
        return children[0]
    return And(model, tuple(children))


def or_(*filters: Filter) -> Filter:
    """Disjunction; nested ``Or`` nodes are flattened."""
    if not filters:
        raise ExpressionError("or_ requires at least one filter")
    _require_filters(filters, "or_")
    model = merge_models(filters)
    children: list[Filter] = []
    for filt in filters:
        children.extend(filt.children if isinstance(filt, Or) else (filt,))
    if len(children) == 1:
        return children[0]
    return Or(model, tuple(children))


def nor(*filters: Filter) -> Filter:
    """Matches documents failing every one of ``filters``."""
    if not filters:
        raise ExpressionError("nor requires at least one filter")
    _require_filters(filters, "nor")
    return Nor(merge_models(filters), tuple(filters))


def not_(filt: Filter) -> Filter:
    """Negation; ``not_(not_(f))`` is ``f``."""
    _require_filters((filt,), "not_")
    if isinstance(filt, Not):
        return filt.child
    return Not(filt.model, filt)


def match_all(model: type | None = None) -> Filter:
    return MatchAll(model)


def raw_filter(document: Mapping[str, Any], model: type | None = None) -> Filter:
    """Escape hatch for filters the DSL cannot express; no checks are applied."""
    if not isinstance(document, Mapping):
        raise ExpressionError("raw_filter expects a mapping", value=document)
    return RawFilter(dict(document), model)


__all__ = [
    "And",
    "BSON_TYPE_ALIASES",
    "Filter",
    "MatchAll",
    "Nor",
    "Not",
    "Or",
    "Predicate",
    "RawFilter",
    "all_",
    "and_",
    "check_filter_model",
    "elem_match",
    "eq",
    "exists",
    "gt",
    "gte",
    "in_",
    "lt",
    "lte",
    "match_all",
    "merge_models",
    "ne",
    "nin",
    "nor",
    "not_",
    "or_",
    "raw_filter",
    "regex",
    "size",
    "type_is",
]
