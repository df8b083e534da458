"""Field-Path Resolver.

Turns typed attribute access on a document type into field paths:

    >>> F = fields(User)
    >>> str(F.address.city.path)
    'address.city'
    >>> str(F.tags[0].path)
    'tags.0'
    >>> str(F.items[ANY].qty.path)
    'items.$.qty'

Resolution is purely structural: it only looks at declared annotations, so an
invalid path fails while the expression is being written, not when the query
runs. Paths are kept as segment tuples so that ancestor/descendant relations
can be computed segment by segment.

Array markers:

- ``tags[0]``: a literal index.
- ``items[ANY]``: the first matching element. Rendered ``$`` in updates; in
  queries the store matches any element implicitly, so the marker is dropped.
- ``items[ALL]``: every element, ``$[]``. Updates only.
- ``items.sku`` (no marker): implicit traversal of an array of documents.
  Valid in queries, projections and sorts; rejected in updates.

A literal index and a positional marker cannot appear in the same path, and
``$`` can appear at most once.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from docbind.core.exceptions import InvalidFieldPathError
from docbind.core.model.annotations import (
    element_type,
    is_mapping,
    is_model,
    is_sequence,
    type_name,
    unwrap_optional,
    value_type,
)
from docbind.core.model.document import describe

if TYPE_CHECKING:
    from docbind.core.query.filters import Filter
    from docbind.core.query.options import SortKey

type SegmentKind = Literal["name", "index", "any", "all", "key"]


class _Marker:
    __slots__ = ("_kind",)

    def __init__(self, kind: str):
        self._kind = kind

    def __repr__(self) -> str:
        return self._kind.upper()


#: Positional "first matching element" marker.
ANY = _Marker("any")
#: "Every element" marker (updates only).
ALL = _Marker("all")


# =============================================================================
# SEGMENTS AND PATHS
# =============================================================================


@dataclass(frozen=True, slots=True)
class Segment:
    """One step of a field path.

    Attributes:
        kind: ``name``, ``index``, ``any``, ``all`` or ``key``.
        value: External field name, index or mapping key.
        implicit_array: For ``name`` segments reached through an array
            without a marker.
    """

    kind: SegmentKind
    value: str | int | None = None
    implicit_array: bool = False

    @property
    def positional(self) -> bool:
        return self.kind in ("any", "all")

    def render(self, context: Literal["query", "update"]) -> str | None:
        """Render for the given context; None means "omit"."""
        if self.kind == "any":
            return "$" if context == "update" else None
        if self.kind == "all":
            return "$[]"
        return str(self.value)

    def overlaps(self, other: "Segment") -> bool:
        """Whether two segments may address the same location.

        Positional markers overlap any array step; names and mapping keys
        overlap when their rendered names are equal.
        """
        arrayish = ("index", "any", "all")
        if self.kind in arrayish and other.kind in arrayish:
            return self.positional or other.positional or self.value == other.value
        if self.kind in arrayish or other.kind in arrayish:
            return False
        return self.value == other.value


@dataclass(frozen=True, slots=True)
class FieldPath:
    """A structured, dot-renderable path."""

    segments: tuple[Segment, ...] = ()

    def child(self, segment: Segment) -> "FieldPath":
        return FieldPath(self.segments + (segment,))

    @property
    def root(self) -> str | None:
        """External name of the top-level field, if any."""
        if not self.segments:
            return None
        return str(self.segments[0].value)

    @property
    def is_empty(self) -> bool:
        return not self.segments

    @property
    def has_implicit_array(self) -> bool:
        return any(seg.implicit_array for seg in self.segments)

    @property
    def has_all_marker(self) -> bool:
        return any(seg.kind == "all" for seg in self.segments)

    def render(self, context: Literal["query", "update"] = "update") -> str:
        """Join the rendered segments with ``.``."""
        parts = (seg.render(context) for seg in self.segments)
        return ".".join(part for part in parts if part is not None)

    @property
    def query(self) -> str:
        """Path as used in filters, projections and sorts."""
        return self.render("query")

    def is_prefix_of(self, other: "FieldPath") -> bool:
        """Whether this path addresses ``other`` or one of its ancestors."""
        if len(self.segments) > len(other.segments):
            return False
        return all(a.overlaps(b) for a, b in zip(self.segments, other.segments, strict=False))

    def overlaps(self, other: "FieldPath") -> bool:
        """Whether the two paths are equal or one is an ancestor of the other."""
        return self.is_prefix_of(other) or other.is_prefix_of(self)

    def __str__(self) -> str:
        return self.render("update")


def parse_path(dotted: str) -> FieldPath:
    """Parse a free-form dotted path (the ``raw()`` escape)."""
    if not isinstance(dotted, str) or not dotted:
        raise InvalidFieldPathError("raw path must be a non-empty string", value=dotted)
    segments = []
    for part in dotted.split("."):
        if not part:
            raise InvalidFieldPathError("empty path segment", field=dotted)
        if part == "$":
            segments.append(Segment("any"))
        elif part == "$[]":
            segments.append(Segment("all"))
        elif part.isdigit():
            segments.append(Segment("index", int(part)))
        else:
            segments.append(Segment("name", part))
    path = FieldPath(tuple(segments))
    _check_markers(path, dotted)
    return path


def _check_markers(path: FieldPath, where: str) -> None:
    kinds = [seg.kind for seg in path.segments]
    if "index" in kinds and ("any" in kinds or "all" in kinds):
        raise InvalidFieldPathError(
            "literal indexes and positional markers cannot be mixed in one path",
            field=where,
        )
    if kinds.count("any") > 1:
        raise InvalidFieldPathError("the '$' marker may appear only once per path", field=where)


# =============================================================================
# TYPED FIELD REFERENCES
# =============================================================================


class FieldRef:
    """A typed reference to a (possibly nested) field of a document type.

    Obtained from ``fields(Model)``; extended by attribute access and
    indexing. Comparison operators build filters, so ``FieldRef`` objects
    are not hashable and must not be compared for identity with ``==``.
    """

    __slots__ = ("_model", "_path", "_annotation")

    def __init__(self, model: type | None, path: FieldPath, annotation: Any):
        self._model = model
        self._path = path
        self._annotation = annotation

    @property
    def model(self) -> type | None:
        """Document type this reference is bound to (None for raw paths)."""
        return self._model

    @property
    def path(self) -> FieldPath:
        return self._path

    @property
    def annotation(self) -> Any:
        """Declared annotation at this path (``Any`` for raw paths)."""
        return self._annotation

    @property
    def is_raw(self) -> bool:
        return self._annotation is Any

    def _describe_where(self) -> str:
        owner = self._model.__name__ if self._model is not None else "raw"
        return f"{owner}.{self._path}" if not self._path.is_empty else owner

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def __getattr__(self, name: str) -> "FieldRef":
        if name.startswith("_"):
            raise AttributeError(name)
        return self._attribute(name)

    def _attribute(self, name: str) -> "FieldRef":
        if self.is_raw:
            return self._extend(Segment("name", name), Any)

        target, _ = unwrap_optional(self._annotation)
        implicit = False
        if not is_model(target):
            element = element_type(target)
            if element is not None and is_model(unwrap_optional(element)[0]):
                target = unwrap_optional(element)[0]
                implicit = True
            else:
                raise InvalidFieldPathError(
                    f"'{self._describe_where()}' of type {type_name(self._annotation)} "
                    f"has no field '{name}'",
                    field=str(self._path) or None,
                )

        spec = describe(target).field(name)
        if spec is None:
            raise InvalidFieldPathError(
                f"{target.__name__} has no field '{name}'",
                field=str(self._path) or None,
            )
        return self._extend(
            Segment("name", spec.external_name, implicit_array=implicit), spec.annotation
        )

    def __getitem__(self, key: Any) -> "FieldRef":
        if self.is_raw:
            return self._extend(_segment_for_key(key, self), Any)

        target, _ = unwrap_optional(self._annotation)
        if isinstance(key, str):
            if not is_mapping(target):
                raise InvalidFieldPathError(
                    f"'{self._describe_where()}' is not a mapping; cannot index with {key!r}",
                    field=str(self._path) or None,
                )
            return self._extend(_segment_for_key(key, self), value_type(target))

        element = element_type(target) if is_sequence(target) else None
        if element is None:
            raise InvalidFieldPathError(
                f"'{self._describe_where()}' of type {type_name(self._annotation)} "
                "is not an array",
                field=str(self._path) or None,
            )
        return self._extend(_segment_for_key(key, self), element)

    def _extend(self, segment: Segment, annotation: Any) -> "FieldRef":
        path = self._path.child(segment)
        _check_markers(path, str(path))
        return FieldRef(self._model, path, annotation)

    # -------------------------------------------------------------------------
    # Filter operators (see docbind.core.query.filters)
    # -------------------------------------------------------------------------

    def __eq__(self, value: Any) -> "Filter":  # type: ignore[override]
        from docbind.core.query.filters import eq

        return eq(self, value)

    def __ne__(self, value: Any) -> "Filter":  # type: ignore[override]
        from docbind.core.query.filters import ne

        return ne(self, value)

    def __lt__(self, value: Any) -> "Filter":
        from docbind.core.query.filters import lt

        return lt(self, value)

    def __le__(self, value: Any) -> "Filter":
        from docbind.core.query.filters import lte

        return lte(self, value)

    def __gt__(self, value: Any) -> "Filter":
        from docbind.core.query.filters import gt

        return gt(self, value)

    def __ge__(self, value: Any) -> "Filter":
        from docbind.core.query.filters import gte

        return gte(self, value)

    __hash__ = None  # type: ignore[assignment]

    def in_(self, values: Any) -> "Filter":
        from docbind.core.query.filters import in_

        return in_(self, values)

    def not_in(self, values: Any) -> "Filter":
        from docbind.core.query.filters import nin

        return nin(self, values)

    def exists(self, present: bool = True) -> "Filter":
        from docbind.core.query.filters import exists

        return exists(self, present)

    def regex(self, pattern: str, options: str = "") -> "Filter":
        from docbind.core.query.filters import regex

        return regex(self, pattern, options)

    def size(self, length: int) -> "Filter":
        from docbind.core.query.filters import size

        return size(self, length)

    # -------------------------------------------------------------------------
    # Sorting
    # -------------------------------------------------------------------------

    def asc(self) -> "SortKey":
        from docbind.core.query.options import SortKey

        return SortKey(self, 1)

    def desc(self) -> "SortKey":
        from docbind.core.query.options import SortKey

        return SortKey(self, -1)

    def __bool__(self) -> bool:
        # `a == b and c` on refs is almost always a mistake; use `&`.
        raise TypeError("FieldRef has no truth value; combine filters with & and |")

    def __repr__(self) -> str:
        return f"FieldRef({self._describe_where()})"


def _segment_for_key(key: Any, ref: FieldRef) -> Segment:
    if key is ANY:
        return Segment("any")
    if key is ALL:
        return Segment("all")
    if isinstance(key, bool):
        raise InvalidFieldPathError("boolean is not a valid index", field=str(ref.path) or None)
    if isinstance(key, int):
        if key < 0:
            raise InvalidFieldPathError(
                "array index must be non-negative", field=str(ref.path) or None, value=key
            )
        return Segment("index", key)
    if isinstance(key, str):
        if not key or "." in key or key.startswith("$"):
            raise InvalidFieldPathError(
                "mapping key must be non-empty, without '.' and not starting with '$'",
                field=str(ref.path) or None,
                value=key,
            )
        return Segment("key", key)
    raise InvalidFieldPathError(
        f"unsupported index {key!r}", field=str(ref.path) or None, value=key
    )


def fields(model: type) -> FieldRef:
    """Root accessor for the fields of ``model``.

    Example:
        >>> F = fields(User)
        >>> filt = (F.age >= 18) & (F.name != "root")
    """
    describe(model)
    return FieldRef(model, FieldPath(), model)


def raw(dotted: str) -> FieldRef:
    """Explicitly escaped, untyped field path.

    Raw references are not bound to any document type and skip operand type
    checks; use them for computed fields (e.g. after ``$group``) or fields a
    model does not declare.
    """
    return FieldRef(None, parse_path(dotted), Any)


def require_path(ref: FieldRef) -> FieldPath:
    """Return the path of ``ref``, rejecting the root accessor itself."""
    if not isinstance(ref, FieldRef):
        raise InvalidFieldPathError(
            f"expected a field reference, got {type(ref).__name__}", value=ref
        )
    if ref.path.is_empty:
        raise InvalidFieldPathError("the root accessor is not a field; select a field first")
    return ref.path


__all__ = [
    "ANY",
    "ALL",
    "FieldPath",
    "FieldRef",
    "Segment",
    "fields",
    "parse_path",
    "raw",
    "require_path",
]
