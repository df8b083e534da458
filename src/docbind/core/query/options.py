"""Find options.

``FindOptions`` bundles projection, sort and pagination for ``find``.
Everything is checked against the document type before the query is sent.
"""

from dataclasses import dataclass
from typing import Any

from docbind.core.exceptions import InvalidOptionError
from docbind.core.model.paths import FieldRef, require_path

#: Index key directions besides 1 / -1.
SPECIAL_DIRECTIONS = ("text", "hashed", "2dsphere")


@dataclass(frozen=True, slots=True, eq=False)
class SortKey:
    """A field reference with a direction (``1``, ``-1`` or an index kind)."""

    ref: FieldRef
    direction: int | str = 1

    def __post_init__(self):
        require_path(self.ref)
        if self.direction not in (1, -1) and self.direction not in SPECIAL_DIRECTIONS:
            raise InvalidOptionError(
                "direction must be 1, -1 or one of " + ", ".join(SPECIAL_DIRECTIONS),
                field=self.ref.path.query,
                value=self.direction,
            )

    @property
    def path(self) -> str:
        return self.ref.path.query

    def __repr__(self) -> str:
        return f"SortKey({self.path}, {self.direction!r})"


def asc(ref: FieldRef) -> SortKey:
    return SortKey(ref, 1)


def desc(ref: FieldRef) -> SortKey:
    return SortKey(ref, -1)


def as_sort_key(item: SortKey | FieldRef) -> SortKey:
    """Accept a bare reference as ascending."""
    if isinstance(item, SortKey):
        return item
    if isinstance(item, FieldRef):
        return SortKey(item, 1)
    raise InvalidOptionError(
        f"expected a field reference or sort key, got {type(item).__name__}", value=item
    )


def sort_document(keys: tuple[SortKey, ...] | list[SortKey]) -> dict[str, Any]:
    """Lower sort keys to ``{path: direction}`` in order.

    Raises:
        InvalidOptionError: If a path appears twice.
    """
    document: dict[str, Any] = {}
    for key in keys:
        if key.path in document:
            raise InvalidOptionError("duplicate sort key", field=key.path)
        document[key.path] = key.direction
    return document


@dataclass(frozen=True, slots=True, eq=False)
class FindOptions:
    """Options for ``Collection.find``.

    Attributes:
        projection: Fields to return (``_id`` is always included). Partial
            documents rarely decode into the model; combine with
            ``output=dict`` on ``find``.
        sort: Sort keys in priority order. Bare refs sort ascending.
        skip: Number of documents to skip.
        limit: Maximum number of documents to return (0 = no limit).
        batch_size: Driver batch size hint.
        max_time_ms: Server-side time limit.
    """

    projection: tuple[FieldRef, ...] | None = None
    sort: tuple[SortKey | FieldRef, ...] | None = None
    skip: int | None = None
    limit: int | None = None
    batch_size: int | None = None
    max_time_ms: int | None = None

    def sort_keys(self) -> tuple[SortKey, ...]:
        return tuple(as_sort_key(item) for item in self.sort or ())


def _check_count(name: str, value: int | None) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidOptionError(f"{name} must be an integer", field=name, value=value)
    if value < 0:
        raise InvalidOptionError(f"{name} must not be negative", field=name, value=value)


def check_ref_model(ref: FieldRef, model: type, what: str) -> None:
    """Reject references built against another document type.

    Raw references are unbound and accepted everywhere.
    """
    if ref.model is not None and ref.model is not model:
        raise InvalidOptionError(
            f"{what} field belongs to {ref.model.__name__}, not {model.__name__}",
            field=ref.path.query,
        )


def validate_find_options(options: FindOptions, model: type) -> None:
    """Check ``options`` against ``model``.

    Raises:
        InvalidOptionError: On negative counts, duplicate sort keys or
            references bound to another document type.
    """
    _check_count("skip", options.skip)
    _check_count("limit", options.limit)
    _check_count("batch_size", options.batch_size)
    _check_count("max_time_ms", options.max_time_ms)

    for ref in options.projection or ():
        require_path(ref)
        check_ref_model(ref, model, "projection")
        if ref.path.has_all_marker:
            raise InvalidOptionError(
                "'$[]' is not allowed in projections", field=ref.path.query
            )
    keys = options.sort_keys()
    for key in keys:
        check_ref_model(key.ref, model, "sort")
        if key.ref.path.has_all_marker:
            raise InvalidOptionError("'$[]' is not allowed in sort keys", field=str(key.ref.path))
    sort_document(keys)


def projection_document(options: FindOptions) -> dict[str, Any] | None:
    if options.projection is None:
        return None
    return {ref.path.query: 1 for ref in options.projection}


__all__ = [
    "FindOptions",
    "SortKey",
    "asc",
    "as_sort_key",
    "check_ref_model",
    "desc",
    "projection_document",
    "sort_document",
    "validate_find_options",
]
