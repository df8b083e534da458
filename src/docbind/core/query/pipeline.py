"""Aggregation pipelines.

``Pipeline`` builds an aggregation stage by stage; each stage is validated
against the shape of the documents flowing into it. Until the first
``project``, ``group``, ``count`` or ``unwind`` that shape is the document
type, so typed references resolve as usual. Afterwards only references whose
top-level field is part of the new output are accepted; use ``raw()`` for
computed fields.

    >>> F = fields(Order)
    >>> p = (
    ...     Pipeline(Order)
    ...     .match(F.status == "paid")
    ...     .group(F.customer, total=sum_(F.amount))
    ...     .sort(raw("total").desc())
    ... )
    >>> p.to_documents()[1]
    {'$group': {'_id': '$customer', 'total': {'$sum': '$amount'}}}
"""

import copy
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from docbind.core.exceptions import DocumentTypeMismatchError, InvalidOptionError
from docbind.core.model.codec import encode_value
from docbind.core.model.document import ID_FIELD, Document, describe
from docbind.core.model.paths import FieldRef, require_path
from docbind.core.query.filters import And, Filter, Nor, Not, Or, Predicate, check_filter_model
from docbind.core.query.operands import is_numeric_annotation, require_array
from docbind.core.query.options import SortKey, as_sort_key, sort_document


# =============================================================================
# ACCUMULATORS
# =============================================================================


@dataclass(frozen=True, slots=True, eq=False)
class Accumulator:
    """A ``$group`` accumulator: ``{"$op": "$path"}`` or ``{"$op": constant}``."""

    op: str
    ref: FieldRef | None = None
    constant: Any = None

    def to_document(self) -> Document:
        if self.ref is not None:
            return {self.op: f"${self.ref.path.query}"}
        return {self.op: encode_value(self.constant)}


def _numeric(op: str, ref: FieldRef) -> Accumulator:
    require_path(ref)
    if not ref.is_raw and not is_numeric_annotation(ref.annotation):
        raise InvalidOptionError(f"{op} requires a numeric field", field=ref.path.query)
    return Accumulator(op, ref)


def sum_(value: FieldRef | int | float = 1) -> Accumulator:
    """Sum of a numeric field, or of a constant per document."""
    if isinstance(value, FieldRef):
        return _numeric("$sum", value)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidOptionError("sum_ expects a numeric field or constant", value=value)
    return Accumulator("$sum", constant=value)


def avg(ref: FieldRef) -> Accumulator:
    return _numeric("$avg", ref)


def min_(ref: FieldRef) -> Accumulator:
    require_path(ref)
    return Accumulator("$min", ref)


def max_(ref: FieldRef) -> Accumulator:
    require_path(ref)
    return Accumulator("$max", ref)


def first(ref: FieldRef) -> Accumulator:
    require_path(ref)
    return Accumulator("$first", ref)


def last(ref: FieldRef) -> Accumulator:
    require_path(ref)
    return Accumulator("$last", ref)


def push(ref: FieldRef) -> Accumulator:
    """Collect the values of ``ref`` into an array."""
    require_path(ref)
    return Accumulator("$push", ref)


def count_() -> Accumulator:
    """Number of documents in the group."""
    return Accumulator("$sum", constant=1)


# =============================================================================
# PIPELINE
# =============================================================================


def _filter_predicates(filt: Filter) -> Iterator[Predicate]:
    if isinstance(filt, Predicate):
        yield filt
    elif isinstance(filt, (And, Or, Nor)):
        for child in filt.children:
            yield from _filter_predicates(child)
    elif isinstance(filt, Not):
        yield from _filter_predicates(filt.child)


def _check_output_name(name: str) -> None:
    if not name or "." in name or name.startswith("$"):
        raise InvalidOptionError(
            "output field names must be non-empty, without '.' and not starting with '$'",
            value=name,
        )


class Pipeline:
    """Immutable aggregation pipeline bound to one document type."""

    __slots__ = ("_model", "_stages", "_roots")

    def __init__(
        self,
        model: type,
        stages: tuple[Document, ...] = (),
        roots: frozenset[str] | None = None,
    ):
        describe(model)
        self._model = model
        self._stages = stages
        self._roots = roots

    @property
    def model(self) -> type:
        return self._model

    @property
    def output_roots(self) -> frozenset[str] | None:
        """Top-level fields after the last reshaping stage (None = the model)."""
        return self._roots

    def __len__(self) -> int:
        return len(self._stages)

    # -------------------------------------------------------------------------
    # Shape checks
    # -------------------------------------------------------------------------

    def _check_ref(self, ref: FieldRef, stage: str) -> str:
        path = require_path(ref)
        if ref.model is not None and ref.model is not self._model:
            raise DocumentTypeMismatchError(self._model, ref.model, "pipeline")
        if self._roots is not None and not ref.is_raw and path.root not in self._roots:
            raise InvalidOptionError(
                f"'{path.root}' is not part of the documents entering ${stage}",
                field=path.query,
            )
        if path.has_all_marker:
            raise InvalidOptionError("'$[]' is not valid in pipelines", field=str(path))
        return path.query

    def _then(self, stage: Document, roots: frozenset[str] | None = None) -> "Pipeline":
        new_roots = self._roots if roots is None else roots
        return Pipeline(self._model, self._stages + (stage,), new_roots)

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def match(self, filt: Filter) -> "Pipeline":
        check_filter_model(filt, self._model)
        for predicate in _filter_predicates(filt):
            if predicate.model is not None and self._roots is not None:
                if predicate.path.root not in self._roots:
                    raise InvalidOptionError(
                        f"'{predicate.path.root}' is not part of the documents entering $match",
                        field=predicate.path.query,
                    )
        return self._then({"$match": filt.to_document()})

    def project(self, *refs: FieldRef, exclude_id: bool = False) -> "Pipeline":
        """Keep only ``refs`` (and ``_id`` unless ``exclude_id``)."""
        if not refs:
            raise InvalidOptionError("project needs at least one field")
        spec: Document = {}
        roots = set()
        for ref in refs:
            path = self._check_ref(ref, "project")
            spec[path] = 1
            roots.add(ref.path.root)
        if exclude_id:
            spec[ID_FIELD] = 0
            roots.discard(ID_FIELD)
        else:
            roots.add(ID_FIELD)
        return self._then({"$project": spec}, frozenset(roots))

    def sort(self, *keys: SortKey | FieldRef) -> "Pipeline":
        if not keys:
            raise InvalidOptionError("sort needs at least one key")
        sort_keys = tuple(as_sort_key(key) for key in keys)
        for key in sort_keys:
            self._check_ref(key.ref, "sort")
        return self._then({"$sort": sort_document(sort_keys)})

    def skip(self, count: int) -> "Pipeline":
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise InvalidOptionError("skip must be a non-negative integer", value=count)
        return self._then({"$skip": count})

    def limit(self, count: int) -> "Pipeline":
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise InvalidOptionError("limit must be a positive integer", value=count)
        return self._then({"$limit": count})

    def unwind(self, ref: FieldRef, preserve_null: bool = False) -> "Pipeline":
        """One output document per element of the array field ``ref``."""
        path = self._check_ref(ref, "unwind")
        roots = self._roots
        if roots is None:
            require_array(ref)
            # the unwound field no longer matches the model
            roots = frozenset(describe(self._model).external_names)
        if preserve_null:
            return self._then(
                {"$unwind": {"path": f"${path}", "preserveNullAndEmptyArrays": True}}, roots
            )
        return self._then({"$unwind": f"${path}"}, roots)

    def group(
        self,
        by: FieldRef | Mapping[str, FieldRef] | None,
        **accumulators: Accumulator,
    ) -> "Pipeline":
        """Group by ``by`` (None groups everything) and compute ``accumulators``.

        Output documents have ``_id`` plus one field per accumulator name.
        """
        if by is None:
            group_id: Any = None
        elif isinstance(by, FieldRef):
            group_id = f"${self._check_ref(by, 'group')}"
        elif isinstance(by, Mapping):
            group_id = {}
            for name, ref in by.items():
                _check_output_name(name)
                group_id[name] = f"${self._check_ref(ref, 'group')}"
        else:
            raise InvalidOptionError(
                "group key must be a field, a mapping of fields or None", value=by
            )

        spec: Document = {ID_FIELD: group_id}
        for name, acc in accumulators.items():
            _check_output_name(name)
            if name == ID_FIELD:
                raise InvalidOptionError("'_id' is reserved for the group key", value=name)
            if not isinstance(acc, Accumulator):
                raise InvalidOptionError(
                    f"'{name}' must be an accumulator, got {type(acc).__name__}", value=acc
                )
            if acc.ref is not None:
                self._check_ref(acc.ref, "group")
            spec[name] = acc.to_document()
        return self._then({"$group": spec}, frozenset({ID_FIELD, *accumulators}))

    def count(self, name: str = "count") -> "Pipeline":
        _check_output_name(name)
        return self._then({"$count": name}, frozenset({name}))

    # -------------------------------------------------------------------------
    # Lowering
    # -------------------------------------------------------------------------

    def to_documents(self) -> list[Document]:
        return [copy.deepcopy(stage) for stage in self._stages]

    def __repr__(self) -> str:
        names = ", ".join(next(iter(stage)) for stage in self._stages)
        return f"Pipeline({self._model.__name__}: [{names}])"


def check_pipeline_model(pipeline: Pipeline, model: type) -> None:
    """Reject a pipeline built for a document type other than ``model``."""
    if not isinstance(pipeline, Pipeline):
        raise InvalidOptionError(
            f"expected a Pipeline, got {type(pipeline).__name__}", value=pipeline
        )
    if pipeline.model is not model:
        raise DocumentTypeMismatchError(model, pipeline.model, "pipeline")


__all__ = [
    "Accumulator",
    "Pipeline",
    "avg",
    "check_pipeline_model",
    "count_",
    "first",
    "last",
    "max_",
    "min_",
    "push",
    "sum_",
]
