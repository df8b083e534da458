"""Expression DSL - Updates.

``Update`` is an immutable builder of field update operations:

    >>> F = fields(User)
    >>> upd = Update(User).set(F.name, "Ann").inc(F.age, 1)
    >>> upd.to_document()
    {'$set': {'name': 'Ann'}, '$inc': {'age': 1}}

Each method returns a new ``Update``; the receiver is never modified.
Operands are type-checked against the target field and each operation is
checked against the ones already present: two operations on the same path,
or on an ancestor and its descendant (``address`` and ``address.city``),
raise ``ConflictingUpdateError`` while the update is being built.

Paths that traverse an array of documents without an index or marker
(``items.sku``) are rejected; use ``items[ANY].sku``, ``items[ALL].sku`` or a
literal index instead.
"""

import copy
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from docbind.core.exceptions import (
    ConflictingUpdateError,
    DocumentTypeMismatchError,
    ExpressionError,
    TypeMismatchError,
)
from docbind.core.model.annotations import type_name
from docbind.core.model.codec import encode_value
from docbind.core.model.document import Document, describe
from docbind.core.model.paths import FieldPath, FieldRef, require_path
from docbind.core.query.filters import Filter
from docbind.core.query.operands import (
    as_value_list,
    check_element,
    check_numeric,
    check_value,
    is_date_annotation,
    require_array,
)


@dataclass(frozen=True, slots=True)
class UpdateOp:
    """One operation: ``{operator: {path: value}}``.

    Attributes:
        operator: Update operator including ``$`` (``$set``, ``$push``...).
        path: Target path.
        value: Lowered value (already encoded).
        touches: Every path the operation writes (``$rename`` writes two).
    """

    operator: str
    path: FieldPath
    value: Any
    touches: tuple[FieldPath, ...]


class Update:
    """Immutable update builder bound to one document type."""

    __slots__ = ("_model", "_ops")

    def __init__(self, model: type, ops: tuple[UpdateOp, ...] = ()):
        describe(model)
        self._model = model
        self._ops = ops

    @property
    def model(self) -> type:
        return self._model

    @property
    def operations(self) -> tuple[UpdateOp, ...]:
        return self._ops

    @property
    def is_empty(self) -> bool:
        return not self._ops

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _path(self, ref: FieldRef) -> FieldPath:
        path = require_path(ref)
        if ref.model is not None and ref.model is not self._model:
            raise DocumentTypeMismatchError(self._model, ref.model, "update")
        if path.has_implicit_array:
            raise ExpressionError(
                "updates cannot traverse an array implicitly; index it or use ANY / ALL",
                field=path.query,
            )
        return path

    def _add(self, operator: str, ref: FieldRef, value: Any) -> "Update":
        path = self._path(ref)
        return self._with(UpdateOp(operator, path, value, (path,)))

    def _with(self, op: UpdateOp) -> "Update":
        for existing in self._ops:
            for new_path in op.touches:
                for old_path in existing.touches:
                    if new_path.overlaps(old_path):
                        raise ConflictingUpdateError(str(new_path), str(old_path))
        return Update(self._model, self._ops + (op,))

    @staticmethod
    def _encode(ref: FieldRef, value: Any) -> Any:
        return encode_value(value, str(ref.path))

    # -------------------------------------------------------------------------
    # Field operators
    # -------------------------------------------------------------------------

    def set(self, ref: FieldRef, value: Any) -> "Update":
        check_value(ref, value)
        return self._add("$set", ref, self._encode(ref, value))

    def unset(self, ref: FieldRef) -> "Update":
        return self._add("$unset", ref, "")

    def inc(self, ref: FieldRef, amount: int | float) -> "Update":
        check_numeric(ref, amount)
        return self._add("$inc", ref, self._encode(ref, amount))

    def mul(self, ref: FieldRef, factor: int | float) -> "Update":
        check_numeric(ref, factor)
        return self._add("$mul", ref, self._encode(ref, factor))

    def min(self, ref: FieldRef, value: Any) -> "Update":
        """Set the field to ``value`` if ``value`` is smaller."""
        check_value(ref, value)
        return self._add("$min", ref, self._encode(ref, value))

    def max(self, ref: FieldRef, value: Any) -> "Update":
        """Set the field to ``value`` if ``value`` is larger."""
        check_value(ref, value)
        return self._add("$max", ref, self._encode(ref, value))

    def current_date(self, ref: FieldRef) -> "Update":
        """Set a ``datetime``/``date`` field to the server's current date."""
        if not ref.is_raw and not is_date_annotation(ref.annotation):
            raise TypeMismatchError(
                field=str(ref.path),
                expected="datetime field",
                actual=type_name(ref.annotation),
            )
        return self._add("$currentDate", ref, True)

    def set_on_insert(self, ref: FieldRef, value: Any) -> "Update":
        """Like ``set``, applied only when an upsert inserts a document."""
        check_value(ref, value)
        return self._add("$setOnInsert", ref, self._encode(ref, value))

    def rename(self, ref: FieldRef, new_ref: FieldRef) -> "Update":
        """Move the value of ``ref`` to ``new_ref`` (same declared type)."""
        old = self._path(ref)
        new = self._path(new_ref)
        for path in (old, new):
            if any(seg.kind in ("index", "any", "all") for seg in path.segments):
                raise ExpressionError("rename cannot address array elements", field=str(path))
        if old.overlaps(new):
            raise ConflictingUpdateError(str(new), str(old))
        if not (ref.is_raw or new_ref.is_raw) and ref.annotation != new_ref.annotation:
            raise TypeMismatchError(
                field=str(new),
                expected=type_name(ref.annotation),
                actual=type_name(new_ref.annotation),
            )
        return self._with(UpdateOp("$rename", old, str(new), (old, new)))

    # -------------------------------------------------------------------------
    # Array operators
    # -------------------------------------------------------------------------

    def push(self, ref: FieldRef, value: Any) -> "Update":
        check_element(ref, value)
        return self._add("$push", ref, self._encode(ref, value))

    def push_each(
        self,
        ref: FieldRef,
        values: Any,
        *,
        position: int | None = None,
        slice: int | None = None,
        sort: int | Mapping[str, int] | None = None,
    ) -> "Update":
        """Append several values, optionally positioned, sorted and capped."""
        items = as_value_list(values, "push_each")
        for item in items:
            check_element(ref, item)
        modifier: dict[str, Any] = {"$each": self._encode(ref, items)}
        for name, number in (("$position", position), ("$slice", slice)):
            if number is None:
                continue
            if isinstance(number, bool) or not isinstance(number, int):
                raise ExpressionError(
                    f"{name} expects an integer", field=str(ref.path), value=number
                )
            modifier[name] = number
        if sort is not None:
            directions = sort.values() if isinstance(sort, Mapping) else (sort,)
            if any(direction not in (1, -1) for direction in directions):
                raise ExpressionError("$sort directions must be 1 or -1", value=sort)
            modifier["$sort"] = dict(sort) if isinstance(sort, Mapping) else sort
        return self._add("$push", ref, modifier)

    def add_to_set(self, ref: FieldRef, value: Any) -> "Update":
        check_element(ref, value)
        return self._add("$addToSet", ref, self._encode(ref, value))

    def add_each_to_set(self, ref: FieldRef, values: Any) -> "Update":
        items = as_value_list(values, "add_each_to_set")
        for item in items:
            check_element(ref, item)
        return self._add("$addToSet", ref, {"$each": self._encode(ref, items)})

    def pull(self, ref: FieldRef, value: Any) -> "Update":
        """Remove matching elements: an element value or a filter over elements."""
        if isinstance(value, Filter):
            require_array(ref)
            return self._add("$pull", ref, value.to_document())
        check_element(ref, value)
        return self._add("$pull", ref, self._encode(ref, value))

    def pull_all(self, ref: FieldRef, values: Any) -> "Update":
        items = as_value_list(values, "pull_all")
        for item in items:
            check_element(ref, item)
        return self._add("$pullAll", ref, self._encode(ref, items))

    def pop(self, ref: FieldRef, first: bool = False) -> "Update":
        """Remove the last element (or the first, with ``first=True``)."""
        require_array(ref)
        return self._add("$pop", ref, -1 if first else 1)

    # -------------------------------------------------------------------------
    # Lowering
    # -------------------------------------------------------------------------

    def to_document(self) -> Document:
        """Group operations by operator, in first-appearance order.

        Each call returns a new document; mutating it leaves the update intact.

        Raises:
            ExpressionError: If the update has no operations.
        """
        if not self._ops:
            raise ExpressionError("an update needs at least one operation")
        document: Document = {}
        for op in self._ops:
            document.setdefault(op.operator, {})[str(op.path)] = copy.deepcopy(op.value)
        return document

    def __repr__(self) -> str:
        ops = ", ".join(f"{op.operator} {op.path}" for op in self._ops)
        return f"Update({self._model.__name__}: {ops})"


def check_update_model(update: Update, model: type) -> None:
    """Reject an update built for a document type other than ``model``."""
    if not isinstance(update, Update):
        raise ExpressionError(f"expected an Update, got {type(update).__name__}", value=update)
    if update.model is not model:
        raise DocumentTypeMismatchError(model, update.model, "update")


__all__ = ["Update", "UpdateOp", "check_update_model"]
