"""Operand checks shared by filters, updates and pipelines.

Operands are validated with pydantic in strict mode against the declared
annotation of the field they are compared with or written to, so ``"30"``
is rejected for an ``int`` field instead of being coerced. Raw references
(``raw("...")``) carry no annotation and are never checked.
"""

import datetime
import decimal
import functools
from collections.abc import Mapping
from typing import Any, get_args

from pydantic import ConfigDict, PydanticUserError, TypeAdapter, ValidationError

from docbind.core.exceptions import ExpressionError, TypeMismatchError
from docbind.core.model.annotations import (
    NoneType,
    element_type,
    is_model,
    is_sequence,
    is_union,
    strip_annotated,
    type_name,
    unwrap_optional,
)
from docbind.core.model.paths import FieldRef

_NUMERIC = (int, float, decimal.Decimal)


def _build_adapter(annotation: Any) -> TypeAdapter:
    try:
        return TypeAdapter(annotation, config=ConfigDict(arbitrary_types_allowed=True))
    except PydanticUserError:
        # types carrying their own config (dataclasses, TypedDict)
        return TypeAdapter(annotation)


@functools.lru_cache(maxsize=512)
def _cached_adapter(annotation: Any) -> TypeAdapter:
    return _build_adapter(annotation)


def _adapter(annotation: Any) -> TypeAdapter:
    try:
        return _cached_adapter(annotation)
    except TypeError:
        # unhashable annotation metadata
        return _build_adapter(annotation)


def accepts(annotation: Any, value: Any) -> bool:
    """Whether ``value`` is a valid instance of ``annotation`` without coercion."""
    annotation, _ = strip_annotated(annotation)
    if annotation is Any:
        return True
    inner, nullable = unwrap_optional(annotation)
    if value is None:
        return nullable or inner is NoneType
    if is_model(inner):
        return isinstance(value, inner)
    if is_union(inner):
        return any(accepts(arg, value) for arg in get_args(inner))
    try:
        _adapter(inner).validate_python(value, strict=True)
    except ValidationError:
        return False
    return True


def _mismatch(ref: FieldRef, expected: str, value: Any) -> TypeMismatchError:
    return TypeMismatchError(
        field=ref.path.query or str(ref.path),
        expected=expected,
        actual=type(value).__name__,
        value=value,
    )


def check_value(ref: FieldRef, value: Any) -> None:
    """Check a value written to (or compared with) the whole field.

    Raises:
        TypeMismatchError: If ``value`` does not fit the field annotation.
    """
    if ref.is_raw:
        return
    if not accepts(ref.annotation, value):
        raise _mismatch(ref, type_name(ref.annotation), value)


def check_element(ref: FieldRef, value: Any) -> None:
    """Check a value added to, or removed from, an array field.

    Raises:
        TypeMismatchError: If the field is not an array or ``value`` does not
            fit its element annotation.
    """
    if ref.is_raw:
        return
    element = require_array(ref)
    if not accepts(element, value):
        raise _mismatch(ref, type_name(element), value)


def check_comparable(ref: FieldRef, value: Any) -> None:
    """Check a comparison operand.

    Array fields accept either a whole array or a single element, matching
    the store's "any element" semantics.
    """
    if ref.is_raw:
        return
    if accepts(ref.annotation, value):
        return
    element = element_type(ref.annotation)
    if element is not None and accepts(element, value):
        return
    raise _mismatch(ref, type_name(ref.annotation), value)


def require_array(ref: FieldRef) -> Any:
    """Return the element annotation of an array field.

    Raises:
        TypeMismatchError: If the field is not array-valued.
    """
    if ref.is_raw:
        return Any
    inner, _ = unwrap_optional(ref.annotation)
    if not is_sequence(inner):
        raise TypeMismatchError(
            field=ref.path.query or str(ref.path),
            expected="array",
            actual=type_name(ref.annotation),
        )
    return element_type(inner)


def is_numeric_annotation(annotation: Any) -> bool:
    inner, _ = unwrap_optional(annotation)
    if inner is Any:
        return True
    if is_union(inner):
        return all(is_numeric_annotation(arg) for arg in get_args(inner))
    return isinstance(inner, type) and issubclass(inner, _NUMERIC) and inner is not bool


def check_numeric(ref: FieldRef, value: Any) -> None:
    """Check an arithmetic update (``$inc`` / ``$mul``).

    Raises:
        TypeMismatchError: If the field or the operand is not numeric, or
            the operand would change the field's declared type.
    """
    if isinstance(value, bool) or not isinstance(value, _NUMERIC):
        raise _mismatch(ref, "number", value)
    if ref.is_raw:
        return
    if not is_numeric_annotation(ref.annotation):
        raise TypeMismatchError(
            field=ref.path.query or str(ref.path),
            expected="numeric field",
            actual=type_name(ref.annotation),
            value=value,
        )
    check_value(ref, value)


def is_string_annotation(annotation: Any) -> bool:
    inner, _ = unwrap_optional(annotation)
    if inner is Any:
        return True
    element = element_type(inner)
    if element is not None:
        return is_string_annotation(element)
    return isinstance(inner, type) and issubclass(inner, str)


def is_date_annotation(annotation: Any) -> bool:
    inner, _ = unwrap_optional(annotation)
    return inner is Any or (isinstance(inner, type) and issubclass(inner, datetime.date))


def as_value_list(values: Any, what: str) -> list[Any]:
    """Materialize an operand collection (``$in``, ``$all``, ``$each``...).

    Raises:
        ExpressionError: If ``values`` is a string, a mapping or not iterable.
    """
    if isinstance(values, (str, bytes, Mapping)):
        raise ExpressionError(f"{what} expects a collection of values", value=values)
    try:
        return list(values)
    except TypeError as e:
        raise ExpressionError(f"{what} expects a collection of values", value=values) from e


__all__ = [
    "accepts",
    "as_value_list",
    "check_comparable",
    "check_element",
    "check_numeric",
    "check_value",
    "is_date_annotation",
    "is_numeric_annotation",
    "is_string_annotation",
    "require_array",
]
