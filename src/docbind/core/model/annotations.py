"""Helpers for inspecting field annotations.

Everything here works on the annotations pydantic stores in
``model_fields`` and never looks at live data.
"""

import types
from collections.abc import Mapping, Sequence
from collections.abc import Set as AbstractSet
from typing import Annotated, Any, Literal, Union, get_args, get_origin

from pydantic import BaseModel

NoneType = type(None)

_SEQUENCE_ORIGINS = (list, tuple, set, frozenset, Sequence, AbstractSet)
_MAPPING_ORIGINS = (dict, Mapping)


def strip_annotated(tp: Any) -> tuple[Any, tuple[Any, ...]]:
    """Return ``(inner, metadata)`` for ``Annotated[inner, *metadata]``."""
    metadata: tuple[Any, ...] = ()
    while get_origin(tp) is Annotated:
        args = get_args(tp)
        tp = args[0]
        metadata = metadata + tuple(args[1:])
    return tp, metadata


def is_union(tp: Any) -> bool:
    """Check whether ``tp`` is a ``Union``/``X | Y`` annotation."""
    return get_origin(tp) in (Union, types.UnionType)


def unwrap_optional(tp: Any) -> tuple[Any, bool]:
    """Split ``Optional[X]`` into ``(X, True)``; other types give ``(tp, False)``."""
    tp, _ = strip_annotated(tp)
    if not is_union(tp):
        return tp, tp is NoneType
    args = get_args(tp)
    non_none = tuple(arg for arg in args if arg is not NoneType)
    nullable = len(non_none) != len(args)
    if len(non_none) == 1:
        return non_none[0], nullable
    return Union[non_none], nullable  # noqa: UP007


def is_model(tp: Any) -> bool:
    """Check whether ``tp`` is a pydantic model class."""
    return isinstance(tp, type) and issubclass(tp, BaseModel)


def _origin_in(tp: Any, origins: tuple[Any, ...]) -> bool:
    origin = get_origin(tp)
    if origin is None:
        return isinstance(tp, type) and tp in origins
    return origin in origins


def is_sequence(tp: Any) -> bool:
    """Check whether ``tp`` (already unwrapped) is an array-valued annotation."""
    return _origin_in(tp, _SEQUENCE_ORIGINS)


def is_set(tp: Any) -> bool:
    """Check whether ``tp`` is a set-like annotation."""
    return _origin_in(tp, (set, frozenset, AbstractSet))


def is_mapping(tp: Any) -> bool:
    """Check whether ``tp`` is a ``dict[str, X]``-like annotation."""
    return _origin_in(tp, _MAPPING_ORIGINS)


def element_type(tp: Any) -> Any | None:
    """Return the element annotation of an array-valued annotation.

    ``Optional`` wrappers are removed first. Returns None when ``tp`` is not
    array-valued; bare ``list`` gives ``Any``.
    """
    tp, _ = unwrap_optional(tp)
    if not is_sequence(tp):
        return None
    args = get_args(tp)
    if not args:
        return Any
    if get_origin(tp) is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return args[0]
        # fixed-length tuple: any of its member types
        return Union[args]  # noqa: UP007
    return args[0]


def value_type(tp: Any) -> Any | None:
    """Return the value annotation of a mapping annotation, or None."""
    tp, _ = unwrap_optional(tp)
    if not is_mapping(tp):
        return None
    args = get_args(tp)
    if len(args) != 2:
        return Any
    return args[1]


def is_literal(tp: Any) -> bool:
    """Check whether ``tp`` is a ``Literal[...]`` annotation."""
    return get_origin(tp) is Literal


def type_name(tp: Any) -> str:
    """Readable name of an annotation, used in error messages."""
    if tp is Any:
        return "Any"
    if isinstance(tp, type) and get_origin(tp) is None and not get_args(tp):
        return tp.__name__
    return repr(tp).replace("typing.", "")
