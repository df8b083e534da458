"""Expression DSL: filters, updates, find options and aggregation pipelines.

Quick Start
-----------
    >>> from docbind.core.model import fields
    >>> from docbind.core.query import FindOptions, Update
    >>>
    >>> F = fields(User)
    >>> adults = (F.age >= 18) & (F.name != "root")
    >>> birthday = Update(User).inc(F.age, 1)
    >>> oldest_first = FindOptions(sort=(F.age.desc(),), limit=10)
"""

# =============================================================================
# FILTERS
# =============================================================================
from docbind.core.query.filters import (
    And,
    Filter,
    MatchAll,
    Nor,
    Not,
    Or,
    Predicate,
    RawFilter,
    all_,
    and_,
    elem_match,
    eq,
    exists,
    gt,
    gte,
    in_,
    lt,
    lte,
    match_all,
    ne,
    nin,
    nor,
    not_,
    or_,
    raw_filter,
    regex,
    size,
    type_is,
)

# =============================================================================
# OPTIONS
# =============================================================================
from docbind.core.query.options import FindOptions, SortKey, asc, desc, validate_find_options

# =============================================================================
# PIPELINES
# =============================================================================
from docbind.core.query.pipeline import (
    Accumulator,
    Pipeline,
    avg,
    count_,
    first,
    last,
    max_,
    min_,
    push,
    sum_,
)

# =============================================================================
# UPDATES
# =============================================================================
from docbind.core.query.updates import Update, UpdateOp

__all__ = [
    # Filters
    "Filter",
    "Predicate",
    "And",
    "Or",
    "Nor",
    "Not",
    "MatchAll",
    "RawFilter",
    "eq",
    "ne",
    "lt",
    "lte",
    "gt",
    "gte",
    "in_",
    "nin",
    "exists",
    "regex",
    "size",
    "all_",
    "type_is",
    "elem_match",
    "and_",
    "or_",
    "nor",
    "not_",
    "match_all",
    "raw_filter",
    # Updates
    "Update",
    "UpdateOp",
    # Options
    "FindOptions",
    "SortKey",
    "asc",
    "desc",
    "validate_find_options",
    # Pipelines
    "Pipeline",
    "Accumulator",
    "sum_",
    "avg",
    "min_",
    "max_",
    "first",
    "last",
    "push",
    "count_",
]
