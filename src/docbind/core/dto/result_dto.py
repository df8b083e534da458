"""Base result types for docbind operations.

Expected outcomes that are not failures of the layer itself (no document
matched, a validator was already up to date, a type was registered twice)
are returned as results carrying a ``StatusDetail``. Failures of the
expression, the codec or the driver raise exceptions instead.
"""

from typing import Any, Final, Literal, Self

from pydantic import BaseModel, Field


class StatusDetail(BaseModel):
    """Structured status information for operation results.

    Attributes:
        code: Machine-readable status code (see ``StatusCode``).
        message: Human-readable status description.
        context: Additional diagnostic data (safe to log/serialize).
    """

    code: str = Field(description="Status code: 'no_match', 'unchanged', 'duplicate', etc.")
    message: str = Field(description="Human-readable status description")
    context: dict[str, Any] = Field(default_factory=dict, description="Diagnostic context")


class BaseResult(BaseModel):
    """Base class for all docbind operation results.

    Pattern:
    - status="success" → operation succeeded, specific fields populated
    - status="error" → expected failure, detail describes it

    Example:
        >>> result = catalog.execute_register(User)
        >>> if result.is_ok():
        ...     print(result.name)
        >>> else:
        ...     print(f"Error [{result.detail.code}]: {result.detail.message}")
    """

    status: Literal["success", "error"] = Field(default="success", description="Operation status")
    detail: StatusDetail | None = Field(
        default=None, description="Status details (present for error or informational success)"
    )

    model_config = {"extra": "forbid", "arbitrary_types_allowed": True}

    def is_ok(self) -> bool:
        """Check if operation succeeded."""
        return self.status == "success"

    def is_error(self) -> bool:
        """Check if operation failed with expected error."""
        return self.status == "error"

    @classmethod
    def success(cls, *, detail: StatusDetail | None = None, **kwargs: Any) -> Self:
        """Factory method for successful result.

        Args:
            detail: Optional status details for informational status.
            **kwargs: Subclass-specific fields.
        """
        return cls(status="success", detail=detail, **kwargs)

    @classmethod
    def fail(cls, detail: StatusDetail, **kwargs: Any) -> Self:
        """Factory method for expected failure result.

        Args:
            detail: Required status details describing the failure.
            **kwargs: Subclass-specific fields (use defaults).
        """
        return cls(status="error", detail=detail, **kwargs)


# =============================================================================
# STATUS CODE REGISTRY
# =============================================================================


class StatusCode:
    """Centralized registry of status codes used across docbind.

    Example:
        >>> result = collection.update_one(F.name == "Ann", upd)
        >>> if result.detail and result.detail.code == StatusCode.NO_MATCH:
        ...     handle_missing()
    """

    # -------------------------------------------------------------------------
    # Common
    # -------------------------------------------------------------------------
    INVALID: Final = "invalid"
    """[Common] Invalid parameter, name or document type."""

    NOT_FOUND: Final = "not_found"
    """[Common] Requested resource not found (expected state, not error)."""

    # -------------------------------------------------------------------------
    # Collection (writes)
    # -------------------------------------------------------------------------
    NO_MATCH: Final = "no_match"
    """[Collection] The filter matched no document."""

    EMPTY: Final = "empty"
    """[Collection] Nothing to write (empty input)."""

    # -------------------------------------------------------------------------
    # Collection (validators)
    # -------------------------------------------------------------------------
    CREATED: Final = "created"
    """[Collection] Collection created with its validator."""

    UPDATED: Final = "updated"
    """[Collection] Existing collection's validator replaced."""

    UNCHANGED: Final = "unchanged"
    """[Collection] Existing validator already matches the document type."""

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------
    DUPLICATE: Final = "duplicate"
    """[Catalog] Same document type already registered under this name."""

    ALREADY_EXISTS: Final = "already_exists"
    """[Catalog] Name already taken by another document type."""

    NO_RESULTS: Final = "no_results"
    """[Catalog] Search matched no registered collection."""


__all__ = ["BaseResult", "StatusDetail", "StatusCode"]
