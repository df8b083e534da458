"""Catalog result DTOs.

Typed results of registering and looking up collections in the ``Catalog``.
"""

from typing import Any

from pydantic import Field

from docbind.core.dto.result_dto import BaseResult


class RegisterResult(BaseResult):
    """Result of registering a document type.

    [Result Pattern] Check result.is_ok() before using result.collection.

    Attributes:
        name: The collection name.
        collection: The typed collection bound to the document type.
        created: Whether a new registration was created (vs. skipped).

    Status codes:
        - success: Document type registered
        - success + detail(DUPLICATE): Same type already registered (skipped)
        - error + detail(ALREADY_EXISTS): Another type uses the same name
        - error + detail(INVALID): Invalid name or document type
    """

    name: str = Field(default="", description="Collection name")
    collection: Any = Field(default=None, description="Typed collection (Collection)")
    created: bool = Field(default=True, description="True if newly created, False if skipped")


class GetResult(BaseResult):
    """Result of looking up a collection by name.

    Status codes:
        - success: Collection found
        - success + detail(NOT_FOUND): No collection with that name
    """

    collection: Any = Field(default=None, description="Typed collection if found")
    name: str = Field(default="", description="Requested collection name")


class SearchCollectionsResult(BaseResult):
    """Result of searching registered collections by metadata.

    Status codes:
        - success: Search completed
        - success + detail(NO_RESULTS): Nothing matched (informational)
    """

    collections: list[Any] = Field(default_factory=list, description="Matching collections")
    names: list[str] = Field(default_factory=list, description="Matching collection names")


__all__ = ["GetResult", "RegisterResult", "SearchCollectionsResult"]
