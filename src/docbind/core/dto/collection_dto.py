"""Collection result DTOs.

Typed results of write operations on a ``Collection``. A write that matched
nothing is not an error: it is a success carrying a ``NO_MATCH`` detail.
"""

from typing import Any

from pydantic import Field

from docbind.core.dto.result_dto import BaseResult


class InsertOneResult(BaseResult):
    """Result of ``insert_one``.

    Attributes:
        inserted_id: Identifier of the new document (domain type).
    """

    inserted_id: Any = Field(default=None, description="Identifier of the inserted document")


class InsertManyResult(BaseResult):
    """Result of ``insert_many``.

    Status codes:
        - success: Documents inserted
        - success + detail(EMPTY): Nothing to insert, no command was sent
    """

    inserted_ids: list[Any] = Field(default_factory=list, description="Identifiers, input order")

    @property
    def inserted_count(self) -> int:
        return len(self.inserted_ids)


class UpdateResult(BaseResult):
    """Result of update, upsert and replace operations.

    Status codes:
        - success: At least one document matched (or one was upserted)
        - success + detail(NO_MATCH): No document matched
    """

    matched_count: int = Field(default=0, description="Documents matched by the filter")
    modified_count: int = Field(default=0, description="Documents actually changed")
    upserted_id: Any = Field(default=None, description="Identifier of the upserted document")


class DeleteResult(BaseResult):
    """Result of delete operations.

    Status codes:
        - success: At least one document deleted
        - success + detail(NO_MATCH): No document matched
    """

    deleted_count: int = Field(default=0, description="Documents deleted")


class CreateCollectionResult(BaseResult):
    """Result of ``create_with_validation``.

    Status codes:
        - success + detail(CREATED): Collection created with the validator
        - success + detail(UPDATED): Existing validator replaced (collMod)
        - success + detail(UNCHANGED): Existing validator already up to date
    """

    collection: str = Field(default="", description="Collection name")
    created: bool = Field(default=False, description="True if the collection was created")
    validator_changed: bool = Field(
        default=False, description="True if a validator was written (create or collMod)"
    )


__all__ = [
    "CreateCollectionResult",
    "DeleteResult",
    "InsertManyResult",
    "InsertOneResult",
    "UpdateResult",
]
