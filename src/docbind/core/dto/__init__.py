"""DTO package for docbind core.

Provides the BaseResult pattern for consistent result handling across modules.
"""

from .catalog_dto import GetResult, RegisterResult, SearchCollectionsResult
from .collection_dto import (
    CreateCollectionResult,
    DeleteResult,
    InsertManyResult,
    InsertOneResult,
    UpdateResult,
)
from .result_dto import BaseResult, StatusCode, StatusDetail

__all__ = [
    "BaseResult",
    "StatusDetail",
    "StatusCode",
    "InsertOneResult",
    "InsertManyResult",
    "UpdateResult",
    "DeleteResult",
    "CreateCollectionResult",
    "GetResult",
    "RegisterResult",
    "SearchCollectionsResult",
]
