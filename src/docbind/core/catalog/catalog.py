"""Catalog - Registry of typed collections.

The catalog binds document types to collection names on one driver, so an
application declares its document types once and looks the typed
collections up by name (or by type) afterwards. Registration follows the
result pattern: expected outcomes such as registering the same type twice
are reported, not raised.
"""

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from docbind.core.collection.collection import Collection
from docbind.core.collection.driver import Driver
from docbind.core.dto.catalog_dto import GetResult, RegisterResult, SearchCollectionsResult
from docbind.core.dto.collection_dto import CreateCollectionResult
from docbind.core.dto.result_dto import StatusCode, StatusDetail
from docbind.core.exceptions import ModelDefinitionError
from docbind.core.model.document import Doc, describe

if TYPE_CHECKING:
    from docbind.core.settings.settings import Settings


logger = logging.getLogger(__name__)


# =============================================================================
# CATALOG ENTRY (INTERNAL)
# =============================================================================


@dataclass(slots=True)
class CatalogEntry:
    """Internal entry for registered collections.

    Attributes:
        name: Collection name (unique in the catalog).
        collection: The typed collection.
        meta: Arbitrary metadata for searching/filtering.
    """

    name: str
    collection: Collection
    meta: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# CATALOG
# =============================================================================


class Catalog:
    """Registry of typed collections sharing one driver.

    Example:
        >>> catalog = Catalog(driver)
        >>> users = catalog.register(User, meta={"domain": "accounts"})
        >>> catalog.get("users") is users
        True
        >>> catalog.ensure_validators()
    """

    def __init__(self, driver: Driver, *, settings: Optional["Settings"] = None):
        """Initialize the catalog.

        Args:
            driver: Driver shared by every registered collection.
            settings: Optional settings providing per-collection options.
        """
        self._driver = driver
        self._settings = settings
        self._registry: dict[str, CatalogEntry] = {}
        logger.debug("Catalog instance created.")

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def execute_register(
        self,
        model: type[Doc],
        name: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> RegisterResult:
        """Register a document type under ``name`` (default: its collection name).

        [Result Pattern] Check result.is_ok() and result.created for status.

        Returns:
            RegisterResult with:
            - success + created=True: New registration
            - success + created=False + detail(DUPLICATE): Same type (skipped)
            - error + detail(ALREADY_EXISTS): Another type uses the name
            - error + detail(INVALID): Invalid name or document type
        """
        try:
            info = describe(model)
        except ModelDefinitionError as e:
            return RegisterResult.fail(
                StatusDetail(
                    code=StatusCode.INVALID,
                    message=str(e),
                    context={"model": getattr(model, "__name__", repr(model))},
                ),
                created=False,
            )
        if info.id_field is None:
            return RegisterResult.fail(
                StatusDetail(
                    code=StatusCode.INVALID,
                    message=f"{model.__name__} is not a Doc subclass",
                    context={"model": model.__name__},
                ),
                created=False,
            )

        name = info.collection if name is None else name
        if not isinstance(name, str) or not name.strip() or "$" in name:
            return RegisterResult.fail(
                StatusDetail(
                    code=StatusCode.INVALID,
                    message=f"Invalid collection name: {name!r}",
                    context={"name": name},
                ),
                name=str(name) if name else "",
                created=False,
            )

        existing = self._registry.get(name)
        if existing is not None:
            if existing.collection.model is model:
                logger.warning(
                    "Document type %s already registered as '%s'. Skipping.",
                    model.__name__,
                    name,
                )
                return RegisterResult.success(
                    name=name,
                    collection=existing.collection,
                    created=False,
                    detail=StatusDetail(
                        code=StatusCode.DUPLICATE,
                        message="Same document type already registered",
                    ),
                )
            return RegisterResult.fail(
                StatusDetail(
                    code=StatusCode.ALREADY_EXISTS,
                    message=(
                        f"Collection {name!r} is already bound to "
                        f"{existing.collection.model.__name__}"
                    ),
                    context={"name": name, "model": existing.collection.model.__name__},
                ),
                name=name,
                created=False,
            )

        options = self._settings.collection_options(name) if self._settings else None
        collection = Collection(model, self._driver, name=name, options=options)
        self._registry[name] = CatalogEntry(name=name, collection=collection, meta=meta or {})
        logger.debug("Document type %s registered as '%s'.", model.__name__, name)
        return RegisterResult.success(name=name, collection=collection, created=True)

    def register(
        self,
        model: type[Doc],
        name: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> Collection:
        """Register a document type and return its collection.

        Raises:
            ValueError: If the registration is rejected.
        """
        result = self.execute_register(model, name, meta)
        if result.is_error():
            raise ValueError(result.detail.message)
        return result.collection

    def unregister(self, name: str) -> bool:
        """Unregister a collection by name.

        Returns:
            True if the collection was removed, False if not found.
        """
        if name in self._registry:
            del self._registry[name]
            logger.debug("Collection '%s' unregistered.", name)
            return True
        return False

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def execute_get(self, name: str) -> GetResult:
        """Get a collection by name.

        [Result Pattern] Check result.is_ok() and result.collection.

        Returns:
            GetResult with:
            - success: Collection found in result.collection
            - success + detail(NOT_FOUND): Collection not registered
        """
        entry = self._registry.get(name)
        if entry is None:
            logger.debug("Collection '%s' not found in catalog.", name)
            return GetResult.success(
                collection=None,
                name=name,
                detail=StatusDetail(
                    code=StatusCode.NOT_FOUND,
                    message=f"Collection '{name}' not found",
                    context={"name": name},
                ),
            )
        return GetResult.success(collection=entry.collection, name=name)

    def get(self, name: str) -> Collection | None:
        """Get a collection by name, or None."""
        entry = self._registry.get(name)
        return entry.collection if entry is not None else None

    def collection_for(self, model: type[Doc]) -> Collection | None:
        """First collection registered for ``model``, or None."""
        for entry in self._registry.values():
            if entry.collection.model is model:
                return entry.collection
        return None

    def get_meta(self, name: str) -> dict[str, Any] | None:
        """Copy of the metadata of ``name``, or None."""
        entry = self._registry.get(name)
        if entry is None:
            return None
        return dict(entry.meta)

    def has(self, name: str) -> bool:
        return name in self._registry

    # =========================================================================
    # SEARCH
    # =========================================================================

    def search(self, predicate: Callable[[dict[str, Any]], bool]) -> SearchCollectionsResult:
        """Search collections by metadata predicate.

        [Result Pattern] Check result.is_ok() and result.collections.

        Returns:
            SearchCollectionsResult with:
            - success: Search completed, collections in result.collections
            - success + detail(NO_RESULTS): No matches found (informational)
        """
        collections = []
        names = []
        for entry in self._registry.values():
            try:
                matched = predicate(entry.meta)
            except Exception as e:
                logger.warning("Predicate failed for collection '%s': %s", entry.name, e)
                continue
            if matched:
                collections.append(entry.collection)
                names.append(entry.name)

        if not collections:
            return SearchCollectionsResult.success(
                detail=StatusDetail(
                    code=StatusCode.NO_RESULTS,
                    message="No collections matched the predicate",
                ),
            )
        return SearchCollectionsResult.success(collections=collections, names=names)

    # =========================================================================
    # BULK MANAGEMENT
    # =========================================================================

    def ensure_validators(
        self, *, update_existing: bool = False
    ) -> dict[str, CreateCollectionResult]:
        """Create (or check) the validator of every registered collection.

        Raises:
            SchemaConflictError: On the first collection whose validator
                differs, unless ``update_existing`` is set.
        """
        results = {}
        for entry in self._registry.values():
            results[entry.name] = entry.collection.create_with_validation(
                update_existing=update_existing
            )
        return results

    def ensure_indexes(self) -> dict[str, list[str]]:
        """Create the declared indexes of every registered collection."""
        return {entry.name: entry.collection.create_indexes() for entry in self._registry.values()}

    # =========================================================================
    # ITERATION & INFO
    # =========================================================================

    def list_names(self) -> list[str]:
        return list(self._registry.keys())

    def __len__(self) -> int:
        """Return the number of registered collections."""
        return len(self._registry)

    def __iter__(self) -> Iterator[tuple[str, Collection]]:
        """Iterate over (name, collection) pairs."""
        for entry in self._registry.values():
            yield entry.name, entry.collection

    def __contains__(self, name: str) -> bool:
        return name in self._registry


__all__ = ["Catalog", "CatalogEntry"]
