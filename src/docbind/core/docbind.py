"""Core DocBind facade.

This module defines the main entry point used by applications and tests.
"""

import logging
from typing import Any

from dotenv import load_dotenv

from docbind.core.catalog.catalog import Catalog
from docbind.core.collection.collection import Collection
from docbind.core.collection.driver import Driver
from docbind.core.model.document import Doc
from docbind.core.settings.settings import Settings

logger = logging.getLogger(__name__)
load_dotenv()


class DocBind:
    """Core facade binding document types to a database driver."""

    def __init__(self, *args, **kwargs):
        """Prevent direct construction; use `DocBind.create(...)` instead."""
        raise RuntimeError("Use: instance = DocBind.create(...)")

    def _initialize(self, driver: Driver, *, config_path: str | None = None):
        """Initialize DocBind internal components.

        Args:
            driver: Driver every collection runs its commands on
            config_path: Path to JSON configuration file
        """
        self.driver = driver
        self.settings = Settings(config_path=config_path)
        self.catalog = Catalog(driver, settings=self.settings)
        logger.debug("DocBind instance created.")

    @classmethod
    def create(
        cls,
        driver: Driver,
        *,
        config_path: str | None = None,
        config: dict[str, Any] | None = None,
    ) -> "DocBind":
        """Factory method to create and initialize DocBind.

        Args:
            driver: Driver every collection runs its commands on
            config_path: Path to JSON configuration file
            config: Optional configuration dictionary
        """
        instance = cls.__new__(cls)  # bypass __init__
        instance._initialize(driver, config_path=config_path)
        instance.settings.load(config=config)
        return instance

    def collection[T: Doc](self, model: type[T], name: str | None = None) -> Collection[T]:
        """Typed collection of ``model``, registering it on first use.

        Raises:
            ValueError: If the name is bound to another document type.
        """
        existing = self.catalog.get(name or model.collection_name())
        if existing is not None and existing.model is model:
            return existing
        return self.catalog.register(model, name)

    def ensure_collections(self, *, update_existing: bool = False) -> None:
        """Create validators and indexes of every registered collection."""
        results = self.catalog.ensure_validators(update_existing=update_existing)
        indexes = self.catalog.ensure_indexes()
        logger.info(
            "Ensured %d collections (%d indexes)",
            len(results),
            sum(len(names) for names in indexes.values()),
        )
