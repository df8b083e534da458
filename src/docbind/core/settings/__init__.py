"""Settings package: configuration for docbind instances."""

from docbind.core.settings.settings import (
    VALIDATION_ACTIONS,
    VALIDATION_LEVELS,
    CollectionOptions,
    Settings,
)

__all__ = ["CollectionOptions", "Settings", "VALIDATION_ACTIONS", "VALIDATION_LEVELS"]
