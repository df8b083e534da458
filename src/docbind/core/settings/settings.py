"""Settings - Configuration manager for docbind.

Settings come from a JSON file, a config dict passed in code and
environment variables, providing the defaults every typed collection uses.

Configuration hierarchy:
- docbind: Defaults for every collection
  - validation_level: "off" | "strict" | "moderate" (collection validator)
  - validation_action: "error" | "warn" (collection validator)
  - max_time_ms: Server-side time limit for reads, findAndModify and aggregations
  - batch_size: Cursor batch size hint
  - write_concern: Write concern document, e.g. {"w": "majority"}
- collections: Per-collection overrides
  - <collection_name>: Same keys as the docbind section

Environment variables follow the naming convention:
DOCBIND__<section>__<key> for nested values
Example: DOCBIND__DOCBIND__MAX_TIME_MS=500
         DOCBIND__COLLECTIONS__USERS__WRITE_CONCERN='{"w": "majority"}'
"""

import json
import logging
import os
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

VALIDATION_LEVELS = ("off", "strict", "moderate")
VALIDATION_ACTIONS = ("error", "warn", "errorAndLog")

_SECTIONS = ("docbind", "collections")


@dataclass(frozen=True, slots=True)
class CollectionOptions:
    """Effective options of one collection.

    Attributes:
        validation_level: Validator level written by ``create_with_validation``.
        validation_action: Validator action written by ``create_with_validation``.
        max_time_ms: Forwarded as ``maxTimeMS`` on ``find``, ``count``,
            ``distinct``, ``findAndModify`` and ``aggregate``. Inserts, updates
            and deletes do not carry it.
        batch_size: Forwarded as ``batchSize`` on cursor commands.
        write_concern: Forwarded as ``writeConcern`` on writes.
    """

    validation_level: str = "strict"
    validation_action: str = "error"
    max_time_ms: int | None = None
    batch_size: int | None = None
    write_concern: dict[str, Any] | None = None

    def __post_init__(self):
        if self.validation_level not in VALIDATION_LEVELS:
            raise ValueError(
                f"validation_level must be one of {VALIDATION_LEVELS}, "
                f"got {self.validation_level!r}"
            )
        if self.validation_action not in VALIDATION_ACTIONS:
            raise ValueError(
                f"validation_action must be one of {VALIDATION_ACTIONS}, "
                f"got {self.validation_action!r}"
            )
        for name in ("max_time_ms", "batch_size"):
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
        if self.write_concern is not None and not isinstance(self.write_concern, dict):
            raise ValueError("write_concern must be an object")

    @classmethod
    def from_mapping(cls, values: dict[str, Any]) -> "CollectionOptions":
        """Build options from a config section, ignoring unknown keys."""
        known = {name: values[name] for name in cls.__dataclass_fields__ if name in values}
        unknown = sorted(set(values) - set(known))
        if unknown:
            logger.warning("Ignoring unknown collection settings: %s", unknown)
        return cls(**known)


class Settings:
    """Configuration manager for a ``DocBind`` instance.

    Each instance keeps its own configuration state.
    """

    ENV_PREFIX = "DOCBIND"
    ENV_SEPARATOR = "__"

    def __init__(self, config_path: str | None = None):
        """Initialize the settings manager.

        Args:
            config_path: Path to JSON configuration file. If None, only
                        environment variables will be used.
        """
        self._config_path = config_path
        self._config = self.default_config()
        self._loaded = False
        logger.debug("Settings instance created with config_path=%s", config_path)

    @staticmethod
    def default_config() -> dict[str, Any]:
        """Return a new default config dict each time."""
        return {"docbind": {}, "collections": {}}

    def load(self, config: dict[str, Any] | None = None) -> None:
        """Load configuration from JSON file, environment variables, or provided config.

        Args:
            config: Optional config dict to use as base.

        Priority (highest to lowest):
        1. Environment variables
        2. JSON file
        3. Provided config (if any)
        4. Default values
        """
        if self._loaded:
            logger.debug("Configuration already loaded, skipping reload")
            return

        self._config = self.default_config()

        if config is not None:
            self._merge_sections(config, source="config")

        if self._config_path:
            self._load_from_json()

        self._load_from_env()

        self._loaded = True
        logger.info("Configuration loaded successfully")
        logger.debug(
            "Final config structure: docbind keys=%s, collections=%s",
            list(self._config["docbind"].keys()),
            list(self._config["collections"].keys()),
        )

    def _load_from_json(self) -> None:
        """Load configuration from JSON file."""
        config_file = Path(self._config_path)
        if not config_file.exists():
            logger.warning("Config file not found: %s", self._config_path)
            return

        try:
            with open(config_file, encoding="utf-8") as f:
                json_config = json.load(f)
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in config file %s: %s", self._config_path, e)
            raise ValueError(f"Invalid JSON configuration file: {e}") from e

        self._merge_sections(json_config, source="JSON")
        logger.info("Loaded configuration from JSON: %s", self._config_path)

    def _merge_sections(self, config: Any, source: str) -> None:
        """Validate and merge a config mapping section by section."""
        if not isinstance(config, dict):
            raise ValueError(f"Configuration ({source}) must be an object")

        for section in _SECTIONS:
            if section not in config:
                continue
            if not isinstance(config[section], dict):
                raise ValueError(f"'{section}' section ({source}) must be an object")
            if section == "collections":
                for name, values in config[section].items():
                    if not isinstance(values, dict):
                        raise ValueError(f"'collections.{name}' ({source}) must be an object")
                    self._config["collections"].setdefault(name, {}).update(deepcopy(values))
            else:
                self._config[section].update(deepcopy(config[section]))

    def _load_from_env(self) -> None:
        """Load configuration from environment variables.

        Environment variables follow the pattern:
        DOCBIND__<SECTION>__<KEY>__<SUBKEY>...

        Examples:
        - DOCBIND__DOCBIND__VALIDATION_LEVEL=moderate
        - DOCBIND__COLLECTIONS__USERS__MAX_TIME_MS=250
        """
        prefix = f"{self.ENV_PREFIX}{self.ENV_SEPARATOR}"

        for env_key, env_value in os.environ.items():
            if not env_key.startswith(prefix):
                continue

            key_path = env_key[len(prefix) :].split(self.ENV_SEPARATOR)

            if len(key_path) < 2:
                logger.warning("Invalid env var format (too short): %s", env_key)
                continue

            section = key_path[0].lower()
            if section not in _SECTIONS:
                logger.warning("Invalid section in env var %s: %s", env_key, section)
                continue

            parsed_value = self._parse_env_value(env_value)
            try:
                self._set_nested_value(section, key_path[1:], parsed_value)
            except (TypeError, ValueError) as e:
                logger.error("Error processing env var %s: %s", env_key, e)
                continue
            logger.debug("Set from env: %s = %s", env_key, parsed_value)

    def _parse_env_value(self, value: str) -> Any:
        """Parse an environment value as JSON, falling back to the raw string."""
        try:
            return json.loads(value)
        except (json.JSONDecodeError, ValueError):
            return value

    def _set_nested_value(self, section: str, path: list[str], value: Any) -> None:
        """Set a value in the nested configuration structure.

        Args:
            section: Top-level section ('docbind' or 'collections')
            path: List of keys representing the path to the value
            value: Value to set
        """
        if section == "collections":
            if len(path) < 2:
                raise ValueError(f"collection env var needs a collection and a key: {path}")
            # env var names are upper case; collection names are matched lower-cased
            target = self._config["collections"].setdefault(path[0].lower(), {})
            path = path[1:]
        else:
            target = self._config["docbind"]

        for key in path[:-1]:
            target = target.setdefault(key.lower(), {})
            if not isinstance(target, dict):
                raise TypeError(f"'{key.lower()}' is not an object")
        target[path[-1].lower()] = value

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    def get_docbind_config(self, key: str | None = None, default: Any = None) -> Any:
        """Get the collection-wide defaults section (or one key of it)."""
        if not self._loaded:
            self.load()

        if key is None:
            return deepcopy(self._config["docbind"])

        return self._config["docbind"].get(key, default)

    def get_collection_config(
        self, name: str, key: str | None = None, default: Any = None
    ) -> Any:
        """Get the overrides of one collection (or one key of them)."""
        if not self._loaded:
            self.load()

        collection_config = self._config["collections"].get(name, {})

        if key is None:
            return deepcopy(collection_config)

        return collection_config.get(key, default)

    def set_docbind_config(self, key: str, value: Any) -> None:
        """Set a collection-wide default (runtime only, not persisted)."""
        if not self._loaded:
            self.load()

        self._config["docbind"][key] = value
        logger.debug("Set docbind config: %s = %s", key, value)

    def set_collection_config(self, name: str, key: str, value: Any) -> None:
        """Set a per-collection override (runtime only, not persisted)."""
        if not self._loaded:
            self.load()

        self._config["collections"].setdefault(name, {})[key] = value
        logger.debug("Set collection config: %s.%s = %s", name, key, value)

    def collection_options(self, name: str) -> CollectionOptions:
        """Effective options of ``name``: defaults, then docbind, then overrides.

        Raises:
            ValueError: If a configured value is invalid.
        """
        merged = self.get_docbind_config()
        merged.update(self.get_collection_config(name))
        return CollectionOptions.from_mapping(merged)

    def get_all_config(self) -> dict[str, Any]:
        """Get a deep copy of the complete configuration."""
        if not self._loaded:
            self.load()

        return deepcopy(self._config)

    def reload(self, config: dict[str, Any] | None = None) -> None:
        """Reload configuration from its sources."""
        self._loaded = False
        self.load(config)
        logger.info("Configuration reloaded")

    @property
    def config_path(self) -> str | None:
        """Get the configuration file path."""
        return self._config_path

    @property
    def is_loaded(self) -> bool:
        """Check if configuration has been loaded."""
        return self._loaded


__all__ = ["CollectionOptions", "Settings", "VALIDATION_ACTIONS", "VALIDATION_LEVELS"]
