"""Tests for the Settings configuration manager."""

import json
import os
import tempfile

import pytest

from docbind.core.settings import CollectionOptions, Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Drop DOCBIND__* variables leaking from the environment."""
    for key in list(os.environ):
        if key.startswith("DOCBIND__"):
            monkeypatch.delenv(key)


class TestSettingsBasics:
    def test_initialization(self):
        settings = Settings()
        assert not settings.is_loaded
        assert settings.config_path is None
        assert Settings(config_path="/path/to/config.json").config_path == "/path/to/config.json"

    def test_defaults(self):
        settings = Settings()
        settings.load()
        assert settings.is_loaded
        assert settings.get_all_config() == {"docbind": {}, "collections": {}}
        assert settings.collection_options("users") == CollectionOptions()

    def test_lazy_load_on_access(self):
        settings = Settings()
        assert settings.get_docbind_config() == {}
        assert settings.is_loaded


class TestSettingsSources:
    """Priority: environment > JSON file > config dict > defaults."""

    def test_config_dict(self):
        settings = Settings()
        settings.load(
            {"docbind": {"max_time_ms": 500}, "collections": {"users": {"batch_size": 5}}}
        )
        assert settings.get_docbind_config("max_time_ms") == 500
        assert settings.get_collection_config("users", "batch_size") == 5
        assert settings.get_collection_config("orders") == {}

    def test_json_overrides_config_dict(self):
        config_data = {"docbind": {"validation_action": "warn"}}
        with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as f:
            json.dump(config_data, f)
            config_path = f.name

        try:
            settings = Settings(config_path=config_path)
            settings.load({"docbind": {"validation_action": "error", "max_time_ms": 10}})
            assert settings.get_docbind_config("validation_action") == "warn"
            assert settings.get_docbind_config("max_time_ms") == 10
        finally:
            os.unlink(config_path)

    def test_missing_file(self):
        settings = Settings(config_path="/nonexistent/config.json")
        settings.load()
        assert settings.is_loaded
        assert settings.get_docbind_config() == {}

    def test_invalid_json(self):
        with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as f:
            f.write("{ invalid json }")
            config_path = f.name

        try:
            with pytest.raises(ValueError, match="Invalid JSON"):
                Settings(config_path=config_path).load()
        finally:
            os.unlink(config_path)

    @pytest.mark.parametrize(
        "config",
        [[], {"docbind": 3}, {"collections": {"users": "strict"}}],
    )
    def test_invalid_structure(self, config):
        with pytest.raises(ValueError):
            Settings().load(config)

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DOCBIND__DOCBIND__MAX_TIME_MS", "250")
        monkeypatch.setenv("DOCBIND__COLLECTIONS__USERS__WRITE_CONCERN", '{"w": "majority"}')
        monkeypatch.setenv("DOCBIND__DOCBIND__VALIDATION_LEVEL", "moderate")

        settings = Settings()
        settings.load({"docbind": {"max_time_ms": 1}})

        assert settings.get_docbind_config("max_time_ms") == 250
        assert settings.get_docbind_config("validation_level") == "moderate"
        assert settings.get_collection_config("users", "write_concern") == {"w": "majority"}

    def test_invalid_environment_entries_are_skipped(self, monkeypatch):
        monkeypatch.setenv("DOCBIND__UNKNOWN__KEY", "1")
        monkeypatch.setenv("DOCBIND__COLLECTIONS__USERS", "1")
        settings = Settings()
        settings.load()
        assert settings.get_all_config() == {"docbind": {}, "collections": {}}

    def test_reload(self, monkeypatch):
        settings = Settings()
        settings.load()
        monkeypatch.setenv("DOCBIND__DOCBIND__BATCH_SIZE", "7")
        settings.load()
        assert settings.get_docbind_config("batch_size") is None
        settings.reload()
        assert settings.get_docbind_config("batch_size") == 7


class TestCollectionOptions:
    def test_collection_overrides(self):
        settings = Settings()
        settings.load(
            {
                "docbind": {"max_time_ms": 100, "batch_size": 50},
                "collections": {"users": {"batch_size": 10, "validation_level": "moderate"}},
            }
        )
        options = settings.collection_options("users")
        assert options == CollectionOptions(
            validation_level="moderate", max_time_ms=100, batch_size=10
        )
        assert settings.collection_options("orders").batch_size == 50

    def test_runtime_overrides(self):
        settings = Settings()
        settings.set_docbind_config("max_time_ms", 5)
        settings.set_collection_config("users", "max_time_ms", 9)
        assert settings.collection_options("users").max_time_ms == 9
        assert settings.collection_options("orders").max_time_ms == 5

    @pytest.mark.parametrize(
        "values",
        [
            {"validation_level": "loose"},
            {"validation_action": "ignore"},
            {"max_time_ms": -1},
            {"batch_size": True},
            {"write_concern": "majority"},
        ],
    )
    def test_invalid_values(self, values):
        with pytest.raises(ValueError):
            CollectionOptions.from_mapping(values)

    def test_unknown_keys_are_ignored(self, caplog):
        options = CollectionOptions.from_mapping({"max_time_ms": 3, "colour": "red"})
        assert options.max_time_ms == 3
        assert any("colour" in rec.getMessage() for rec in caplog.records)
