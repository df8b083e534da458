"""Tests for the Catalog collection registry."""

import logging

import pytest
from pydantic import Field

from docbind.core.catalog import Catalog
from docbind.core.collection import Collection
from docbind.core.dto.result_dto import StatusCode
from docbind.core.exceptions import SchemaConflictError
from docbind.core.model import Doc, validator_for
from docbind.core.settings import Settings
from tests.mocks.models import Address, NoId, Order, User


class People(Doc):
    __collection__ = "users"

    id: int = Field(alias="_id")
    full_name: str


class TestCatalogRegistration:
    """Registration follows the result pattern."""

    def test_register_uses_collection_name(self, driver):
        catalog = Catalog(driver)
        result = catalog.execute_register(User, meta={"domain": "accounts"})

        assert result.is_ok()
        assert result.created is True
        assert result.name == "users"
        assert isinstance(result.collection, Collection)
        assert catalog.has("users")
        assert "users" in catalog
        assert len(catalog) == 1

    def test_register_with_explicit_name(self, driver):
        catalog = Catalog(driver)
        archive = catalog.register(Order, "orders_archive")
        assert archive.name == "orders_archive"
        assert catalog.get("orders_archive") is archive

    @pytest.mark.parametrize("model", [NoId, Address, dict])
    def test_invalid_models(self, driver, model):
        catalog = Catalog(driver)
        result = catalog.execute_register(model)  # type: ignore[arg-type]
        assert result.is_error()
        assert result.detail.code == StatusCode.INVALID
        assert len(catalog) == 0

    @pytest.mark.parametrize("bad_name", ["", "   ", "a$b", 12])
    def test_invalid_names(self, driver, bad_name):
        result = Catalog(driver).execute_register(User, bad_name)  # type: ignore[arg-type]
        assert result.is_error()
        assert result.detail.code == StatusCode.INVALID

    def test_duplicate_same_model_warns(self, driver, caplog):
        catalog = Catalog(driver)
        first = catalog.execute_register(User, meta={"domain": "accounts"})

        caplog.set_level(logging.WARNING, logger="docbind.core.catalog.catalog")
        second = catalog.execute_register(User, meta={"domain": "other"})

        assert second.is_ok()
        assert second.created is False
        assert second.detail.code == StatusCode.DUPLICATE
        assert second.collection is first.collection
        assert catalog.get_meta("users") == {"domain": "accounts"}
        assert any("already registered" in rec.getMessage() for rec in caplog.records)

    def test_name_taken_by_other_model(self, driver):
        catalog = Catalog(driver)
        catalog.register(User)
        result = catalog.execute_register(People)

        assert result.is_error()
        assert result.detail.code == StatusCode.ALREADY_EXISTS
        assert "User" in result.detail.message
        with pytest.raises(ValueError, match="already bound"):
            catalog.register(People)

    def test_unregister(self, driver):
        catalog = Catalog(driver)
        catalog.register(User)
        assert catalog.unregister("users") is True
        assert catalog.unregister("users") is False
        assert catalog.get("users") is None

    def test_settings_provide_collection_options(self, driver):
        settings = Settings()
        settings.load(
            {
                "docbind": {"max_time_ms": 100},
                "collections": {"orders": {"write_concern": {"w": "majority"}}},
            }
        )
        catalog = Catalog(driver, settings=settings)
        orders = catalog.register(Order)
        users = catalog.register(User)

        assert orders.options.max_time_ms == 100
        assert orders.options.write_concern == {"w": "majority"}
        assert users.options.write_concern is None


class TestCatalogLookup:
    def test_execute_get_missing(self, driver):
        result = Catalog(driver).execute_get("nothing")
        assert result.is_ok()
        assert result.collection is None
        assert result.detail.code == StatusCode.NOT_FOUND

    def test_execute_get(self, driver):
        catalog = Catalog(driver)
        users = catalog.register(User)
        result = catalog.execute_get("users")
        assert result.collection is users
        assert result.detail is None

    def test_collection_for_model(self, driver):
        catalog = Catalog(driver)
        orders = catalog.register(Order)
        assert catalog.collection_for(Order) is orders
        assert catalog.collection_for(User) is None

    def test_meta_is_copied(self, driver):
        catalog = Catalog(driver)
        catalog.register(User, meta={"domain": "accounts"})
        meta = catalog.get_meta("users")
        meta["domain"] = "mutated"
        assert catalog.get_meta("users") == {"domain": "accounts"}
        assert catalog.get_meta("missing") is None

    def test_iteration(self, driver):
        catalog = Catalog(driver)
        users = catalog.register(User)
        orders = catalog.register(Order)
        assert list(catalog) == [("users", users), ("orders", orders)]
        assert catalog.list_names() == ["users", "orders"]


class TestCatalogSearch:
    def test_search_by_meta(self, driver):
        catalog = Catalog(driver)
        users = catalog.register(User, meta={"domain": "accounts"})
        catalog.register(Order, meta={"domain": "sales"})

        result = catalog.search(lambda meta: meta.get("domain") == "accounts")
        assert result.is_ok()
        assert result.collections == [users]
        assert result.names == ["users"]

    def test_search_without_results(self, driver):
        catalog = Catalog(driver)
        catalog.register(User)
        result = catalog.search(lambda meta: False)
        assert result.is_ok()
        assert result.detail.code == StatusCode.NO_RESULTS

    def test_failing_predicate_is_skipped(self, driver, caplog):
        catalog = Catalog(driver)
        catalog.register(User, meta={})
        catalog.register(Order, meta={"domain": "sales"})

        caplog.set_level(logging.WARNING, logger="docbind.core.catalog.catalog")
        result = catalog.search(lambda meta: meta["domain"] == "sales")

        assert result.names == ["orders"]
        assert any("Predicate failed" in rec.getMessage() for rec in caplog.records)


class TestCatalogManagement:
    def test_ensure_validators(self, driver):
        catalog = Catalog(driver)
        catalog.register(User)
        catalog.register(Order)

        results = catalog.ensure_validators()

        assert set(results) == {"users", "orders"}
        assert all(result.detail.code == StatusCode.CREATED for result in results.values())
        creates = [command for command in driver.commands if "create" in command]
        assert creates[1]["validator"] == validator_for(Order)

    def test_ensure_validators_conflict(self, driver):
        catalog = Catalog(driver)
        catalog.register(User)
        driver.cursor([{"name": "users", "options": {"validator": {"$jsonSchema": {}}}}])
        with pytest.raises(SchemaConflictError):
            catalog.ensure_validators()

    def test_ensure_indexes(self, driver):
        catalog = Catalog(driver)
        catalog.register(User)
        catalog.register(Order)
        assert catalog.ensure_indexes() == {
            "users": [],
            "orders": ["customer_1_amount_-1", "by_state"],
        }
