"""Tests for validator, index and drop management."""

import pytest

from docbind.core.collection import NAMESPACE_NOT_FOUND, Collection
from docbind.core.dto.result_dto import StatusCode
from docbind.core.exceptions import DriverError, SchemaConflictError
from docbind.core.model import validator_for
from docbind.core.settings import CollectionOptions
from tests.mocks.models import Order, User
from tests.utils import ok


def _listing(validator, level="strict", action="error"):
    return [
        {
            "name": "users",
            "type": "collection",
            "options": {
                "validator": validator,
                "validationLevel": level,
                "validationAction": action,
            },
        }
    ]


class TestCreateWithValidation:
    """Validators are created once and never silently replaced."""

    def test_creates_missing_collection(self, users, driver):
        result = users.create_with_validation()

        assert result.is_ok()
        assert result.detail.code == StatusCode.CREATED
        assert result.created is True
        assert result.validator_changed is True
        assert driver.commands[0] == {"listCollections": 1, "filter": {"name": "users"}}
        assert driver.last == {
            "create": "users",
            "validator": validator_for(User),
            "validationLevel": "strict",
            "validationAction": "error",
        }

    def test_unchanged_validator_is_not_rewritten(self, users, driver):
        driver.cursor(_listing(validator_for(User)))
        result = users.create_with_validation()

        assert result.detail.code == StatusCode.UNCHANGED
        assert result.validator_changed is False
        assert len(driver.commands) == 1
        assert driver.cursors[0].closed

    def test_different_validator_conflicts(self, users, driver):
        driver.cursor(_listing({"$jsonSchema": {"bsonType": "object"}}))
        with pytest.raises(SchemaConflictError) as excinfo:
            users.create_with_validation()

        assert excinfo.value.collection == "users"
        assert excinfo.value.existing == {"$jsonSchema": {"bsonType": "object"}}
        assert excinfo.value.expected == validator_for(User)
        assert len(driver.commands) == 1

    def test_collection_without_validator_conflicts(self, users, driver):
        driver.cursor([{"name": "users", "type": "collection", "options": {}}])
        with pytest.raises(SchemaConflictError):
            users.create_with_validation()

    def test_different_level_conflicts(self, driver):
        users = Collection(User, driver, options=CollectionOptions(validation_level="moderate"))
        driver.cursor(_listing(validator_for(User)))
        with pytest.raises(SchemaConflictError):
            users.create_with_validation()

    def test_update_existing_uses_coll_mod(self, users, driver):
        driver.cursor(_listing({"$jsonSchema": {"bsonType": "object"}}))
        result = users.create_with_validation(update_existing=True)

        assert result.detail.code == StatusCode.UPDATED
        assert result.created is False
        assert result.validator_changed is True
        assert driver.last == {
            "collMod": "users",
            "validator": validator_for(User),
            "validationLevel": "strict",
            "validationAction": "error",
        }

    def test_options_are_forwarded(self, driver):
        options = CollectionOptions(validation_action="warn", write_concern={"w": "majority"})
        users = Collection(User, driver, options=options)
        users.create_with_validation()
        assert driver.last["validationAction"] == "warn"
        assert driver.last["writeConcern"] == {"w": "majority"}


class TestIndexesAndDrop:
    def test_create_declared_indexes(self, orders, driver):
        names = orders.create_indexes()

        assert names == ["customer_1_amount_-1", "by_state"]
        assert driver.last == {
            "createIndexes": "orders",
            "indexes": [
                {"key": {"customer": 1, "amount": -1}, "name": "customer_1_amount_-1"},
                {"key": {"state": 1}, "name": "by_state", "sparse": True},
            ],
        }

    def test_no_declared_indexes(self, users, driver):
        assert users.create_indexes() == []
        assert driver.commands == []

    def test_drop(self, users, driver):
        driver.reply(ok())
        assert users.drop() is True
        assert driver.last == {"drop": "users"}

    def test_drop_missing_collection(self, users, driver):
        driver.reply({"ok": 0.0, "code": NAMESPACE_NOT_FOUND, "errmsg": "ns not found"})
        assert users.drop() is False

    def test_drop_other_failure(self, users, driver):
        driver.reply({"ok": 0.0, "code": 13, "errmsg": "not authorized"})
        with pytest.raises(DriverError):
            users.drop()

    def test_orders_collection_name(self, driver):
        assert Collection(Order, driver).name == "orders"
