"""Tests for document encoding and decoding."""

import datetime
import decimal

import pytest
from bson import Binary, Decimal128, ObjectId

from docbind.core.exceptions import DecodeError, IdentifierFormatError
from docbind.core.model import (
    decode_as,
    decode_document,
    decode_value,
    encode_document,
    encode_value,
    take,
    take_document,
    take_typed,
)
from tests.mocks.models import Address, Counter, Item, Order, Status, User
from tests.utils import USER_ID, native_uuid


def _user() -> User:
    return User(
        id=USER_ID,
        name="Ann",
        age=30,
        tags=["a", "b"],
        address=Address(street="Main St", city="Rome", zip_code="00100"),
        status=Status.BANNED,
        scores={"math": 9},
    )


class TestEncodeDocument:
    """Instances become generic document trees."""

    def test_encode_full_document(self):
        document = encode_document(_user())
        assert document == {
            "_id": native_uuid(USER_ID),
            "name": "Ann",
            "age": 30,
            "email": None,
            "tags": ["a", "b"],
            "address": {"street": "Main St", "city": "Rome", "zip": "00100"},
            "status": "banned",
            "scores": {"math": 9},
            "created": None,
        }

    def test_missing_identifier_is_left_out(self):
        document = encode_document(Order(customer="c", amount=2.5))
        assert "_id" not in document
        assert document["items"] == []

    def test_nested_arrays_of_documents(self):
        order = Order(customer="c", amount=1.0, items=[Item(sku="x", qty=2, price=0.5)])
        assert encode_document(order)["items"] == [{"sku": "x", "qty": 2, "price": 0.5}]

    def test_object_id_kept(self):
        oid = ObjectId()
        assert encode_document(Order(id=oid, customer="c", amount=1.0))["_id"] == oid


class TestEncodeValue:
    def test_special_values(self):
        assert encode_value(USER_ID) == native_uuid(USER_ID)
        assert encode_value(decimal.Decimal("1.5")) == Decimal128("1.5")
        assert encode_value(datetime.date(2024, 1, 2)) == datetime.datetime(2024, 1, 2)
        assert encode_value(Status.ACTIVE) == "active"
        assert encode_value(("a", 1)) == ["a", 1]
        assert encode_value({"b", "a"}) == ["a", "b"]

    def test_datetime_passes_through(self):
        moment = datetime.datetime(2024, 1, 2, 3, 4, 5)
        assert encode_value(moment) is moment


class TestDecodeDocument:
    """Raw documents become typed instances."""

    def test_round_trip(self):
        user = _user()
        assert decode_document(User, encode_document(user)) == user

    def test_decode_uses_defaults_for_missing_optional_fields(self):
        raw = {"_id": native_uuid(USER_ID), "name": "Ann", "age": 30}
        user = decode_document(User, raw)
        assert user.id == USER_ID
        assert user.email is None
        assert user.tags == []

    def test_missing_required_field_reports_path(self):
        with pytest.raises(DecodeError) as excinfo:
            decode_document(User, {"_id": native_uuid(USER_ID), "name": "Ann"})
        assert excinfo.value.path == "age"

    def test_wrong_identifier_shape(self):
        with pytest.raises(IdentifierFormatError):
            decode_document(Counter, {"_id": 12, "value": 1})

    def test_not_a_document(self):
        with pytest.raises(DecodeError, match="expected a document"):
            decode_document(User, ["not", "a", "document"])

    def test_decode_value(self):
        assert decode_value(native_uuid(USER_ID)) == USER_ID
        assert decode_value(Decimal128("2.5")) == decimal.Decimal("2.5")
        assert decode_value({"a": [Binary.from_uuid(USER_ID)]}) == {"a": [USER_ID]}

    def test_decode_as(self):
        assert decode_as(int, 3) == 3
        assert decode_as(Address, {"street": "s", "city": "c"}).city == "c"
        with pytest.raises(DecodeError):
            decode_as(int, "not a number")


class TestTakeHelpers:
    """Reply parsing helpers remove what they read."""

    def test_take(self):
        document = {"n": 1, "ok": 1.0}
        assert take(document, "n") == 1
        assert document == {"ok": 1.0}
        with pytest.raises(DecodeError, match="not found"):
            take(document, "n")

    def test_take_typed(self):
        document = {"n": 3, "flag": True, "name": "x"}
        assert take_typed(document, "n", int) == 3
        with pytest.raises(DecodeError, match="expected int, got bool"):
            take_typed(document, "flag", int)
        with pytest.raises(DecodeError, match="got str"):
            take_typed(document, "name", (int, float))
        assert "flag" in document

    def test_take_document(self):
        document = {"cursor": {"id": 0}, "bad": []}
        assert take_document(document, "cursor") == {"id": 0}
        with pytest.raises(DecodeError):
            take_document(document, "bad")
