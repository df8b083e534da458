"""Tests for the filter DSL."""

import pytest

from docbind.core.exceptions import (
    DocumentTypeMismatchError,
    ExpressionError,
    InvalidFieldPathError,
    TypeMismatchError,
)
from docbind.core.model import ALL, ANY, fields, raw
from docbind.core.query import (
    And,
    MatchAll,
    all_,
    and_,
    elem_match,
    exists,
    gt,
    gte,
    in_,
    lt,
    lte,
    match_all,
    ne,
    nor,
    not_,
    or_,
    raw_filter,
    regex,
    size,
    type_is,
)
from tests.mocks.models import Address, Item, Order, Status, User
from tests.utils import USER_ID, native_uuid


class TestComparisons:
    """Field operators lower to ``{path: ...}`` documents."""

    def test_equality_is_bare(self):
        F = fields(User)
        assert (F.name == "Ann").to_document() == {"name": "Ann"}

    @pytest.mark.parametrize(
        "build,expected",
        [
            (lambda F: F.age != 3, {"age": {"$ne": 3}}),
            (lambda F: F.age < 3, {"age": {"$lt": 3}}),
            (lambda F: F.age <= 3, {"age": {"$lte": 3}}),
            (lambda F: F.age > 3, {"age": {"$gt": 3}}),
            (lambda F: F.age >= 3, {"age": {"$gte": 3}}),
        ],
    )
    def test_ordering_operators(self, build, expected):
        assert build(fields(User)).to_document() == expected

    def test_operands_are_encoded(self):
        F = fields(User)
        assert (F.id == USER_ID).to_document() == {"_id": native_uuid(USER_ID)}
        assert (F.status == Status.BANNED).to_document() == {"status": "banned"}

    def test_nested_and_aliased_paths(self):
        F = fields(User)
        assert (F.address.zip_code == "00100").to_document() == {"address.zip": "00100"}

    def test_none_matches_missing(self):
        F = fields(User)
        assert (F.email == None).to_document() == {"email": None}  # noqa: E711

    def test_operand_type_is_checked(self):
        """Operands are not coerced to the declared type."""
        F = fields(User)
        with pytest.raises(TypeMismatchError) as excinfo:
            F.age == "30"  # noqa: B015
        assert excinfo.value.field == "age"
        assert excinfo.value.expected == "int"
        assert excinfo.value.actual == "str"

    def test_bool_is_not_an_int(self):
        F = fields(User)
        with pytest.raises(TypeMismatchError):
            F.age > True  # noqa: B015

    def test_ordering_rejects_none(self):
        F = fields(User)
        with pytest.raises(TypeMismatchError):
            F.age < None  # noqa: B015

    @pytest.mark.parametrize("operator", [lt, lte, gt, gte])
    def test_ordering_rejects_none_on_optional_fields(self, operator):
        F = fields(User)
        with pytest.raises(TypeMismatchError, match="created"):
            operator(F.created, None)
        with pytest.raises(TypeMismatchError):
            operator(raw("score"), None)
        assert ne(F.created, None).to_document() == {"created": {"$ne": None}}

    def test_array_field_accepts_element(self):
        """Comparing an array with one value matches any element."""
        F = fields(User)
        assert (F.tags == "vip").to_document() == {"tags": "vip"}
        assert (F.tags == ["a", "b"]).to_document() == {"tags": ["a", "b"]}

    def test_positional_marker_dropped_in_queries(self):
        F = fields(Order)
        assert (F.items[ANY].qty > 2).to_document() == {"items.qty": {"$gt": 2}}
        assert (F.items.qty > 2).to_document() == {"items.qty": {"$gt": 2}}

    def test_all_marker_rejected_in_queries(self):
        F = fields(Order)
        with pytest.raises(ExpressionError, match=r"\$\[\]"):
            F.items[ALL].qty > 2  # noqa: B015

    def test_root_accessor_is_not_a_field(self):
        with pytest.raises(InvalidFieldPathError):
            fields(User) == 1  # noqa: B015

    def test_raw_paths_skip_type_checks(self):
        assert (raw("legacy.flag") == "yes").to_document() == {"legacy.flag": "yes"}


class TestFieldOperators:
    def test_in_and_not_in(self):
        F = fields(User)
        assert F.age.in_([1, 2]).to_document() == {"age": {"$in": [1, 2]}}
        assert in_(F.name, ("a", "b")).to_document() == {"name": {"$in": ["a", "b"]}}
        assert F.age.not_in({3}).to_document() == {"age": {"$nin": [3]}}
        with pytest.raises(TypeMismatchError):
            F.age.in_([1, "2"])
        with pytest.raises(ExpressionError, match="collection of values"):
            F.name.in_("abc")

    def test_exists(self):
        F = fields(User)
        assert F.email.exists().to_document() == {"email": {"$exists": True}}
        assert exists(F.email, False).to_document() == {"email": {"$exists": False}}
        with pytest.raises(ExpressionError):
            exists(F.email, "yes")

    def test_regex(self):
        F = fields(User)
        assert F.name.regex("^A").to_document() == {"name": {"$regex": "^A"}}
        assert regex(F.tags, "x", "i").to_document() == {"tags": {"$regex": "x", "$options": "i"}}
        with pytest.raises(ExpressionError, match="string field"):
            regex(F.age, "1")
        with pytest.raises(ExpressionError, match="unknown regex options"):
            regex(F.name, "a", "q")

    def test_size(self):
        F = fields(User)
        assert size(F.tags, 2).to_document() == {"tags": {"$size": 2}}
        with pytest.raises(TypeMismatchError, match="array"):
            size(F.name, 2)
        with pytest.raises(ExpressionError):
            F.tags.size(-1)

    def test_all(self):
        F = fields(User)
        assert all_(F.tags, ["a", "b"]).to_document() == {"tags": {"$all": ["a", "b"]}}
        with pytest.raises(TypeMismatchError):
            all_(F.tags, [1])

    def test_type_is(self):
        F = fields(User)
        assert type_is(F.age, "int").to_document() == {"age": {"$type": "int"}}
        assert type_is(F.age, 16).to_document() == {"age": {"$type": 16}}
        with pytest.raises(ExpressionError, match="unknown BSON type"):
            type_is(F.age, "integer")

    def test_elem_match(self):
        F = fields(Order)
        I = fields(Item)  # noqa: E741
        filt = elem_match(F.items, (I.qty > 2) & (I.price < 10.0))
        assert filt.to_document() == {
            "items": {"$elemMatch": {"$and": [{"qty": {"$gt": 2}}, {"price": {"$lt": 10.0}}]}}
        }
        assert filt.model is Order

    def test_elem_match_checks_element_type(self):
        F = fields(Order)
        with pytest.raises(DocumentTypeMismatchError):
            elem_match(F.items, fields(Address).city == "Rome")
        with pytest.raises(TypeMismatchError):
            elem_match(F.customer, fields(Item).qty > 1)


class TestLogicalOperators:
    """Combination, flattening and negation."""

    def test_and_or(self):
        F = fields(User)
        filt = (F.age >= 18) & (F.name != "root")
        assert filt.to_document() == {"$and": [{"age": {"$gte": 18}}, {"name": {"$ne": "root"}}]}
        either = (F.age < 18) | (F.age > 65)
        assert either.to_document() == {"$or": [{"age": {"$lt": 18}}, {"age": {"$gt": 65}}]}

    def test_flattening_keeps_order(self):
        F = fields(User)
        filt = (F.age > 1) & (F.age < 9) & (F.name == "x")
        assert isinstance(filt, And)
        assert len(filt.children) == 3
        assert filt.to_document()["$and"][2] == {"name": "x"}

    def test_match_all_is_identity_of_and(self):
        F = fields(User)
        assert and_().to_document() == {}
        assert isinstance(and_(match_all(User), match_all()), MatchAll)
        assert (match_all(User) & (F.age > 1)).to_document() == {"age": {"$gt": 1}}

    def test_or_needs_filters(self):
        with pytest.raises(ExpressionError):
            or_()
        with pytest.raises(ExpressionError):
            nor()

    def test_not_over_predicate(self):
        F = fields(User)
        assert (~(F.age > 3)).to_document() == {"age": {"$not": {"$gt": 3}}}
        assert (~F.name.regex("^a")).to_document() == {"name": {"$not": {"$regex": "^a"}}}

    def test_not_over_equality(self):
        F = fields(User)
        assert not_(F.name == "a").to_document() == {"name": {"$not": {"$eq": "a"}}}

    def test_not_over_logical_node(self):
        F = fields(User)
        filt = ~((F.age > 3) | (F.name == "x"))
        assert filt.to_document() == {"$nor": [{"$or": [{"age": {"$gt": 3}}, {"name": "x"}]}]}

    def test_double_negation(self):
        F = fields(User)
        inner = F.age > 3
        assert ~~inner is inner

    def test_nor(self):
        F = fields(User)
        assert nor(F.age > 1, F.name == "a").to_document() == {
            "$nor": [{"age": {"$gt": 1}}, {"name": "a"}]
        }

    def test_filters_have_no_truth_value(self):
        F = fields(User)
        with pytest.raises(TypeError):
            bool(F.age > 3)

    def test_mixing_document_types_fails(self):
        with pytest.raises(DocumentTypeMismatchError):
            (fields(User).age > 3) & (fields(Order).amount > 1.0)

    def test_raw_filters_combine_with_anything(self):
        F = fields(User)
        filt = raw_filter({"$where": "true"}) & (F.age > 1)
        assert filt.model is User
        assert filt.to_document() == {"$and": [{"$where": "true"}, {"age": {"$gt": 1}}]}

    def test_filters_are_immutable(self):
        F = fields(User)
        filt = F.age > 3
        with pytest.raises(AttributeError):
            filt.op = "lt"
