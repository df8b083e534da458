"""Document types shared by the tests."""

import datetime
import enum
import uuid
from typing import Literal

from bson import ObjectId
from pydantic import ConfigDict, Field

from docbind.core.model import Doc, Embedded, Index, fields


class Status(enum.Enum):
    ACTIVE = "active"
    BANNED = "banned"


class Address(Embedded):
    street: str
    city: str
    zip_code: str | None = Field(default=None, alias="zip")


class Item(Embedded):
    sku: str
    qty: int = Field(ge=0)
    price: float


class User(Doc):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, alias="_id")
    name: str = Field(min_length=1, description="Display name")
    age: int
    email: str | None = None
    tags: list[str] = Field(default_factory=list)
    address: Address | None = None
    status: Status = Status.ACTIVE
    scores: dict[str, int] = Field(default_factory=dict)
    created: datetime.datetime | None = None


class Order(Doc):
    __collection__ = "orders"

    id: ObjectId | None = Field(default=None, alias="_id")
    customer: str
    state: Literal["new", "paid", "shipped"] = "new"
    amount: float
    items: list[Item] = Field(default_factory=list)

    @classmethod
    def indexes(cls) -> list[Index]:
        F = fields(cls)
        return [
            Index(F.customer, F.amount.desc()),
            Index(F.state, name="by_state", sparse=True),
        ]


class Counter(Doc):
    """String identifiers cannot be generated client-side."""

    id: str = Field(alias="_id")
    value: int = 0


class AuditEntry(Doc):
    model_config = ConfigDict(extra="forbid")

    id: int = Field(alias="_id")
    action: str
    payload: bytes | None = None


class NoId(Doc):
    name: str


class Summary(Embedded):
    """Shape of grouped order totals."""

    id: str = Field(alias="_id")
    total: float
