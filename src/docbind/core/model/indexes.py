"""Index declarations returned by ``Doc.indexes()``."""

from dataclasses import dataclass
from typing import Any

from docbind.core.exceptions import InvalidOptionError
from docbind.core.model.paths import FieldRef
from docbind.core.query.options import SortKey, as_sort_key, sort_document


@dataclass(frozen=True, slots=True, eq=False, init=False)
class Index:
    """One index over one or more keys.

    Example:
        >>> F = fields(User)
        >>> Index(F.email, unique=True).to_document()
        {'key': {'email': 1}, 'name': 'email_1', 'unique': True}
    """

    keys: tuple[SortKey, ...]
    name: str | None
    unique: bool
    sparse: bool
    expire_after_seconds: int | None

    def __init__(
        self,
        *keys: SortKey | FieldRef,
        name: str | None = None,
        unique: bool = False,
        sparse: bool = False,
        expire_after_seconds: int | None = None,
    ):
        if not keys:
            raise InvalidOptionError("an index needs at least one key")
        if expire_after_seconds is not None and expire_after_seconds < 0:
            raise InvalidOptionError(
                "expire_after_seconds must not be negative", value=expire_after_seconds
            )
        object.__setattr__(self, "keys", tuple(as_sort_key(key) for key in keys))
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "unique", unique)
        object.__setattr__(self, "sparse", sparse)
        object.__setattr__(self, "expire_after_seconds", expire_after_seconds)

    def check_model(self, model: type) -> None:
        for key in self.keys:
            if key.ref.model is not None and key.ref.model is not model:
                raise InvalidOptionError(
                    f"index key belongs to {key.ref.model.__name__}, not {model.__name__}",
                    field=key.path,
                )

    def default_name(self) -> str:
        return "_".join(f"{key.path}_{key.direction}" for key in self.keys)

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "key": sort_document(self.keys),
            "name": self.name or self.default_name(),
        }
        if self.unique:
            document["unique"] = True
        if self.sparse:
            document["sparse"] = True
        if self.expire_after_seconds is not None:
            document["expireAfterSeconds"] = self.expire_after_seconds
        return document


__all__ = ["Index"]
