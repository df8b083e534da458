"""Identifier Adapter.

Converts between the identifier type a document declares (its ``_id``
field) and the representation the store keeps natively:

=============  ===============================
Domain type    Native (BSON) representation
=============  ===============================
``UUID``       ``Binary`` subtype 4
``ObjectId``   ``ObjectId``
``str``        string
``int``        int32 / int64
``bytes``      ``Binary`` subtype 0
=============  ===============================

Conversion is total and lossless for these types; anything else raises
``IdentifierFormatError`` instead of being coerced.
"""

import uuid
from typing import Any

from bson import Binary, ObjectId
from bson.binary import UUID_SUBTYPE

from docbind.core.exceptions import IdentifierFormatError


#: Identifier types the adapter can convert.
SUPPORTED_ID_TYPES: tuple[type, ...] = (uuid.UUID, ObjectId, str, int, bytes)

_GENERIC_SUBTYPE = 0


class IdentifierAdapter:
    """Bidirectional conversion for one identifier type.

    Example:
        >>> adapter = IdentifierAdapter(uuid.UUID)
        >>> native = adapter.encode(uuid.UUID(int=1))
        >>> adapter.decode(native) == uuid.UUID(int=1)
        True
    """

    __slots__ = ("_id_type",)

    def __init__(self, id_type: type):
        """Create an adapter for ``id_type``.

        Raises:
            IdentifierFormatError: If ``id_type`` is not supported.
        """
        if id_type not in SUPPORTED_ID_TYPES:
            raise IdentifierFormatError(id_type, _supported_names())
        self._id_type = id_type

    @property
    def id_type(self) -> type:
        """The domain identifier type."""
        return self._id_type

    @staticmethod
    def supports(id_type: Any) -> bool:
        """Check whether ``id_type`` can be adapted."""
        return id_type in SUPPORTED_ID_TYPES

    def can_generate(self) -> bool:
        """Whether a fresh identifier can be created client-side."""
        return self._id_type in (ObjectId, uuid.UUID)

    def generate(self) -> Any:
        """Create a fresh domain identifier (ObjectId or UUID4 only)."""
        if self._id_type is ObjectId:
            return ObjectId()
        if self._id_type is uuid.UUID:
            return uuid.uuid4()
        raise IdentifierFormatError(None, self._id_type.__name__)

    def encode(self, value: Any) -> Any:
        """Convert a domain identifier to its native representation."""
        id_type = self._id_type
        if id_type is uuid.UUID and isinstance(value, uuid.UUID):
            return Binary.from_uuid(value)
        if id_type is ObjectId and isinstance(value, ObjectId):
            return value
        if id_type is str and isinstance(value, str):
            return value
        if id_type is int and isinstance(value, int) and not isinstance(value, bool):
            return value
        if id_type is bytes and isinstance(value, bytes) and not isinstance(value, Binary):
            return Binary(value, _GENERIC_SUBTYPE)
        raise IdentifierFormatError(value, id_type.__name__)

    def decode(self, native: Any) -> Any:
        """Convert a native identifier back to the domain type."""
        id_type = self._id_type
        if id_type is uuid.UUID:
            if isinstance(native, uuid.UUID):
                return native
            if isinstance(native, Binary) and native.subtype == UUID_SUBTYPE:
                if len(native) == 16:
                    return native.as_uuid()
        elif id_type is ObjectId:
            if isinstance(native, ObjectId):
                return native
        elif id_type is str:
            if isinstance(native, str):
                return native
        elif id_type is int:
            if isinstance(native, int) and not isinstance(native, bool):
                return int(native)
        elif id_type is bytes:
            if isinstance(native, Binary):
                if native.subtype == _GENERIC_SUBTYPE:
                    return bytes(native)
            elif isinstance(native, bytes):
                return native
        raise IdentifierFormatError(native, id_type.__name__)

    def __repr__(self) -> str:
        return f"IdentifierAdapter({self._id_type.__name__})"


def _supported_names() -> str:
    return " | ".join(t.__name__ for t in SUPPORTED_ID_TYPES)


__all__ = ["IdentifierAdapter", "SUPPORTED_ID_TYPES"]
