"""Test helpers and shared constants."""

import uuid

from bson import Binary

#: Fixed identifiers so expected documents can be written out literally.
USER_ID = uuid.UUID("12345678-1234-5678-1234-567812345678")
OTHER_ID = uuid.UUID("87654321-4321-8765-4321-876543218765")


def native_uuid(value: uuid.UUID) -> Binary:
    """Return the stored form of a UUID (Binary subtype 4)."""
    return Binary.from_uuid(value)


def ok(**fields):
    """Build a successful command reply."""
    return {"ok": 1.0, **fields}
