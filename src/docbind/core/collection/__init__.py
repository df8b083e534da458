"""Typed collections and the driver contract they run on.

Main Components
---------------
- **Collection**: Typed CRUD, find-and-modify, aggregation and validators.
- **DocumentCursor**: Forward-only typed cursor that releases its resources.
- **Driver / DriverCursor**: Contract for database driver adapters.
- **PyMongoDriver**: Driver adapter over pymongo.
"""

from docbind.core.collection.collection import NAMESPACE_NOT_FOUND, Collection
from docbind.core.collection.cursor import DocumentCursor
from docbind.core.collection.driver import Driver, DriverCursor
from docbind.core.collection.pymongo_driver import PyMongoCursor, PyMongoDriver

__all__ = [
    "Collection",
    "DocumentCursor",
    "Driver",
    "DriverCursor",
    "NAMESPACE_NOT_FOUND",
    "PyMongoCursor",
    "PyMongoDriver",
]
