"""pymongo adapter for the ``Driver`` contract."""

import logging
from typing import Any

from pymongo import MongoClient
from pymongo.command_cursor import CommandCursor
from pymongo.database import Database
from pymongo.errors import OperationFailure, PyMongoError

from docbind.core.exceptions import DriverError
from docbind.core.model.document import Document

logger = logging.getLogger(__name__)


def _command_name(command: Document) -> str:
    return next(iter(command), "<empty>")


def _wrap(command: Document, error: PyMongoError) -> DriverError:
    code = error.code if isinstance(error, OperationFailure) else None
    response = error.details if isinstance(error, OperationFailure) else None
    return DriverError(
        f"command '{_command_name(command)}' failed",
        error,
        code=code,
        response=dict(response) if response else None,
    )


class PyMongoCursor:
    """``DriverCursor`` over a pymongo ``CommandCursor``."""

    def __init__(self, cursor: CommandCursor, command: Document):
        self._cursor = cursor
        self._command = command

    def next(self) -> Document:
        try:
            return self._cursor.next()
        except PyMongoError as e:
            raise _wrap(self._command, e) from e

    def close(self) -> None:
        self._cursor.close()


class PyMongoDriver:
    """Runs command documents through ``pymongo.database.Database``.

    Example:
        >>> driver = PyMongoDriver.from_uri("mongodb://localhost:27017/app")
        >>> docbind = DocBind.create(driver)
    """

    def __init__(self, database: Database, *, owns_client: bool = False):
        self._database = database
        self._owns_client = owns_client

    @classmethod
    def from_uri(
        cls, uri: str, database: str | None = None, **client_options: Any
    ) -> "PyMongoDriver":
        """Connect to ``uri`` and use ``database`` (or the URI's default database).

        UUIDs are configured with the standard (subtype 4) representation.
        """
        client_options.setdefault("uuidRepresentation", "standard")
        client: MongoClient = MongoClient(uri, **client_options)
        db = client[database] if database else client.get_default_database()
        logger.info("Connected pymongo driver to database '%s'", db.name)
        return cls(db, owns_client=True)

    @property
    def database(self) -> Database:
        return self._database

    def execute_command(self, command: Document) -> dict[str, Any]:
        logger.debug("pymongo command %s", _command_name(command))
        try:
            return dict(self._database.command(command))
        except PyMongoError as e:
            raise _wrap(command, e) from e

    def open_cursor(self, command: Document) -> PyMongoCursor:
        logger.debug("pymongo cursor command %s", _command_name(command))
        try:
            cursor = self._database.cursor_command(command)
        except PyMongoError as e:
            raise _wrap(command, e) from e
        return PyMongoCursor(cursor, command)

    def close(self) -> None:
        """Close the client if this driver created it."""
        if self._owns_client:
            self._database.client.close()


__all__ = ["PyMongoCursor", "PyMongoDriver"]
