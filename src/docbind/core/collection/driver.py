"""Driver contract.

docbind never talks to the network itself. Everything it sends is a
database command document in MongoDB's command syntax (``insert``,
``find``, ``update``, ``delete``, ``aggregate``, ``count``, ``distinct``,
``findAndModify``, ``create``, ``collMod``, ``listCollections``,
``createIndexes``, ``drop``), handed to a ``Driver``.

Drivers are expected to:

- return the server reply as a plain ``dict`` from ``execute_command``;
- return a ``DriverCursor`` from ``open_cursor`` for ``find``,
  ``aggregate`` and ``listCollections``, iterating the documents of the
  first batch and any following ``getMore`` batches;
- raise their own exceptions on transport or command failures (docbind
  wraps anything that is not a ``DocbindError`` in ``DriverError``).

Drivers may be shared between threads if their implementation allows it;
docbind keeps no state of its own between calls.
"""

from abc import abstractmethod
from typing import Any, Protocol, runtime_checkable

from docbind.core.model.document import Document


@runtime_checkable
class DriverCursor(Protocol):
    """Forward-only server cursor."""

    @abstractmethod
    def next(self) -> Document:
        """Return the next raw document.

        Raises:
            StopIteration: When the cursor is exhausted.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the server-side cursor. Must be idempotent."""
        ...


@runtime_checkable
class Driver(Protocol):
    """Minimum contract a database driver adapter must implement."""

    @abstractmethod
    def execute_command(self, command: Document) -> dict[str, Any]:
        """Run a single command and return the server reply.

        Args:
            command: Command document; the first key names the command.

        Returns:
            The reply document (``ok``, ``n``, ``writeErrors``...).
        """
        ...

    @abstractmethod
    def open_cursor(self, command: Document) -> DriverCursor:
        """Run a cursor-returning command (``find``, ``aggregate``...)."""
        ...


__all__ = ["Driver", "DriverCursor"]
