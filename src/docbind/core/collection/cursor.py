"""Typed, forward-only cursors."""

import logging
from collections.abc import Callable
from typing import Any

from docbind.core.collection.driver import DriverCursor
from docbind.core.exceptions import DocbindError, DriverError
from docbind.core.model.document import Document

logger = logging.getLogger(__name__)


class DocumentCursor[T]:
    """Iterates a driver cursor, decoding one document per ``next()``.

    The driver cursor is released as soon as the results are exhausted, an
    error occurs, ``close()`` is called or the ``with`` block ends. If none
    of those happen the cursor is released when this object is collected.

    Example:
        >>> with users.find(F.age >= 18) as cursor:
        ...     for user in cursor:
        ...         print(user.name)
    """

    def __init__(
        self,
        driver_cursor: DriverCursor,
        decode: Callable[[Document], T],
        *,
        source: str = "",
    ):
        self._cursor = driver_cursor
        self._decode = decode
        self._source = source
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> "DocumentCursor[T]":
        return self

    def __next__(self) -> T:
        if self._closed:
            raise StopIteration
        try:
            return self._decode(self._cursor.next())
        except StopIteration:
            self.close()
            raise
        except DocbindError:
            self.close()
            raise
        except Exception as e:
            self.close()
            raise DriverError(f"cursor over '{self._source}' failed", e) from e

    def next(self) -> T:
        return self.__next__()

    def first(self) -> T | None:
        """Return the next document (or None) and close the cursor."""
        try:
            return next(self, None)
        finally:
            self.close()

    def to_list(self, length: int | None = None) -> list[T]:
        """Collect the remaining documents, or at most ``length`` of them.

        The cursor stays open when ``length`` documents were read before the
        end of the results.
        """
        if length is not None and length < 0:
            raise ValueError("length must not be negative")
        if length == 0:
            return []
        items: list[T] = []
        for item in self:
            items.append(item)
            if length is not None and len(items) >= length:
                break
        return items

    def close(self) -> None:
        """Release the driver cursor. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            self._cursor.close()
        except DocbindError:
            raise
        except Exception as e:
            raise DriverError(f"closing cursor over '{self._source}' failed", e) from e
        logger.debug("Closed cursor over '%s'", self._source)

    def __enter__(self) -> "DocumentCursor[T]":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __del__(self):
        if getattr(self, "_closed", True):
            return
        try:
            self.close()
        except DocbindError as e:
            logger.warning("Failed to release abandoned cursor over '%s': %s", self._source, e)


__all__ = ["DocumentCursor"]
