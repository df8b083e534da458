"""Tests for typed cursors and their resource handling."""

import pytest

from docbind.core.collection import DocumentCursor
from docbind.core.exceptions import DecodeError, DriverError
from tests.mocks.driver import ListCursor


def _decode(raw):
    if "bad" in raw:
        raise DecodeError("bad document", path="bad")
    return raw["v"]


def _cursor(documents, fail_at=None):
    driver_cursor = ListCursor(documents, fail_at)
    return DocumentCursor(driver_cursor, _decode, source="things"), driver_cursor


class TestDocumentCursor:
    """Cursors decode lazily and always release the driver cursor."""

    def test_iteration_closes_when_exhausted(self):
        cursor, driver_cursor = _cursor([{"v": 1}, {"v": 2}])
        assert list(cursor) == [1, 2]
        assert cursor.closed
        assert driver_cursor.closed

    def test_next(self):
        cursor, _ = _cursor([{"v": 1}])
        assert cursor.next() == 1
        with pytest.raises(StopIteration):
            cursor.next()

    def test_to_list_with_length_stays_open(self):
        cursor, driver_cursor = _cursor([{"v": 1}, {"v": 2}, {"v": 3}])
        assert cursor.to_list(2) == [1, 2]
        assert not driver_cursor.closed
        assert cursor.to_list() == [3]
        assert driver_cursor.closed

    def test_to_list_edge_lengths(self):
        cursor, _ = _cursor([{"v": 1}])
        assert cursor.to_list(0) == []
        with pytest.raises(ValueError):
            cursor.to_list(-1)

    def test_first_closes(self):
        cursor, driver_cursor = _cursor([{"v": 1}, {"v": 2}])
        assert cursor.first() == 1
        assert driver_cursor.closed
        assert cursor.first() is None

    def test_close_is_idempotent(self):
        cursor, driver_cursor = _cursor([{"v": 1}])
        cursor.close()
        cursor.close()
        assert driver_cursor.close_calls == 1
        assert list(cursor) == []

    def test_context_manager(self):
        cursor, driver_cursor = _cursor([{"v": 1}, {"v": 2}])
        with cursor as opened:
            assert next(opened) == 1
        assert driver_cursor.closed

    def test_decode_error_closes(self):
        cursor, driver_cursor = _cursor([{"v": 1}, {"bad": True}])
        with pytest.raises(DecodeError):
            cursor.to_list()
        assert driver_cursor.closed

    def test_driver_failure_is_wrapped(self):
        cursor, driver_cursor = _cursor([{"v": 1}, {"v": 2}], fail_at=1)
        assert next(cursor) == 1
        with pytest.raises(DriverError, match="things") as excinfo:
            next(cursor)
        assert isinstance(excinfo.value.cause, ConnectionError)
        assert driver_cursor.closed

    def test_abandoned_cursor_is_released(self):
        cursor, driver_cursor = _cursor([{"v": 1}, {"v": 2}])
        next(cursor)
        del cursor
        assert driver_cursor.closed
