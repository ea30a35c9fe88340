"""
Tests for opaque pagination cursors.
"""
import base64

import pytest
from squadfit.services import pagination
from squadfit.services.exceptions import InvalidCursorError
from squadfit.utils.constants import MAX_PAGE_SIZE


def test_cursor_round_trip():
    cursor = pagination.encode_cursor(20)
    assert "=" not in cursor
    assert pagination.decode_cursor(cursor) == 20


def test_missing_cursor_is_first_page():
    assert pagination.decode_cursor(None) == 0
    assert pagination.decode_cursor("") == 0


@pytest.mark.parametrize("cursor", [
    "not a cursor!",
    base64.urlsafe_b64encode(b"[1, 2]").decode(),
    base64.urlsafe_b64encode(b'{"x": 1}').decode(),
    base64.urlsafe_b64encode(b'{"o": -5}').decode(),
    base64.urlsafe_b64encode(b'{"o": "10"}').decode(),
    base64.urlsafe_b64encode(b'{"o": true}').decode(),
])
def test_malformed_cursor_rejected(cursor):
    with pytest.raises(InvalidCursorError):
        pagination.decode_cursor(cursor)


def test_invalid_cursor_is_value_error():
    # Routes map ValueError to 400
    with pytest.raises(ValueError):
        pagination.decode_cursor("%%%")


def test_validate_limit():
    assert pagination.validate_limit(1) == 1
    assert pagination.validate_limit(MAX_PAGE_SIZE) == MAX_PAGE_SIZE
    with pytest.raises(ValueError):
        pagination.validate_limit(0)
    with pytest.raises(ValueError):
        pagination.validate_limit(MAX_PAGE_SIZE + 1)
