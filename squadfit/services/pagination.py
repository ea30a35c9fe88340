"""
Opaque cursor helpers shared by leaderboard, standings and history pages.
"""

import base64
import binascii
import json
from typing import Optional

from squadfit.services.exceptions import InvalidCursorError
from squadfit.utils.constants import MAX_PAGE_SIZE


def encode_cursor(offset: int) -> str:
    """Encode an offset as a URL-safe token."""
    payload = json.dumps({"o": offset}, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(payload).decode().rstrip("=")


def decode_cursor(cursor: Optional[str]) -> int:
    """
    Decode a token produced by encode_cursor. None means the first page.

    Raises:
        InvalidCursorError: token is malformed or carries a negative offset
    """
    if cursor is None or cursor == "":
        return 0
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        payload = json.loads(base64.urlsafe_b64decode(padded.encode()))
        offset = payload["o"]
    except (binascii.Error, ValueError, KeyError, TypeError, UnicodeDecodeError) as e:
        raise InvalidCursorError(f"Invalid cursor: {cursor!r}") from e
    if not isinstance(offset, int) or isinstance(offset, bool) or offset < 0:
        raise InvalidCursorError(f"Invalid cursor: {cursor!r}")
    return offset


def validate_limit(limit: int) -> int:
    """Page size must be between 1 and MAX_PAGE_SIZE."""
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValueError(f"limit must be between 1 and {MAX_PAGE_SIZE}, got {limit}")
    return limit
