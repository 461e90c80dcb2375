"""Opaque pagination cursors.

A cursor is the base64 encoding of the canonical id of the first record of
the page it points at. Clients never interpret it; the reader decodes it
and checks it resolves inside the caller's connection before fetching.
"""

from __future__ import annotations

import base64
import binascii

from src.hub.core.errors import InvalidCursor


def encode_cursor(record_id: str) -> str:
    """Encode a canonical record id as an opaque cursor."""
    return base64.b64encode(record_id.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str, connection_id: str) -> str:
    """Decode a cursor back into a canonical record id.

    Raises:
        InvalidCursor: If the cursor is not valid base64 text.
    """
    try:
        record_id = base64.b64decode(cursor.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        raise InvalidCursor(cursor, connection_id) from None
    if not record_id:
        raise InvalidCursor(cursor, connection_id)
    return record_id
