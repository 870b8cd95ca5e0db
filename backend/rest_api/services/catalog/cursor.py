"""
Opaque pagination cursors.

A cursor names the last row a client has seen as (sort field, sort value, id).
Wire format:

    <urlsafe-base64 JSON ["createdAt", "2024-01-01T10:00:00", "p-42"]>.<hmac>

The HMAC-SHA256 tag (truncated) is keyed with a server secret, so a client
cannot forge a position it was never given. Cursors are never stored; they
only carry a position from one response to the next request.
"""

import base64
import binascii
import hashlib
import hmac
import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from shared.config.constants import Limits, SortField


SIGNATURE_LENGTH = 16  # hex chars of the HMAC kept in the cursor


class CursorDecodeError(ValueError):
    """The cursor is malformed, tampered with, or belongs to another ordering."""


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


def _serialize_value(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (Decimal, int, float)):
        return str(Decimal(str(value)))
    if isinstance(value, str):
        return value
    raise TypeError(f"Unsupported cursor value type: {type(value).__name__}")


def _parse_value(sort_by: str, raw: str) -> Any:
    """Parse a serialized sort value back into the column's Python type."""
    if sort_by in (SortField.CREATED_AT, SortField.UPDATED_AT):
        try:
            return datetime.fromisoformat(raw)
        except ValueError as e:
            raise CursorDecodeError("sort value is not a timestamp") from e
    if sort_by == SortField.PRICE:
        try:
            value = Decimal(raw)
        except InvalidOperation as e:
            raise CursorDecodeError("sort value is not a number") from e
        if not value.is_finite():
            raise CursorDecodeError("sort value is not a finite number")
        return value
    return raw


class CursorCodec:
    """
    Encode and decode signed cursors. Stateless and safe to share.

    Usage:
        codec = CursorCodec(settings.cursor_secret)
        token = codec.encode("price", Decimal("19.99"), "p-42")
        value, last_id = codec.decode(token, "price")
    """

    def __init__(self, secret: str, max_length: int = Limits.MAX_CURSOR_LENGTH):
        if not secret:
            raise ValueError("Cursor secret must not be empty")
        self._secret = secret.encode()
        self._max_length = max_length

    def _sign(self, payload: str) -> str:
        digest = hmac.new(self._secret, payload.encode(), hashlib.sha256).hexdigest()
        return digest[:SIGNATURE_LENGTH]

    def encode(self, sort_by: str, sort_value: Any, row_id: str) -> str:
        """Build the cursor pointing just past the row (sort_value, row_id)."""
        if sort_by not in SortField.ALL:
            raise ValueError(f"Unknown sort field: {sort_by}")
        if not row_id:
            raise ValueError("Row id must not be empty")

        body = json.dumps(
            [sort_by, _serialize_value(sort_value), str(row_id)],
            separators=(",", ":"),
            ensure_ascii=False,
        )
        payload = _b64encode(body.encode("utf-8"))
        return f"{payload}.{self._sign(payload)}"

    def decode(self, cursor: str, sort_by: str) -> tuple[Any, str]:
        """
        Recover (sort_value, row_id) from a cursor.

        Raises:
            CursorDecodeError: On any malformed, forged or mismatched cursor.
        """
        if not cursor or len(cursor) > self._max_length:
            raise CursorDecodeError("cursor is empty or too long")

        payload, sep, signature = cursor.rpartition(".")
        if not sep or not payload:
            raise CursorDecodeError("cursor has no signature")
        if not hmac.compare_digest(signature, self._sign(payload)):
            raise CursorDecodeError("cursor signature does not match")

        try:
            parts = json.loads(_b64decode(payload).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            raise CursorDecodeError("cursor payload is not valid") from e

        if not isinstance(parts, list) or len(parts) != 3:
            raise CursorDecodeError("cursor payload has the wrong shape")
        cursor_sort, raw_value, row_id = parts
        if not all(isinstance(p, str) for p in parts):
            raise CursorDecodeError("cursor components must be strings")
        if not raw_value or not row_id:
            raise CursorDecodeError("cursor components must not be empty")
        if cursor_sort != sort_by:
            raise CursorDecodeError("cursor was issued for a different sort field")

        return _parse_value(sort_by, raw_value), row_id
