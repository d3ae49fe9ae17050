"""Opaque cursor tokens and cursor/offset pagination helpers."""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import math
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError
from pymongo import DESCENDING

from ..schemas.listings import Listing
from ..schemas.search import CursorData, SortKey, SortOrder
from .filters import SORT_FIELDS, direction

logger = logging.getLogger(__name__)

CURSOR_VERSION = 1

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class CursorCodec:
    """Encodes and validates signed, versioned, expiring cursor tokens.

    A token is "<payload>.<signature>", both url-safe base64. Any token that
    fails validation decodes to None.
    """

    def __init__(self, secret: str, max_age: timedelta = timedelta(hours=24), clock: Clock = utcnow):
        self._secret = secret.encode("utf-8")
        self.max_age = max_age
        self._clock = clock

    def _sign(self, payload: bytes) -> str:
        return _b64encode(hmac.new(self._secret, payload, hashlib.sha256).digest())

    def encode(self, sort_key: SortKey, value: str, listing_id: str) -> str:
        """Create a cursor pointing just past (value, listing_id) for sort_key."""
        payload = json.dumps(
            {
                "v": CURSOR_VERSION,
                "sortKey": str(sort_key),
                "lastValue": value,
                "lastId": listing_id,
                "issuedAt": self._clock().isoformat(),
            },
            separators=(",", ":"),
        ).encode("utf-8")
        return f"{_b64encode(payload)}.{self._sign(payload)}"

    def decode(self, token: Optional[str]) -> Optional[CursorData]:
        """Validate a cursor token.

        Returns:
            The decoded cursor, or None if the token is malformed, tampered
            with, of an unknown version, or older than max_age
        """
        if not token:
            return None

        try:
            encoded_payload, signature = token.split(".", 1)
            payload = _b64decode(encoded_payload)
        except (ValueError, binascii.Error) as e:
            logger.debug(f"Rejected malformed cursor: {e}")
            return None

        if not hmac.compare_digest(signature.encode("utf-8"), self._sign(payload).encode("ascii")):
            logger.debug("Rejected cursor with invalid signature")
            return None

        try:
            data = json.loads(payload)
            if data.get("v") != CURSOR_VERSION:
                logger.debug(f"Rejected cursor with unknown version {data.get('v')!r}")
                return None
            cursor = CursorData(
                sort_key=data["sortKey"],
                value=data["lastValue"],
                id=data["lastId"],
                issued_at=data["issuedAt"],
            )
        except (ValueError, KeyError, TypeError, AttributeError, ValidationError) as e:
            logger.debug(f"Rejected cursor with invalid payload: {e}")
            return None

        if self._clock() - _as_utc(cursor.issued_at) > self.max_age:
            logger.debug(f"Rejected cursor issued at {cursor.issued_at.isoformat()}")
            return None

        return cursor


def cursor_direction(sort_key: SortKey, sort_order: SortOrder) -> int:
    if sort_key == SortKey.RELEVANCE:
        return DESCENDING
    return direction(sort_order)


def cursor_sort(sort_key: SortKey, sort_order: SortOrder) -> List[Tuple[str, int]]:
    """Store sort used by cursor pagination: the sort field, then _id."""
    order = cursor_direction(sort_key, sort_order)
    return [(SORT_FIELDS[sort_key], order), ("_id", order)]


def cursor_value(listing: Listing, sort_key: SortKey) -> str:
    """Stringified value of the listing's sort field."""
    value = getattr(listing, SORT_FIELDS[sort_key])
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def parse_cursor_value(sort_key: SortKey, raw: str) -> Any:
    """Convert a cursor value back to the type of its store field.

    Raises:
        ValueError: If raw cannot be parsed
    """
    field = SORT_FIELDS[sort_key]
    try:
        if field == "created_at":
            return datetime.fromisoformat(raw)
        if field == "price":
            return Decimal(raw)
        return int(raw)
    except ArithmeticError as e:
        raise ValueError(f"Invalid {field} cursor value: {raw!r}") from e


def build_cursor_query(cursor: CursorData, sort_order: SortOrder) -> Optional[Dict[str, Any]]:
    """Query selecting the rows strictly after the cursor position.

    Returns:
        The query, or None if the cursor value does not parse
    """
    try:
        value = parse_cursor_value(cursor.sort_key, cursor.value)
    except ValueError as e:
        logger.warning(f"Ignoring cursor with unparseable value: {e}")
        return None

    field = SORT_FIELDS[cursor.sort_key]
    op = "$lt" if cursor_direction(cursor.sort_key, sort_order) == DESCENDING else "$gt"
    return {
        "$or": [
            {field: {op: value}},
            {field: value, "_id": {op: cursor.id}},
        ]
    }


def split_page(rows: List[Listing], limit: int) -> Tuple[List[Listing], bool]:
    """Split a limit+1 fetch into the page rows and whether a next page exists."""
    if len(rows) > limit:
        return rows[:limit], True
    return rows, False


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
