from decimal import Decimal
from typing import Any, Dict, Optional

from bson import Decimal128


def _to_decimal(v: Any) -> Optional[Decimal]:
    if isinstance(v, Decimal128):
        return Decimal(v.to_decimal())
    if isinstance(v, Decimal):
        return v
    raise ValueError(f"Invalid type for _to_decimal: {type(v)}")


def encode_query(value: Any) -> Any:
    """Make a query document BSON-encodable (Decimal -> Decimal128)."""
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, dict):
        return {k: encode_query(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_query(v) for v in value]
    return value


def decode_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Turn a raw MongoDB document into model input (_id -> id, Decimal128 -> Decimal)."""
    decoded = {k: (_to_decimal(v) if isinstance(v, Decimal128) else v) for k, v in doc.items()}
    if "_id" in decoded:
        decoded["id"] = str(decoded.pop("_id"))
    return decoded
