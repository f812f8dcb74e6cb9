"""
Canonical JSON and HMAC signing.

Confirmation tokens sign a canonical rendering of (operation, scope,
issue time).  Canonical means sorted keys, no whitespace, and a fixed
text form for Decimal, datetime, UUID and enum values, so the same scope
always signs to the same digest.
"""

import hashlib
import hmac
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _canonical_value(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        # 800 and 800.00 must sign identically
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Cannot canonicalize {type(obj).__name__}")


def canonical_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_canonical_value)


def sign_payload(payload: dict, secret: str) -> str:
    """Hex HMAC-SHA256 of the payload's canonical JSON."""
    return hmac.new(
        secret.encode("utf-8"),
        canonical_json(payload).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
