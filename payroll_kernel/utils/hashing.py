"""
Deterministic hashing.

Two digests depend on this module: the configuration checksum a run pins,
and the fingerprint stored with every calculation result.  Both must be
stable across processes and Decimal scales, so payloads are reduced to
canonical JSON (sorted keys, no whitespace, one spelling per value)
before hashing.
"""

import hashlib
import json
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _canonical_value(obj: Any) -> Any:
    # 0.10 and 0.1 are the same rate
    if isinstance(obj, Decimal):
        return str(obj.normalize())
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (date, UUID)):
        return obj.isoformat() if isinstance(obj, date) else str(obj)
    raise TypeError(f"Cannot canonicalize {type(obj).__name__} for hashing")


def canonicalize_json(data: Any) -> str:
    """Canonical JSON text for ``data``; unsupported types raise TypeError."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_canonical_value,
    )


def hash_payload(payload: Any) -> str:
    """Hex SHA-256 (64 characters) of the canonical JSON of ``payload``."""
    return hashlib.sha256(canonicalize_json(payload).encode("utf-8")).hexdigest()
