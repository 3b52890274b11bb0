"""
Deterministic hashing utilities.

Audit payloads and configuration identities are hashed over a canonical
JSON rendering so the same content always yields the same digest.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    """
    Serialize types json does not handle natively.

    Raises:
        TypeError: If the object type is not supported.
    """
    if isinstance(obj, Decimal):
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """
    Render data as canonical JSON: sorted keys, no whitespace.

    Integers stay integers, so minor-unit amounts of any size hash exactly.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """Hex-encoded SHA-256 of the canonical JSON of ``payload``."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_audit_event(
    entity_type: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Hash for one audit event, chained to its predecessor.

    hash = SHA-256(entity_type | entity_id | action | payload_hash | prev_hash),
    with "GENESIS" standing in for the first event's missing predecessor.
    """
    components = [
        entity_type,
        entity_id,
        action,
        payload_hash,
        prev_hash or "GENESIS",
    ]
    return hashlib.sha256("|".join(components).encode("utf-8")).hexdigest()
