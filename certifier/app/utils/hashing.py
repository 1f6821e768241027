"""
Canonical serialization and hashing of issuance payloads.

This module provides the two primitives behind the content hash bound
into every rendered certificate:

- canonical JSON bytes of a flat payload (sorted keys, no whitespace)
- a deterministic, human-readable SHA-256 hash of those bytes

IMPORTANT DESIGN RULE:
- ``compute_document_hash`` hashes bytes, and bytes only.
- Canonicalization happens in ``canonicalize_payload`` and nowhere else.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Union


def _canonical_json_default(obj: Any) -> str:
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(
        f"Object of type {obj.__class__.__name__} is not JSON serializable"
    )


def canonicalize_payload(payload: Mapping[str, Any]) -> bytes:
    return json.dumps(
        dict(payload),
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
        default=_canonical_json_default,
    ).encode("utf-8")


def compute_document_hash(canonical_bytes: Union[bytes, bytearray]) -> str:
    """
    Compute a deterministic, human-readable content hash.

    IMPORTANT:
    - Input MUST already be canonicalized.

    Returns:
        A SHA-256 hash string with an explicit algorithm prefix.
        Example: ``SHA-256:3b7c0e4c...``
    """
    if not isinstance(canonical_bytes, (bytes, bytearray)):
        raise TypeError(
            "compute_document_hash expects canonical bytes, "
            f"got {type(canonical_bytes).__name__}"
        )

    digest = hashlib.sha256(canonical_bytes).hexdigest()
    return f"SHA-256:{digest}"


def hash_payload(payload: Mapping[str, Any]) -> str:
    return compute_document_hash(canonicalize_payload(payload))
