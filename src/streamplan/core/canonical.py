# src/streamplan/core/canonical.py
"""
Canonical JSON serialization for deterministic hashing.

Two-phase approach:
1. Normalize: Convert durations, enums, tuples and sets to JSON-safe primitives
2. Serialize: Produce deterministic JSON per RFC 8785/JCS (rfc8785 package)

Plan fingerprints are built from these hashes, so two translations of the
same pipeline compare equal exactly when their canonical forms do.

NaN and Infinity are rejected, not silently converted.
"""

from __future__ import annotations

import hashlib
import math
from datetime import timedelta
from enum import Enum
from typing import Any

import rfc8785

# Version string embedded in plan fingerprints
CANONICAL_VERSION = "sha256-rfc8785-v1"


def _normalize_value(obj: Any) -> Any:
    """Convert a single value to a JSON-safe primitive.

    Raises:
        ValueError: If value is a non-finite float
    """
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            raise ValueError(f"Cannot canonicalize non-finite float: {obj}")
        return obj

    # StrEnum members are str instances; store the bare value
    if isinstance(obj, Enum):
        return obj.value

    if obj is None or isinstance(obj, str | int | bool):
        return obj

    if isinstance(obj, timedelta):
        return obj // timedelta(milliseconds=1)

    return obj


def _normalize_for_canonical(data: Any) -> Any:
    """Recursively normalize a data structure for canonical JSON.

    Sets are sorted after normalization so their hash does not depend on
    iteration order.
    """
    if isinstance(data, dict):
        return {str(k): _normalize_for_canonical(v) for k, v in data.items()}
    if isinstance(data, list | tuple):
        return [_normalize_for_canonical(v) for v in data]
    if isinstance(data, set | frozenset):
        return sorted((_normalize_for_canonical(v) for v in data), key=rfc8785.dumps)
    return _normalize_value(data)


def canonical_json(obj: Any) -> str:
    """Produce canonical JSON for hashing.

    Args:
        obj: Data structure to serialize

    Returns:
        Canonical JSON string (no whitespace, sorted keys)

    Raises:
        ValueError: If data contains NaN or Infinity
        TypeError: If data contains types that cannot be serialized
    """
    normalized = _normalize_for_canonical(obj)
    result: bytes = rfc8785.dumps(normalized)
    return result.decode("utf-8")


def stable_hash(obj: Any, version: str = CANONICAL_VERSION) -> str:
    """Compute stable hash of object.

    Args:
        obj: Data structure to hash
        version: Hash algorithm version

    Returns:
        SHA-256 hex digest of canonical JSON
    """
    canonical = canonical_json(obj)
    return hashlib.sha256(f"{version}:{canonical}".encode()).hexdigest()
