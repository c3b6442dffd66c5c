"""
jcs.py - RFC 8785 JSON canonicalization for render configurations.

The canonical bytes of a render configuration are what gets hashed into a
render fingerprint, so two configurations that are equal as JSON values
must produce identical bytes regardless of key order or float spelling.

Constraints:
1. Objects: keys sorted by UTF-16 code units.
2. Arrays: order preserved.
3. Numbers: no NaN/Infinity, integral floats drop ".0", no "+" in exponents.
4. Strings: preserved verbatim (no normalization), UTF-8 output.
"""

import json
import math
from typing import Any


def _number(value: float) -> str:
    if math.isnan(value) or math.isinf(value):
        raise ValueError("NaN and Infinity are not permitted in canonical JSON")
    if value == 0.0:
        return "0"  # -0.0 serializes as 0
    if value.is_integer() and abs(value) < 2**53:
        return str(int(value))
    return json.dumps(value, allow_nan=False).replace("e+", "e")


def _string(value: str) -> bytes:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def canonicalize(data: Any) -> bytes:
    """
    Return the canonical UTF-8 JSON bytes for `data`.

    Raises:
        TypeError: for values with no JSON representation (sets, objects, non-str keys).
    """
    if data is None:
        return b"null"
    if isinstance(data, bool):
        return b"true" if data else b"false"
    if isinstance(data, int):
        return str(data).encode("utf-8")
    if isinstance(data, float):
        return _number(data).encode("utf-8")
    if isinstance(data, str):
        return _string(data)
    if isinstance(data, (list, tuple)):
        return b"[" + b",".join(canonicalize(item) for item in data) + b"]"
    if isinstance(data, dict):
        for key in data:
            if not isinstance(key, str):
                raise TypeError(f"Object keys must be str, got {type(key).__name__}")
        keys = sorted(data, key=lambda k: k.encode("utf-16-be"))
        return b"{" + b",".join(_string(k) + b":" + canonicalize(data[k]) for k in keys) + b"}"
    raise TypeError(f"Type {type(data).__name__} not serializable to canonical JSON")
