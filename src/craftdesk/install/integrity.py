"""
Archive integrity checks.

Integrity strings may be "sha256-<hex>", "sha256:<hex>", bare hex, or a
Subresource Integrity value ("sha256-<base64>").
"""

import base64
import binascii
import hashlib
import re

_HEX_SHA256 = re.compile(r"^[0-9a-fA-F]{64}$")
_PREFIXES = ("sha256-", "sha256:")


def normalize_checksum(integrity: str) -> str | None:
    """Convert an integrity string to lowercase hex.

    Returns:
        The hex digest, or None if the string is not a SHA-256 checksum.
    """
    value = integrity.strip()
    for prefix in _PREFIXES:
        if value.lower().startswith(prefix):
            value = value[len(prefix) :]
            break

    if _HEX_SHA256.fullmatch(value):
        return value.lower()

    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return None
    return raw.hex() if len(raw) == hashlib.sha256().digest_size else None


def verify_integrity(actual_hex: str, integrity: str) -> bool:
    """Check a computed hex digest against an integrity string."""
    expected = normalize_checksum(integrity)
    return expected is not None and expected == actual_hex.lower()


def format_checksum(integrity: str, length: int = 16) -> str:
    """Shorten an integrity string for messages."""
    return (normalize_checksum(integrity) or integrity)[:length]
