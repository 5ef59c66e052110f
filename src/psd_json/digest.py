"""
Digest and base64 helpers.
"""
import base64
import hashlib
from typing import Any

from psd_json.payloads import as_bytes


def sha256_hex(data: Any) -> str:
    """
    Compute the SHA-256 hex digest of a byte buffer or a string.

    Strings are hashed as UTF-8.

    :raise TypeError: for any other input.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(as_bytes(data)).hexdigest()


def to_base64(data: Any) -> str:
    """Encode a byte buffer as base64 text."""
    return base64.b64encode(as_bytes(data)).decode("ascii")


def from_base64(text: str) -> bytes:
    return base64.b64decode(text)
