"""
Canonical form of a layer tree.

The canonical form sorts mapping keys at every level so that two trees with
the same content serialize to the same bytes, whatever the key insertion
order. Its SHA-256 digest is the integrity checksum kept in the container
metadata.

Example::

    from psd_json.canonical import canonical_digest

    assert canonical_digest({'a': 1, 'b': 2}) == canonical_digest({'b': 2, 'a': 1})
"""
import json
import logging
from collections.abc import Mapping
from typing import Any

import numpy as np

from psd_json.constants import BlobKind
from psd_json.digest import sha256_hex, to_base64
from psd_json.exceptions import UnsupportedPayloadError
from psd_json.payloads import classify_payload

logger = logging.getLogger(__name__)


def canonicalize(value: Any) -> Any:
    """
    Recursively sort mapping keys. Lists keep their order; binary leaves are
    returned as they are.
    """
    if isinstance(value, Mapping):
        return {key: canonicalize(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    return value


def _encode_binary(value: Any) -> Any:
    kind = classify_payload(value)
    if kind is BlobKind.RAW:
        if isinstance(value, np.ndarray):
            return {
                "base64": to_base64(value),
                "dtype": value.dtype.str,
                "kind": "ndarray",
                "shape": list(value.shape),
            }
        return {"base64": to_base64(value), "kind": "bytes"}
    if kind is BlobKind.IMAGE_DATA:
        return {
            "base64": to_base64(value.data),
            "height": value.height,
            "kind": "ImageData",
            "width": value.width,
        }
    if kind is BlobKind.CANVAS:
        return {
            "base64": to_base64(value.tobytes()),
            "height": value.height,
            "kind": "Image",
            "mode": value.mode,
            "width": value.width,
        }
    raise UnsupportedPayloadError(
        "Object of type %s is not serializable" % type(value).__name__
    )


def serialize(value: Any) -> bytes:
    """
    Serialize the canonical form of `value` as compact UTF-8 JSON.

    Binary leaves become ``{"kind": ..., "base64": ...}`` objects.
    """
    text = json.dumps(
        canonicalize(value),
        default=_encode_binary,
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return text.encode("utf-8")


def canonical_digest(tree: Any) -> str:
    """SHA-256 hex digest of the canonical serialization of `tree`."""
    return sha256_hex(serialize(tree))
