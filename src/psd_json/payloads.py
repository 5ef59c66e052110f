"""
Binary payloads found in a layer tree.

A layer tree is made of plain mappings, lists and JSON scalars, except for a
few binary leaves. :py:func:`classify_payload` is the single place that tells
them apart, in this order:

- ``Canvas``: a :py:class:`PIL.Image.Image`.
- ``ImageData``: an :py:class:`ImageData` RGBA pixel buffer.
- ``Raw``: ``bytes``, ``bytearray``, ``memoryview`` or a numeric
  :py:class:`numpy.ndarray`.

Raw buffers are restored by the type name recorded next to them, see
:py:func:`restore_raw`.
"""

import logging
from typing import Any, Optional, Sequence

import numpy as np
from attrs import define, field
from attrs.validators import instance_of
from PIL import Image

from psd_json.constants import BlobKind
from psd_json.exceptions import InputFormatError
from psd_json.registry import new_registry

logger = logging.getLogger(__name__)

RESTORERS, register = new_registry(attribute="typedarray")


@define(eq=True)
class ImageData:
    """
    Uncompressed RGBA pixel buffer.

    .. py:attribute:: width
    .. py:attribute:: height
    .. py:attribute:: data

        ``width * height * 4`` bytes, row-major RGBA.
    """

    width: int = field(validator=instance_of(int))
    height: int = field(validator=instance_of(int))
    data: bytes = field(converter=bytes, repr=False)

    @data.validator
    def _check_length(self, attribute: Any, value: bytes) -> None:
        expected = self.width * self.height * 4
        if len(value) != expected:
            raise ValueError(
                "ImageData of %dx%d needs %d bytes, got %d"
                % (self.width, self.height, expected, len(value))
            )

    @classmethod
    def frompil(cls, image: Image.Image) -> "ImageData":
        """Create RGBA pixel data from a PIL image."""
        image = image.convert("RGBA")
        return cls(image.width, image.height, image.tobytes())

    def topil(self) -> Image.Image:
        """Get an RGBA PIL image of the pixel data."""
        return Image.frombytes("RGBA", (self.width, self.height), self.data)


def is_raw(value: Any) -> bool:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return True
    return isinstance(value, np.ndarray) and value.dtype != object


def classify_payload(value: Any) -> Optional[BlobKind]:
    """
    Classify a tree value as a binary payload.

    :return: :py:class:`~psd_json.constants.BlobKind`, or `None` when the
        value is not binary.
    """
    if isinstance(value, Image.Image):
        return BlobKind.CANVAS
    if isinstance(value, ImageData):
        return BlobKind.IMAGE_DATA
    if is_raw(value):
        return BlobKind.RAW
    return None


def raw_kind(value: Any) -> str:
    """Type name recorded for a raw buffer."""
    if isinstance(value, np.ndarray):
        return "ndarray"
    return type(value).__name__


def as_bytes(value: Any) -> bytes:
    """Get the bytes of a raw buffer."""
    if isinstance(value, np.ndarray):
        return np.ascontiguousarray(value).tobytes()
    if isinstance(value, memoryview):
        return value.tobytes()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    raise TypeError(
        "Expected bytes, bytearray, memoryview or ndarray, got %s"
        % type(value).__name__
    )


def restore_raw(
    kind: Optional[str],
    data: bytes,
    dtype: Optional[str] = None,
    shape: Optional[Sequence[int]] = None,
) -> Any:
    """
    Restore a raw buffer from its bytes and recorded type name.

    :raise InputFormatError: if the type name is unknown.
    """
    if kind not in RESTORERS:
        raise InputFormatError("Unknown typed array: %s" % kind)
    return RESTORERS[kind](data, dtype=dtype, shape=shape)


@register("bytes")
def _restore_bytes(data: bytes, **kwargs: Any) -> bytes:
    return bytes(data)


@register("bytearray")
def _restore_bytearray(data: bytes, **kwargs: Any) -> bytearray:
    return bytearray(data)


@register("memoryview")
def _restore_memoryview(data: bytes, **kwargs: Any) -> memoryview:
    return memoryview(bytes(data))


@register("ndarray")
def _restore_ndarray(
    data: bytes,
    dtype: Optional[str] = None,
    shape: Optional[Sequence[int]] = None,
    **kwargs: Any,
) -> np.ndarray:
    array = np.frombuffer(data, dtype=np.dtype(dtype or "|u1"))
    if shape is not None:
        array = array.reshape(tuple(shape))
    # frombuffer views are read-only.
    return array.copy()
