"""
PNG raster codec built on Pillow.

Blobs are stored as PNG files. Besides regular images, arbitrary bytes are
packed into a single-row RGBA image: the bytes fill the pixel row in order and
the last pixel is zero-padded, so ``n`` bytes need ``ceil(n / 4)`` pixels (at
least one).
"""
import io
import logging

from PIL import Image

from psd_json.exceptions import DimensionMismatchError

logger = logging.getLogger(__name__)

#: Modes Pillow writes to PNG and reads back unchanged.
PNG_MODES = ("1", "L", "LA", "P", "RGB", "RGBA")


def encode_image(image: Image.Image) -> bytes:
    """Encode a PIL image as PNG bytes."""
    if image.mode not in PNG_MODES:
        logger.debug("Converting %s image to RGBA for PNG", image.mode)
        image = image.convert("RGBA")
    with io.BytesIO() as f:
        image.save(f, format="PNG")
        return f.getvalue()


def decode_image(data: bytes) -> Image.Image:
    """Decode PNG bytes into a PIL image."""
    with io.BytesIO(data) as f:
        with Image.open(f) as image:
            image.load()
            # Detach from the PNG plugin class and the closed file.
            return image.copy()


def encode_rgba(width: int, height: int, data: bytes) -> bytes:
    """Encode an RGBA pixel buffer as PNG bytes."""
    image = Image.frombytes("RGBA", (width, height), bytes(data))
    return encode_image(image)


def decode_rgba(data: bytes) -> tuple[int, int, bytes]:
    """
    Decode PNG bytes into an RGBA pixel buffer.

    :return: tuple of `(width, height, pixels)`.
    """
    image = decode_image(data)
    if image.mode != "RGBA":
        image = image.convert("RGBA")
    return image.width, image.height, image.tobytes()


def pack_raw(data: bytes) -> bytes:
    """Pack arbitrary bytes into a 1xN RGBA PNG."""
    pixels = max(1, -(-len(data) // 4))
    padded = bytes(data) + b"\x00" * (pixels * 4 - len(data))
    return encode_rgba(pixels, 1, padded)


def unpack_raw(data: bytes, length: int) -> bytes:
    """
    Unpack the first `length` bytes of a PNG written by :py:func:`pack_raw`.

    :raise DimensionMismatchError: if the image holds fewer bytes.
    """
    _, _, pixels = decode_rgba(data)
    if len(pixels) < length:
        raise DimensionMismatchError(
            "Raw blob holds %d bytes, expected %d" % (len(pixels), length)
        )
    return pixels[:length]
