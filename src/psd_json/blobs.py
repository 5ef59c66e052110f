"""
Blob store: moves binary payloads out of a layer tree and back.

:py:meth:`BlobStore.externalize` replaces every binary payload with a small
reference mapping and writes the payload to ``<digest>.png`` in the store
directory. :py:meth:`BlobStore.hydrate` does the reverse. A file that already
exists is never rewritten, and one store remembers the digests it has seen so
that identical payloads in one run map to one file.

Reference layout, e.g. for a raw buffer::

    {
        "__image": "<digest>.png",
        "__sha256": "<digest>",
        "__kind": "Raw",
        "__typedarray": "bytes",
        "__byteLength": 13,
    }
"""
import logging
import os
from collections.abc import Mapping
from typing import Any, Callable, Optional

from attrs import define, field
from PIL import Image

from psd_json import raster
from psd_json.constants import (
    BLOB_SUFFIX,
    BYTE_LENGTH_KEY,
    DIGEST_KEY,
    DTYPE_KEY,
    IMAGE_KEY,
    KIND_KEY,
    SHAPE_KEY,
    TYPED_ARRAY_KEY,
    BlobKind,
)
from psd_json.digest import sha256_hex
from psd_json.exceptions import (
    ChecksumMismatchError,
    DimensionMismatchError,
    InputFormatError,
    UnsupportedPayloadError,
)
from psd_json.payloads import (
    ImageData,
    as_bytes,
    classify_payload,
    raw_kind,
    restore_raw,
)
from psd_json.registry import new_registry

logger = logging.getLogger(__name__)

EXTERNALIZERS, externalizer = new_registry(attribute="kind")
HYDRATORS, hydrator = new_registry(attribute="kind")

_KINDS = {kind.value: kind for kind in BlobKind}


@define
class BlobStore:
    """
    Content-addressed PNG blob directory.

    A store instance holds the digest memo of a single conversion run; create
    a new one per run.

    .. py:attribute:: directory

        Path of the blob directory.
    """

    directory: str
    _seen: dict = field(factory=dict, init=False, repr=False)

    def externalize(self, value: Any) -> Any:
        """
        Return a JSON-safe copy of `value` with binary payloads written out.

        :raise UnsupportedPayloadError: for values that are neither
            sequences, mappings, binary payloads nor JSON scalars.
        """
        if isinstance(value, (list, tuple)):
            return [self.externalize(item) for item in value]
        kind = classify_payload(value)
        if kind is not None:
            return EXTERNALIZERS[kind](self, value)
        if isinstance(value, Mapping):
            return {key: self.externalize(item) for key, item in value.items()}
        if value is None or isinstance(value, (bool, int, float, str)):
            return value
        raise UnsupportedPayloadError(
            "Cannot externalize value of type %s" % type(value).__name__
        )

    def hydrate(self, value: Any) -> Any:
        """Return a copy of `value` with blob references read back in."""
        if isinstance(value, list):
            return [self.hydrate(item) for item in value]
        if isinstance(value, Mapping):
            kind = reference_kind(value)
            if kind is not None:
                return HYDRATORS[kind](self, value)
            return {key: self.hydrate(item) for key, item in value.items()}
        return value

    def path(self, filename: str) -> str:
        """Absolute path of a blob given its recorded file name."""
        return os.path.join(self.directory, *filename.replace("\\", "/").split("/"))

    def read(self, filename: str) -> bytes:
        with open(self.path(filename), "rb") as f:
            return f.read()

    def write_once(self, digest: str, encode: Callable[[], bytes]) -> str:
        """
        Store a blob under its digest unless it is already there.

        :param encode: called only when the PNG bytes must be written.
        :return: file name relative to the store directory.
        """
        filename = self._seen.get(digest)
        if filename is not None:
            logger.debug("Reusing blob %s", filename)
            return filename
        filename = digest + BLOB_SUFFIX
        path = self.path(filename)
        if os.path.exists(path):
            logger.debug("Blob %s already exists", filename)
        else:
            with open(path, "wb") as f:
                f.write(encode())
            logger.debug("Wrote blob %s", filename)
        self._seen[digest] = filename
        return filename


def reference_kind(value: Mapping) -> Optional[BlobKind]:
    """Get the blob kind of a reference mapping, or `None`."""
    if not value.get(IMAGE_KEY):
        return None
    kind = value.get(KIND_KEY)
    if not isinstance(kind, str):
        return None
    return _KINDS.get(kind)


def externalize(tree: Any, assets_dir: str) -> Any:
    """
    Externalize a layer tree into `assets_dir` with a fresh
    :py:class:`BlobStore`. The directory is created when missing.
    """
    os.makedirs(assets_dir, exist_ok=True)
    return BlobStore(assets_dir).externalize(tree)


def hydrate(tree: Any, assets_dir: str) -> Any:
    """Hydrate a JSON-safe layer tree from blobs in `assets_dir`."""
    return BlobStore(assets_dir).hydrate(tree)


@externalizer(BlobKind.CANVAS)
def _externalize_canvas(store: BlobStore, image: Image.Image) -> dict:
    data = raster.encode_image(image)
    digest = sha256_hex(data)
    filename = store.write_once(digest, lambda: data)
    return {
        IMAGE_KEY: filename,
        DIGEST_KEY: digest,
        KIND_KEY: BlobKind.CANVAS.value,
        "width": image.width,
        "height": image.height,
    }


@externalizer(BlobKind.IMAGE_DATA)
def _externalize_image_data(store: BlobStore, image_data: ImageData) -> dict:
    data = raster.encode_rgba(image_data.width, image_data.height, image_data.data)
    digest = sha256_hex(data)
    filename = store.write_once(digest, lambda: data)
    return {
        IMAGE_KEY: filename,
        DIGEST_KEY: digest,
        KIND_KEY: BlobKind.IMAGE_DATA.value,
        "width": image_data.width,
        "height": image_data.height,
    }


@externalizer(BlobKind.RAW)
def _externalize_raw(store: BlobStore, value: Any) -> dict:
    data = as_bytes(value)
    # Digest of the unpadded bytes, not of the packed pixel row.
    digest = sha256_hex(data)
    filename = store.write_once(digest, lambda: raster.pack_raw(data))
    reference = {
        IMAGE_KEY: filename,
        DIGEST_KEY: digest,
        KIND_KEY: BlobKind.RAW.value,
        TYPED_ARRAY_KEY: raw_kind(value),
        BYTE_LENGTH_KEY: len(data),
    }
    if reference[TYPED_ARRAY_KEY] == "ndarray":
        reference[DTYPE_KEY] = value.dtype.str
        reference[SHAPE_KEY] = list(value.shape)
    return reference


def _check_size(reference: Mapping, width: int, height: int) -> None:
    if (width, height) != (reference.get("width"), reference.get("height")):
        raise DimensionMismatchError(
            "PNG dimension mismatch for %s: expected %sx%s, got %dx%d"
            % (
                reference[IMAGE_KEY],
                reference.get("width"),
                reference.get("height"),
                width,
                height,
            )
        )


@hydrator(BlobKind.CANVAS)
def _hydrate_canvas(store: BlobStore, reference: Mapping) -> Image.Image:
    image = raster.decode_image(store.read(reference[IMAGE_KEY]))
    _check_size(reference, image.width, image.height)
    return image


@hydrator(BlobKind.IMAGE_DATA)
def _hydrate_image_data(store: BlobStore, reference: Mapping) -> ImageData:
    width, height, pixels = raster.decode_rgba(store.read(reference[IMAGE_KEY]))
    _check_size(reference, width, height)
    return ImageData(width, height, pixels)


@hydrator(BlobKind.RAW)
def _hydrate_raw(store: BlobStore, reference: Mapping) -> Any:
    filename = reference[IMAGE_KEY]
    length = reference.get(BYTE_LENGTH_KEY)
    if not isinstance(length, int) or isinstance(length, bool):
        raise InputFormatError("Raw reference %s has no byte length" % filename)
    data = raster.unpack_raw(store.read(filename), length)
    expected = reference.get(DIGEST_KEY)
    if expected and sha256_hex(data) != expected:
        raise ChecksumMismatchError("Raw png sha256 mismatch for %s" % filename)
    return restore_raw(
        reference.get(TYPED_ARRAY_KEY),
        data,
        dtype=reference.get(DTYPE_KEY),
        shape=reference.get(SHAPE_KEY),
    )
