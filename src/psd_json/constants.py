"""
Various constants for psd_json
"""
from enum import Enum

#: Top-level keys of the container file.
META_KEY = "__meta"
TREE_KEY = "psd"

#: Keys of a blob reference written in place of a binary payload.
IMAGE_KEY = "__image"
DIGEST_KEY = "__sha256"
KIND_KEY = "__kind"
TYPED_ARRAY_KEY = "__typedarray"
BYTE_LENGTH_KEY = "__byteLength"
DTYPE_KEY = "__dtype"
SHAPE_KEY = "__shape"

#: File name suffix of every blob in the assets directory.
BLOB_SUFFIX = ".png"

#: Suffix of the layer info file written next to a container.
LAYERS_SUFFIX = ".layers.json"

#: Name of the config file picked up from the working directory.
CONFIG_FILENAME = "psdjson.config.json"

TOOL_NAME = "psd-json"


class BlobKind(Enum):
    """
    Kind of binary payload stored as a blob.
    """

    CANVAS = "Canvas"
    IMAGE_DATA = "ImageData"
    RAW = "Raw"


class LayerType(Enum):
    """
    Semantic layer type reported in the layer info projection.
    """

    GROUP = "group"
    TEXT = "text"
    SMART_OBJECT = "smartObject"
    ADJUSTMENT = "adjustment"
    SHAPE = "shape"
    PIXEL = "pixel"
    LAYER = "layer"
