"""
psd-json: lossless conversion between PSD files and a JSON container.

A PSD document becomes a JSON layer tree whose binary payloads (layer
canvases, pixel buffers, raw byte arrays) are stored as content-addressed PNG
files, plus a reduced layer info view that can be edited and patched back
into the tree.

Basic usage::

    from psd_json import convert, update_layers_with_spec

    # PSD -> result/example.json, result/images/*.png, result/example.layers.json
    result = convert('example.psd')

    # Make layer 4 the only child of group 3
    update_layers_with_spec(
        'result/example.json',
        'result/example.layers.json',
        {'id': 3, 'children': [{'id': 4}]},
    )

    # JSON -> PSD
    convert('result/example.json', 'result/example.psd')

Architecture:

- :py:mod:`psd_json.blobs`: binary payloads <-> PNG blob references
- :py:mod:`psd_json.canonical`: canonical serialization and tree checksum
- :py:mod:`psd_json.layers`: layer info projection
- :py:mod:`psd_json.patch`: id-addressed tree patching
- :py:mod:`psd_json.document`: PSD reading and writing through psd-tools
- :py:mod:`psd_json.convert`: file-level pipelines
"""

from psd_json.config import Config
from psd_json.container import Container
from psd_json.convert import (
    convert,
    json_to_psd,
    psd_to_json,
    update_layers_with_spec,
)
from psd_json.patch import apply_patch
from psd_json.version import __version__

__all__ = [
    "Config",
    "Container",
    "apply_patch",
    "convert",
    "json_to_psd",
    "psd_to_json",
    "update_layers_with_spec",
    "__version__",
]
