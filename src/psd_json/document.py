"""
Document codec: PSD files <-> layer trees, built on psd-tools.

:py:func:`read_psd` turns a PSD file into a plain layer tree whose pixel data
are PIL images, ready for :py:func:`psd_json.blobs.externalize`.
:py:func:`write_psd` builds a new PSD file from such a tree.

The tree keeps what psd-tools exposes for each layer::

    {
        "id": 7, "name": "Title", "hidden": False, "opacity": 255,
        "blendMode": "NORMAL", "left": 0, "top": 0, "right": 64, "bottom": 16,
        "clipping": False,
        "canvas": <PIL.Image.Image RGBA>,
        "text": {"text": "Hello"},
    }

Writing goes through the psd-tools editing API, which only creates groups
and pixel layers. Type, shape, smart object and adjustment layers come back
as their rasterized pixels.
"""
import logging
import os
from collections.abc import Mapping
from typing import Any, BinaryIO, Optional, Union

from PIL import Image
from psd_tools import PSDImage
from psd_tools.api.layers import AdjustmentLayer, FillLayer, Layer
from psd_tools.constants import BlendMode

from psd_json.layers import iter_layers
from psd_json.payloads import ImageData

logger = logging.getLogger(__name__)


def read_psd(fp: Union[BinaryIO, str, os.PathLike]) -> dict:
    """
    Read a PSD file into a layer tree.

    :param fp: filename or file-like object.
    :return: root node with document fields and top-level ``children``.
    """
    psd = PSDImage.open(fp)
    tree: dict = {
        "width": psd.width,
        "height": psd.height,
        "colorMode": psd.color_mode.name,
        "depth": psd.depth,
        "children": [_layer_to_node(layer) for layer in psd],
    }
    if psd.has_preview():
        preview = psd.topil()
        if preview is not None:
            tree["imageData"] = ImageData.frompil(preview)
    _assign_missing_ids(tree)
    logger.debug("Read %d top-level layers", len(tree["children"]))
    return tree


def _assign_missing_ids(tree: dict) -> None:
    # Layers written by some tools carry no id; patches address layers by id.
    nodes = list(iter_layers(tree))
    next_id = max((node["id"] for node in nodes if "id" in node), default=0)
    for node in nodes:
        if "id" not in node:
            next_id += 1
            node["id"] = next_id
            logger.debug("Assigned id %d to layer %r", next_id, node["name"])


def _layer_to_node(layer: Layer) -> dict:
    node: dict = {
        "name": layer.name,
        "hidden": not layer.visible,
        "opacity": layer.opacity,
        "blendMode": layer.blend_mode.name,
        "left": layer.left,
        "top": layer.top,
        "right": layer.right,
        "bottom": layer.bottom,
        "clipping": layer.clipping,
    }
    if layer.layer_id >= 0:
        node["id"] = layer.layer_id
    if layer.is_group():
        node["opened"] = layer.open_folder
        node["children"] = [_layer_to_node(child) for child in layer]
        return node

    if layer.kind == "type":
        node["text"] = {"text": layer.text}
    elif layer.kind == "smartobject":
        smart_object = layer.smart_object
        info = {
            "kind": smart_object.kind,
            "filename": smart_object.filename,
            "uniqueId": smart_object.unique_id,
        }
        if smart_object.kind == "data":
            info["data"] = bytes(smart_object.data)
        node["smartObject"] = info
    elif isinstance(layer, FillLayer):
        node["fill"] = {"type": layer.kind}
    elif isinstance(layer, AdjustmentLayer):
        node["adjustment"] = {"type": layer.kind}

    if layer.has_vector_mask():
        vector_mask = layer.vector_mask
        node["vectorMask"] = {
            "inverted": vector_mask.inverted,
            "notLinked": vector_mask.not_linked,
            "disabled": vector_mask.disabled,
        }

    if layer.has_pixels():
        image = layer.topil()
        if image is not None:
            node["canvas"] = image.convert("RGBA")
    return node


def write_psd(
    tree: Mapping,
    fp: Union[BinaryIO, str, os.PathLike],
    base_dir: Optional[str] = None,
) -> None:
    """
    Write a layer tree as a new RGBA PSD file.

    Nodes with a ``children`` list become groups. Every other node becomes a
    pixel layer taking its pixels from ``canvas``, ``imageData``, or an
    ``image`` path; nodes without pixels get a 1x1 transparent layer.

    :param tree: hydrated layer tree, see :py:func:`read_psd`.
    :param fp: filename or file-like object.
    :param base_dir: directory that relative ``image`` paths start from.
    """
    size = (int(tree.get("width") or 1), int(tree.get("height") or 1))
    psd = PSDImage.new("RGBA", size)
    for node in tree.get("children") or ():
        _add_node(psd, psd, node, base_dir)
    psd.save(fp)


def _add_node(
    psd: PSDImage, parent: Any, node: Any, base_dir: Optional[str]
) -> None:
    if not isinstance(node, Mapping):
        logger.warning("Skipping malformed layer node %r", node)
        return
    name = node.get("name")
    children = node.get("children")
    layer: Layer
    if isinstance(children, list):
        layer = psd.create_group(
            name=name if isinstance(name, str) else "Group",
            open_folder=bool(node.get("opened", True)),
        )
        if parent is not psd:
            parent.append(layer)
        for child in children:
            _add_node(psd, layer, child, base_dir)
    else:
        layer = psd.create_pixel_layer(
            _node_image(node, base_dir),
            name=name if isinstance(name, str) else "Layer",
            top=int(node.get("top") or 0),
            left=int(node.get("left") or 0),
        )
        if parent is not psd:
            parent.append(layer)

    opacity = node.get("opacity")
    if isinstance(opacity, int) and not isinstance(opacity, bool):
        layer.opacity = max(0, min(255, opacity))
    blend_mode = node.get("blendMode")
    if isinstance(blend_mode, str) and blend_mode in BlendMode.__members__:
        layer.blend_mode = BlendMode[blend_mode]
    if node.get("hidden"):
        layer.visible = False


def _node_image(node: Mapping, base_dir: Optional[str]) -> Image.Image:
    canvas = node.get("canvas")
    if isinstance(canvas, Image.Image):
        return canvas
    image_data = node.get("imageData")
    if isinstance(image_data, ImageData):
        return image_data.topil()
    path = node.get("image")
    if isinstance(path, str) and path:
        if base_dir and not os.path.isabs(path):
            path = os.path.join(base_dir, path)
        if os.path.exists(path):
            with Image.open(path) as image:
                return image.convert("RGBA")
        logger.warning("Image %s of layer %r not found", path, node.get("name"))
    return Image.new("RGBA", (1, 1))
