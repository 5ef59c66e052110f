"""
Layer info projection.

The projection is a reduced, editable view of a JSON-safe layer tree that
keeps only ``id``, ``name``, ``type``, ``image`` and ``children`` of every
layer. It is written next to the container for humans and tools, and its
nodes can be fed back to :py:func:`psd_json.patch.apply_patch`. It is never
used to rebuild a document.

Example::

    [
        {"id": 3, "name": "Group", "type": "group", "children": [
            {"id": 4, "name": "Red", "type": "pixel", "image": "images/ab12....png"}
        ]}
    ]
"""
import itertools
import logging
from collections.abc import Mapping
from typing import Any, Iterator

from psd_json.constants import IMAGE_KEY, LayerType

logger = logging.getLogger(__name__)

#: Keys whose presence marks a shape layer.
SHAPE_KEYS = ("vectorMask", "path", "shape", "strokeStyle", "fill", "gradientMap")

#: Keys that may carry the pixel payload of a layer.
PIXEL_KEYS = ("canvas", "imageData")

#: Projection fields a patch spec may override.
OVERRIDE_KEYS = ("type", "image", "name")


def _is_set(value: Any) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, (str, int, float)) and not value:
        return False
    return True


def is_layer_id(value: Any) -> bool:
    """Ids are strings or numbers, never booleans."""
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def detect_type(node: Any) -> str:
    """
    Guess the layer type of a node that has no explicit ``type``.

    Checked in order: group (non-empty children), text, smart object,
    adjustment, shape, pixel, and finally plain layer.
    """
    if not isinstance(node, Mapping):
        return LayerType.LAYER.value
    children = node.get("children")
    if isinstance(children, list) and children:
        return LayerType.GROUP.value
    if isinstance(node.get("text"), Mapping):
        return LayerType.TEXT.value
    if isinstance(node.get("smartObject"), Mapping):
        return LayerType.SMART_OBJECT.value
    if _is_set(node.get("adjustment")):
        return LayerType.ADJUSTMENT.value
    if any(_is_set(node.get(key)) for key in SHAPE_KEYS):
        return LayerType.SHAPE.value
    if any(_is_set(node.get(key)) for key in PIXEL_KEYS):
        return LayerType.PIXEL.value
    return LayerType.LAYER.value


def pick_image(node: Any) -> str:
    """Blob file name of the pixel payload of a node, or an empty string."""
    if isinstance(node, Mapping):
        for key in PIXEL_KEYS:
            reference = node.get(key)
            if isinstance(reference, Mapping) and reference.get(IMAGE_KEY):
                return reference[IMAGE_KEY]
    return ""


def iter_layers(tree: Any) -> Iterator[Mapping]:
    """Iterate over every layer node below `tree` in pre-order."""
    children = tree.get("children") if isinstance(tree, Mapping) else None
    if not isinstance(children, list):
        return
    for node in children:
        if isinstance(node, Mapping):
            yield node
            yield from iter_layers(node)


def build_layer_info(tree: Any, assets_dir_rel: str = ".") -> list:
    """
    Project a JSON-safe layer tree to layer info.

    Layers without an id get the next sequential integer from 1 that no other
    layer in the tree uses. Those ids only live in the projection.

    :param tree: JSON-safe tree, i.e. the output of
        :py:func:`psd_json.blobs.externalize`.
    :param assets_dir_rel: blob directory relative to the container; blob
        file names are joined to it.
    :return: list of top-level layer info nodes.
    """
    prefix = ""
    if assets_dir_rel and assets_dir_rel != ".":
        prefix = assets_dir_rel.replace("\\", "/").rstrip("/") + "/"

    used = {
        str(node["id"]) for node in iter_layers(tree) if is_layer_id(node.get("id"))
    }
    counter = itertools.count(1)

    def next_id() -> int:
        for candidate in counter:
            if str(candidate) not in used:
                used.add(str(candidate))
                return candidate
        raise AssertionError("unreachable")

    def map_layer(node: Any) -> dict:
        if not isinstance(node, Mapping):
            return {"id": next_id(), "name": "", "type": LayerType.LAYER.value}
        node_id = node.get("id")
        name = node.get("name")
        out = {
            "id": node_id if is_layer_id(node_id) else next_id(),
            "name": name if isinstance(name, str) else "",
            "type": node.get("type") or detect_type(node),
        }
        if node.get("image"):
            out["image"] = node["image"]
        else:
            image = pick_image(node)
            if image:
                out["image"] = prefix + image
        children = node.get("children")
        if isinstance(children, list) and children:
            out["children"] = [map_layer(child) for child in children]
        return out

    children = tree.get("children") if isinstance(tree, Mapping) else None
    if not isinstance(children, list):
        return []
    return [map_layer(child) for child in children]


def merge_overrides(layer_info: list, overrides: Mapping) -> list:
    """
    Apply ``type``, ``image`` and ``name`` overrides to projected layers.

    :param overrides: mapping of ``str(id)`` to the fields to overwrite.
    :return: new layer info list.
    """

    def merge(layer: Mapping) -> dict:
        updated = dict(layer)
        fields = overrides.get(str(layer.get("id")))
        if fields:
            updated.update(
                (key, fields[key]) for key in OVERRIDE_KEYS if key in fields
            )
        if isinstance(layer.get("children"), list):
            updated["children"] = [merge(child) for child in layer["children"]]
        return updated

    return [merge(layer) for layer in layer_info]
