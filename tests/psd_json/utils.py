import logging
import os
from typing import Any, Optional

from PIL import Image
from psd_tools import PSDImage

from psd_json.canonical import serialize

logging.basicConfig(level=logging.DEBUG)

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 128)


def make_psd(path: str) -> None:
    """
    Write a small RGBA document::

        Group
          Red    (8x4 at 2,1)
        Blue     (4x4 at 10,6)
    """
    psd = PSDImage.new("RGBA", (16, 12))
    group = psd.create_group(name="Group")
    red = psd.create_pixel_layer(
        Image.new("RGBA", (8, 4), RED), name="Red", top=1, left=2
    )
    group.append(red)
    psd.create_pixel_layer(Image.new("RGBA", (4, 4), BLUE), name="Blue", top=6, left=10)
    psd.save(path)


def image_equal(a: Image.Image, b: Image.Image) -> bool:
    return a.mode == b.mode and a.size == b.size and a.tobytes() == b.tobytes()


def find_node(tree: Any, name: str) -> Optional[dict]:
    for node in tree.get("children") or ():
        if node.get("name") == name:
            return node
        found = find_node(node, name)
        if found is not None:
            return found
    return None


def blob_files(directory: Any) -> list:
    return sorted(f for f in os.listdir(str(directory)) if f.endswith(".png"))


def same(a: Any, b: Any) -> bool:
    """Compare two trees by canonical serialization."""
    return serialize(a) == serialize(b)
