import logging
import os

from PIL import Image
from psd_tools import PSDImage

from psd_json.document import read_psd, write_psd
from psd_json.layers import iter_layers
from psd_json.payloads import ImageData

from .utils import BLUE, RED, find_node

logger = logging.getLogger(__name__)


def test_read_psd(sample_psd):
    tree = read_psd(sample_psd)
    assert (tree["width"], tree["height"]) == (16, 12)
    assert tree["colorMode"] == "RGB"
    assert tree["depth"] == 8
    assert [node["name"] for node in tree["children"]] == ["Group", "Blue"]

    group = tree["children"][0]
    assert [node["name"] for node in group["children"]] == ["Red"]
    assert "canvas" not in group

    red = group["children"][0]
    assert (red["left"], red["top"], red["right"], red["bottom"]) == (2, 1, 10, 5)
    assert red["canvas"].mode == "RGBA"
    assert red["canvas"].size == (8, 4)
    assert red["canvas"].getpixel((0, 0)) == RED
    assert red["opacity"] == 255
    assert red["hidden"] is False

    blue = tree["children"][1]
    assert blue["canvas"].size == (4, 4)


def test_read_psd_ids(sample_psd):
    tree = read_psd(sample_psd)
    ids = [node["id"] for node in iter_layers(tree)]
    assert all(isinstance(i, int) for i in ids)
    assert len(set(ids)) == 3


def test_write_psd_round_trip(sample_psd, tmp_path):
    tree = read_psd(sample_psd)
    output = str(tmp_path / "output.psd")
    write_psd(tree, output)

    psd = PSDImage.open(output)
    assert psd.size == (16, 12)
    assert len(psd) == 2
    assert psd[0].is_group()
    assert psd[0].name == "Group"
    assert [layer.name for layer in psd[0]] == ["Red"]
    assert psd[1].name == "Blue"
    assert (psd[1].left, psd[1].top) == (10, 6)

    again = read_psd(output)
    red = find_node(again, "Red")
    assert red["canvas"].tobytes() == Image.new("RGBA", (8, 4), RED).tobytes()
    assert find_node(again, "Blue")["canvas"].getpixel((1, 1)) == BLUE


def test_write_psd_layer_fields(tmp_path):
    tree = {
        "width": 4,
        "height": 4,
        "children": [
            {
                "name": "Faded",
                "opacity": 100,
                "blendMode": "MULTIPLY",
                "hidden": True,
                "imageData": ImageData(2, 2, b"\x10\x20\x30\xff" * 4),
            },
            {"name": "Empty"},
            "not a layer",
        ],
    }
    output = str(tmp_path / "fields.psd")
    write_psd(tree, output)

    psd = PSDImage.open(output)
    assert len(psd) == 2
    faded = psd[0]
    assert faded.opacity == 100
    assert faded.blend_mode.name == "MULTIPLY"
    assert not faded.visible
    assert faded.size == (2, 2)
    assert psd[1].name == "Empty"


def test_write_psd_image_path(tmp_path):
    Image.new("RGBA", (3, 2), RED).save(str(tmp_path / "layer.png"))
    tree = {
        "width": 4,
        "height": 4,
        "children": [
            {"name": "Linked", "image": "layer.png"},
            {"name": "Missing", "image": "missing.png"},
        ],
    }
    output = os.path.join(str(tmp_path), "linked.psd")
    write_psd(tree, output, base_dir=str(tmp_path))

    psd = PSDImage.open(output)
    assert psd[0].size == (3, 2)
    assert psd[0].topil().convert("RGBA").getpixel((0, 0)) == RED
    assert psd[1].name == "Missing"
