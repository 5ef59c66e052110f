import importlib
import json
import logging
import os
import shutil

import pytest
from psd_tools import PSDImage

from psd_json.config import Config
from psd_json.container import Container
from psd_json.convert import (
    convert,
    json_to_psd,
    layers_path_for,
    psd_to_json,
    update_layers_with_spec,
)
from psd_json.exceptions import (
    ChecksumMismatchError,
    InputFormatError,
    UnknownRootIdError,
)

from .utils import RED, blob_files, find_node

logger = logging.getLogger(__name__)

# The package exports the convert function under the same name as the module.
convert_module = importlib.import_module("psd_json.convert")


def load_json(path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def converted(sample_psd, tmp_path):
    return psd_to_json(sample_psd, str(tmp_path / "out" / "sample.json")).abs_out


def test_layers_path_for():
    assert layers_path_for("result/a.json") == "result/a.layers.json"
    assert layers_path_for("a") == "a.layers.json"


def test_psd_to_json(sample_psd, converted, tmp_path):
    out_dir = tmp_path / "out"
    assert converted == str(out_dir / "sample.json")

    container = Container.load(converted)
    meta = container.meta
    assert meta.tool == "psd-json"
    assert meta.input_file_name == "sample.psd"
    assert meta.input_size == os.path.getsize(sample_psd)
    assert meta.assets_dir == "images"
    assert meta.created_at
    assert container.verify()

    red = find_node(container.tree, "Red")
    assert red["canvas"]["__kind"] == "Canvas"
    assert (red["canvas"]["width"], red["canvas"]["height"]) == (8, 4)
    assert red["canvas"]["__image"] in blob_files(out_dir / "images")

    layer_info = load_json(str(out_dir / "sample.layers.json"))
    assert [layer["name"] for layer in layer_info] == ["Group", "Blue"]
    assert layer_info[0]["type"] == "group"
    red_info = layer_info[0]["children"][0]
    assert red_info["type"] == "pixel"
    assert red_info["image"] == "images/" + red["canvas"]["__image"]
    assert os.path.exists(str(out_dir / red_info["image"]))


def test_psd_to_json_default_output(sample_psd, workdir):
    result = convert("sample.psd")
    assert result.abs_out == str(workdir / "result" / "sample.json")
    assert os.path.exists(str(workdir / "result" / "sample.layers.json"))
    assert blob_files(workdir / "result" / "images")


def test_psd_to_json_config(sample_psd, workdir):
    config = Config(output_dir="build", assets_dir_name="blobs")
    result = psd_to_json(sample_psd, config=config)
    assert result.abs_out == str(workdir / "build" / "sample.json")
    assert Container.load(result.abs_out).meta.assets_dir == "blobs"
    assert blob_files(workdir / "build" / "blobs")


def test_psd_to_json_assets_dir(sample_psd, tmp_path):
    output = str(tmp_path / "out" / "sample.json")
    psd_to_json(sample_psd, output, assets_dir="../shared")
    assert Container.load(output).meta.assets_dir == "../shared"
    assert blob_files(tmp_path / "shared")
    layer_info = load_json(str(tmp_path / "out" / "sample.layers.json"))
    assert layer_info[1]["image"].startswith("../shared/")


def test_psd_to_json_layer_info_failure(sample_psd, tmp_path, monkeypatch, caplog):
    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(convert_module, "build_layer_info", broken)
    output = str(tmp_path / "sample.json")
    with caplog.at_level(logging.WARNING):
        psd_to_json(sample_psd, output)
    assert "Failed to write layer info" in caplog.text
    assert Container.load(output).verify()
    assert not os.path.exists(str(tmp_path / "sample.layers.json"))


def test_json_to_psd(converted, tmp_path):
    output = str(tmp_path / "back.psd")
    result = json_to_psd(converted, output)
    assert result.abs_out == output

    psd = PSDImage.open(output)
    assert psd.size == (16, 12)
    assert [layer.name for layer in psd] == ["Group", "Blue"]
    assert psd[0][0].topil().convert("RGBA").getpixel((0, 0)) == RED


def test_json_to_psd_moved_assets(converted, tmp_path):
    out_dir = tmp_path / "out"
    shutil.move(str(out_dir / "images"), str(tmp_path / "elsewhere"))
    with pytest.raises(OSError):
        json_to_psd(converted, str(tmp_path / "fail.psd"))

    output = str(tmp_path / "back.psd")
    json_to_psd(converted, output, assets_dir=str(tmp_path / "elsewhere"))
    assert len(PSDImage.open(output)) == 2


def test_json_to_psd_checksum(converted, tmp_path, caplog):
    container = Container.load(converted)
    find_node(container.tree, "Blue")["name"] = "Edited"
    container.save(converted)

    with caplog.at_level(logging.WARNING):
        json_to_psd(converted, str(tmp_path / "lenient.psd"))
    assert "Canonical digest mismatch" in caplog.text
    assert PSDImage.open(str(tmp_path / "lenient.psd"))[1].name == "Edited"

    with pytest.raises(ChecksumMismatchError):
        json_to_psd(converted, str(tmp_path / "strict.psd"), verify=True)
    assert not os.path.exists(str(tmp_path / "strict.psd"))


def test_json_to_psd_invalid(tmp_path):
    path = tmp_path / "invalid.json"
    path.write_text('{"__meta": {}}', encoding="utf-8")
    with pytest.raises(InputFormatError):
        json_to_psd(str(path), str(tmp_path / "invalid.psd"))


def test_convert_lookup(sample_psd, workdir):
    convert("sample.psd")
    result = convert("sample.json")
    assert result.abs_out == str(workdir / "result" / "sample.psd")
    assert len(PSDImage.open(result.abs_out)) == 2


def test_convert_unsupported(workdir):
    (workdir / "notes.txt").write_text("hello", encoding="utf-8")
    with pytest.raises(InputFormatError):
        convert("notes.txt")


def test_update_layers_with_spec(converted, tmp_path):
    layers_path = str(tmp_path / "out" / "sample.layers.json")
    layer_info = load_json(layers_path)
    group_id = layer_info[0]["id"]
    red_id = layer_info[0]["children"][0]["id"]
    blue_id = layer_info[1]["id"]

    spec = {
        "id": group_id,
        "name": "Renamed",
        "children": [
            {"id": red_id},
            {"id": blue_id, "type": "smartObject"},
            {"name": "Added", "type": "pixel", "image": "images/added.png"},
        ],
    }
    result = update_layers_with_spec(converted, layers_path, spec)
    assert result.abs_out == converted
    assert result.layers_abs_out == layers_path

    container = Container.load(converted)
    assert container.verify()
    group = container.tree["children"][0]
    assert group["name"] == "Renamed"
    assert [child["name"] for child in group["children"]] == ["Red", "Blue", "Added"]
    added = group["children"][2]
    assert added["id"] == max(group_id, red_id, blue_id) + 1

    layer_info = load_json(layers_path)
    children = layer_info[0]["children"]
    assert layer_info[0]["name"] == "Renamed"
    assert children[1]["type"] == "smartObject"
    assert children[2] == {
        "id": added["id"],
        "name": "Added",
        "type": "pixel",
        "image": "images/added.png",
    }


def test_update_layers_with_spec_failure(converted, tmp_path):
    layers_path = str(tmp_path / "out" / "sample.layers.json")
    with open(converted, "rb") as f:
        before = f.read()
    with open(layers_path, "rb") as f:
        layers_before = f.read()

    with pytest.raises(UnknownRootIdError):
        update_layers_with_spec(converted, layers_path, {"id": 999})

    with open(converted, "rb") as f:
        assert f.read() == before
    with open(layers_path, "rb") as f:
        assert f.read() == layers_before
