import json
import logging
import sys

import pytest

from psd_json.__main__ import main
from psd_json.container import Container

logger = logging.getLogger(__name__)


@pytest.mark.parametrize("argv", [["-h"], ["--version"], ["convert", "-h"], []])
def test_main_exit(argv):
    with pytest.raises(SystemExit):
        main(argv)
        sys.exit()


def test_main_convert(sample_psd, workdir, capsys):
    assert main(["convert", "sample.psd", "--assets-dir-name", "blobs"]) is None
    output = str(workdir / "result" / "sample.json")
    assert capsys.readouterr().out.strip() == output
    assert Container.load(output).meta.assets_dir == "blobs"

    assert main(["-v", "convert", output, "-o", "back.psd", "--verify"]) is None
    assert (workdir / "back.psd").exists()


def test_main_config(sample_psd, workdir):
    config = workdir / "custom.json"
    config.write_text('{"outputDir": "custom"}', encoding="utf-8")
    assert main(["--config", str(config), "convert", "sample.psd"]) is None
    assert (workdir / "custom" / "sample.json").exists()


def test_main_verify(sample_psd, workdir):
    main(["convert", "sample.psd", "-o", "sample.json"])
    assert main(["verify", "sample.json"]) is None

    container = Container.load("sample.json")
    container.tree["width"] = 1
    container.save("sample.json")
    assert main(["verify", "sample.json"]) == 1
    assert main(["convert", "sample.json", "--verify"]) == 1


def test_main_show(sample_psd, workdir, capsys):
    main(["convert", "sample.psd", "-o", "sample.json"])
    capsys.readouterr()
    assert main(["show", "sample.json"]) is None
    out = capsys.readouterr().out
    assert "Group" in out
    assert "Blue" in out


def test_main_patch(sample_psd, workdir):
    main(["convert", "sample.psd", "-o", "sample.json"])
    with open("sample.layers.json", encoding="utf-8") as f:
        layer_info = json.load(f)
    spec = {"id": layer_info[0]["id"], "name": "Patched"}
    (workdir / "spec.json").write_text(json.dumps(spec), encoding="utf-8")

    assert main(["patch", "sample.json", "sample.layers.json", "spec.json"]) is None
    assert Container.load("sample.json").tree["children"][0]["name"] == "Patched"


@pytest.mark.parametrize(
    "argv",
    [
        ["convert", "notes.txt"],
        ["convert", "missing.psd"],
        ["verify", "missing.json"],
        ["patch", "missing.json", "missing.layers.json", "spec.json"],
    ],
)
def test_main_errors(workdir, argv):
    (workdir / "notes.txt").write_text("hello", encoding="utf-8")
    (workdir / "spec.json").write_text("{broken", encoding="utf-8")
    assert main(argv) == 1
