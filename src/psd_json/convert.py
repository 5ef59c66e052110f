"""
File-level conversions between PSD documents and JSON containers.

Example::

    from psd_json import convert

    result = convert('example.psd', 'result/example.json')  # PSD -> JSON
    convert(result.abs_out, 'result/example.psd')           # JSON -> PSD

A PSD to JSON conversion writes three things: the container
(``example.json``), the blob directory (``images/`` next to it by default),
and the layer info projection (``example.layers.json``).
"""
import datetime
import logging
import os
from typing import Any, Mapping, Optional

from attrs import define

from psd_json import blobs, document
from psd_json.config import Config
from psd_json.constants import LAYERS_SUFFIX
from psd_json.container import Container, ContainerMeta, dump_json
from psd_json.exceptions import ChecksumMismatchError, InputFormatError
from psd_json.layers import build_layer_info, merge_overrides
from psd_json.patch import apply_patch

logger = logging.getLogger(__name__)


@define
class ConvertResult:
    """.. py:attribute:: abs_out

    Absolute path of the written file.
    """

    abs_out: str


@define
class UpdateResult:
    abs_out: str
    layers_abs_out: str


def layers_path_for(container_path: str) -> str:
    """Path of the layer info file that belongs to a container."""
    root, _ = os.path.splitext(container_path)
    return root + LAYERS_SUFFIX


def _resolve_dir(path: str, base_dir: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.abspath(os.path.join(base_dir, path))


def _relpath(path: str, start: str) -> str:
    return os.path.relpath(path, start).replace(os.sep, "/") or "."


def psd_to_json(
    input_path: str,
    output: Optional[str] = None,
    *,
    config: Optional[Config] = None,
    assets_dir: Optional[str] = None,
) -> ConvertResult:
    """
    Convert a PSD file to a JSON container plus PNG blobs.

    :param input_path: PSD file path.
    :param output: container path; default is
        ``<config.output_dir>/<input basename>.json``.
    :param config: :py:class:`~psd_json.config.Config`, default settings
        when omitted.
    :param assets_dir: blob directory, absolute or relative to the
        container's directory; default is ``config.assets_dir_name`` next
        to the container.
    :return: :py:class:`ConvertResult`
    """
    config = config or Config()
    abs_in = os.path.abspath(input_path)
    base_name = os.path.splitext(os.path.basename(abs_in))[0]
    if output:
        abs_out = os.path.abspath(output)
    else:
        abs_out = os.path.abspath(os.path.join(config.output_dir, base_name + ".json"))
    out_dir = os.path.dirname(abs_out)
    images_dir = _resolve_dir(assets_dir or config.assets_dir_name, out_dir)

    tree = document.read_psd(abs_in)
    os.makedirs(out_dir, exist_ok=True)
    meta = ContainerMeta(
        created_at=datetime.datetime.now(datetime.timezone.utc).isoformat(),
        input_file_name=os.path.basename(abs_in),
        input_size=os.path.getsize(abs_in),
        assets_dir=_relpath(images_dir, out_dir),
    )
    container = Container(tree=blobs.externalize(tree, images_dir), meta=meta)
    container.update_digest()
    container.save(abs_out)
    logger.info("Wrote %s", abs_out)

    # The layer info file is secondary; failing to write it keeps the container.
    layers_out = layers_path_for(abs_out)
    try:
        dump_json(layers_out, build_layer_info(container.tree, meta.assets_dir))
    except Exception as e:
        logger.warning("Failed to write layer info %s: %s", layers_out, e)
    return ConvertResult(abs_out)


def json_to_psd(
    input_path: str,
    output: Optional[str] = None,
    *,
    config: Optional[Config] = None,
    assets_dir: Optional[str] = None,
    verify: bool = False,
) -> ConvertResult:
    """
    Convert a JSON container back to a PSD file.

    :param input_path: container path.
    :param output: PSD path; default is
        ``<config.output_dir>/<input basename>.psd``.
    :param config: :py:class:`~psd_json.config.Config`.
    :param assets_dir: blob directory, absolute or relative to the
        container's directory. Takes precedence over ``assetsDir`` in the
        container metadata, which takes precedence over
        ``config.assets_dir_name``.
    :param verify: raise instead of logging when the canonical digest does
        not match the tree.
    :raise InputFormatError: if the container is malformed.
    :raise ChecksumMismatchError: on a blob digest mismatch, or on a canonical
        digest mismatch when `verify` is set.
    :raise DimensionMismatchError: if a blob's size differs from its record.
    :return: :py:class:`ConvertResult`
    """
    config = config or Config()
    abs_in = os.path.abspath(input_path)
    container = Container.load(abs_in)
    base_name = os.path.splitext(os.path.basename(abs_in))[0]
    if output:
        abs_out = os.path.abspath(output)
    else:
        abs_out = os.path.abspath(os.path.join(config.output_dir, base_name + ".psd"))
    json_dir = os.path.dirname(abs_in)
    images_dir = _resolve_dir(
        assets_dir or container.meta.assets_dir or config.assets_dir_name, json_dir
    )

    if not container.verify() and verify:
        raise ChecksumMismatchError("Canonical digest mismatch for %s" % abs_in)

    tree = blobs.hydrate(container.tree, images_dir)
    os.makedirs(os.path.dirname(abs_out), exist_ok=True)
    document.write_psd(tree, abs_out, base_dir=json_dir)
    logger.info("Wrote %s", abs_out)
    return ConvertResult(abs_out)


def convert(
    input_path: str,
    output: Optional[str] = None,
    *,
    config: Optional[Config] = None,
    assets_dir: Optional[str] = None,
    verify: bool = False,
) -> ConvertResult:
    """
    Convert a ``.psd`` file to JSON or a ``.json`` container to PSD.

    The input is looked up as given, then inside ``images/`` (the configured
    assets directory name) and the configured output directory.

    :raise InputFormatError: for any other file extension.
    """
    config = config or Config()
    candidates = [
        os.path.abspath(input_path),
        os.path.abspath(os.path.join(config.assets_dir_name, input_path)),
        os.path.abspath(os.path.join(config.output_dir, input_path)),
    ]
    abs_in = next((path for path in candidates if os.path.exists(path)), candidates[0])
    ext = os.path.splitext(abs_in)[1].lower()
    if ext == ".psd":
        return psd_to_json(abs_in, output, config=config, assets_dir=assets_dir)
    if ext == ".json":
        return json_to_psd(
            abs_in, output, config=config, assets_dir=assets_dir, verify=verify
        )
    raise InputFormatError("Unsupported input %s. Provide .psd or .json" % input_path)


def update_layers_with_spec(
    container_path: str, layers_path: str, spec: Mapping[str, Any]
) -> UpdateResult:
    """
    Patch the layer tree of a container and rewrite its layer info file.

    The container is rewritten with a fresh canonical digest; the layer
    info is regenerated from the patched tree with the patch spec's ``type``,
    ``image`` and ``name`` fields applied on top. Nothing is written when the
    patch fails.

    :param container_path: container path, e.g. ``result/example.json``.
    :param layers_path: layer info path, e.g. ``result/example.layers.json``.
    :param spec: patch spec, see :py:mod:`psd_json.patch`.
    :return: :py:class:`UpdateResult`
    """
    abs_container = os.path.abspath(container_path)
    abs_layers = os.path.abspath(layers_path)
    container = Container.load(abs_container)

    result = apply_patch(container.tree, spec)
    logger.info(
        "Patched layer %s, created %d layers", spec.get("id"), len(result.created)
    )
    container.update_digest()
    container.save(abs_container)

    layer_info = build_layer_info(container.tree, container.meta.assets_dir or ".")
    dump_json(abs_layers, merge_overrides(layer_info, result.overrides))
    return UpdateResult(abs_container, abs_layers)
