"""
Container file: metadata plus the JSON-safe layer tree.

A container is a UTF-8 JSON object::

    {
        "__meta": {
            "tool": "psd-json",
            "version": "0.1.0",
            "createdAt": "2024-01-01T00:00:00+00:00",
            "inputFileName": "example.psd",
            "inputSize": 12345,
            "assetsDir": "images",
            "psdCanonicalSha256": "..."
        },
        "psd": {...}
    }

``assetsDir`` is relative to the directory of the container file.
``psdCanonicalSha256`` is the canonical digest of ``psd``; checking it is
advisory, see :py:meth:`Container.verify`.
"""
import json
import logging
from collections.abc import Mapping
from typing import Any, Optional, Union

from attrs import define, field

from psd_json.canonical import canonical_digest
from psd_json.constants import META_KEY, TOOL_NAME, TREE_KEY
from psd_json.exceptions import InputFormatError
from psd_json.version import __version__

logger = logging.getLogger(__name__)

# Attribute name and JSON key of each known metadata field.
_META_FIELDS = (
    ("tool", "tool"),
    ("version", "version"),
    ("created_at", "createdAt"),
    ("input_file_name", "inputFileName"),
    ("input_size", "inputSize"),
    ("assets_dir", "assetsDir"),
    ("canonical_digest", "psdCanonicalSha256"),
)


def dump_json(path: str, data: Any) -> None:
    """Write `data` as indented UTF-8 JSON."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


@define
class ContainerMeta:
    """
    Container metadata. Unknown keys read from a file are kept in
    :py:attr:`extra` and written back unchanged.
    """

    tool: str = TOOL_NAME
    version: str = __version__
    created_at: Optional[str] = None
    input_file_name: Optional[str] = None
    input_size: Optional[int] = None
    assets_dir: Optional[str] = None
    canonical_digest: Optional[str] = None
    extra: dict = field(factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping) -> "ContainerMeta":
        known = dict(_META_FIELDS)
        keys = set(known.values())
        kwargs = {name: data[key] for name, key in known.items() if key in data}
        extra = {key: value for key, value in data.items() if key not in keys}
        return cls(extra=extra, **kwargs)

    def to_dict(self) -> dict:
        data = {}
        for name, key in _META_FIELDS:
            value = getattr(self, name)
            if value is not None:
                data[key] = value
        data.update(self.extra)
        return data


@define
class Container:
    """
    JSON-safe layer tree with its metadata.

    Example::

        container = Container.load('result/example.json')
        if not container.verify():
            print('tree was edited by hand')
    """

    tree: Any
    meta: ContainerMeta = field(factory=ContainerMeta)

    @classmethod
    def fromdict(cls, data: Any) -> "Container":
        """
        :raise InputFormatError: if `data` is not an object with a tree.
        """
        if not isinstance(data, Mapping):
            raise InputFormatError("Invalid container JSON")
        tree = data.get(TREE_KEY)
        if tree is None:
            raise InputFormatError('JSON does not contain field "%s"' % TREE_KEY)
        meta = data.get(META_KEY)
        if meta is None:
            meta = {}
        if not isinstance(meta, Mapping):
            raise InputFormatError('Invalid container field "%s"' % META_KEY)
        return cls(tree=tree, meta=ContainerMeta.from_dict(meta))

    @classmethod
    def loads(cls, text: Union[str, bytes]) -> "Container":
        try:
            data = json.loads(text)
        except ValueError as e:
            raise InputFormatError("Invalid container JSON: %s" % e) from e
        return cls.fromdict(data)

    @classmethod
    def load(cls, path: str) -> "Container":
        """Read a container file."""
        with open(path, "r", encoding="utf-8") as f:
            return cls.loads(f.read())

    def todict(self) -> dict:
        return {META_KEY: self.meta.to_dict(), TREE_KEY: self.tree}

    def save(self, path: str) -> None:
        """Write the container file."""
        dump_json(path, self.todict())

    def compute_digest(self) -> str:
        return canonical_digest(self.tree)

    def update_digest(self) -> str:
        """Recompute and store the canonical digest of the tree."""
        self.meta.canonical_digest = self.compute_digest()
        return self.meta.canonical_digest

    def verify(self) -> bool:
        """
        Check the stored canonical digest against the tree.

        A mismatch is logged, not raised; callers decide whether it matters.
        """
        expected = self.meta.canonical_digest
        if not expected:
            logger.warning("Container has no canonical digest")
            return False
        actual = self.compute_digest()
        if actual != expected:
            logger.warning(
                "Canonical digest mismatch: expected %s, got %s", expected, actual
            )
            return False
        return True
