"""
Conversion defaults.

:py:class:`Config` is an immutable value passed explicitly to the conversion
functions. It can be read from ``psdjson.config.json``::

    {"outputDir": "result", "assetsDirName": "images"}
"""
import json
import logging
import os
from typing import Any, Optional

from attrs import define, evolve

from psd_json.constants import CONFIG_FILENAME
from psd_json.exceptions import InputFormatError

logger = logging.getLogger(__name__)

# Attribute name and JSON key of each setting.
_FIELDS = (
    ("output_dir", "outputDir"),
    ("assets_dir_name", "assetsDirName"),
)


@define(frozen=True)
class Config:
    """
    .. py:attribute:: output_dir

        Directory for outputs when no explicit output path is given.

    .. py:attribute:: assets_dir_name

        Name of the blob directory created next to a container.
    """

    output_dir: str = "result"
    assets_dir_name: str = "images"

    @classmethod
    def load(cls, path: str) -> "Config":
        """
        Read settings from a JSON file. Only string values are used; other
        keys are ignored.

        :raise InputFormatError: if the file is not a JSON object.
        """
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except ValueError as e:
                raise InputFormatError("Invalid config %s: %s" % (path, e)) from e
        if not isinstance(data, dict):
            raise InputFormatError("Invalid config %s: expected an object" % path)
        kwargs = {
            name: data[key]
            for name, key in _FIELDS
            if isinstance(data.get(key), str)
        }
        logger.debug("Loaded config from %s", path)
        return cls(**kwargs)

    @classmethod
    def auto(cls, directory: Optional[str] = None) -> "Config":
        """Load ``psdjson.config.json`` from `directory` (default: cwd) if present."""
        path = os.path.join(directory or os.getcwd(), CONFIG_FILENAME)
        if os.path.exists(path):
            return cls.load(path)
        return cls()

    def evolve(self, **changes: Any) -> "Config":
        """Copy with some settings changed; `None` values are ignored."""
        return evolve(self, **{k: v for k, v in changes.items() if v is not None})
