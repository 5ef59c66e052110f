"""
Exceptions raised by psd_json.

Every error the package raises on purpose derives from :py:class:`Error`, so
callers can catch the whole family at once. The concrete classes also derive
from the closest builtin (``ValueError`` or ``TypeError``).
"""


class Error(Exception):
    """Base class of psd_json errors."""


class InputFormatError(Error, ValueError):
    """Container, config or spec input is not in the expected shape."""


class DimensionMismatchError(Error, ValueError):
    """Decoded blob dimensions disagree with the recorded ones."""


class ChecksumMismatchError(Error, ValueError):
    """Recomputed digest disagrees with the recorded one."""


class UnsupportedPayloadError(Error, TypeError):
    """Value cannot be externalized or serialized."""


class PatchError(Error, ValueError):
    """Layer tree patch cannot be applied."""


class MissingRootIdError(PatchError):
    """The root of a patch spec has no id."""


class UnknownRootIdError(PatchError):
    """The root of a patch spec names an id that is not in the tree."""

    def __init__(self, layer_id):
        super().__init__("Layer id %r does not exist in the container" % (layer_id,))
        self.layer_id = layer_id


class CyclicPatchError(PatchError):
    """A patch would make a layer its own descendant."""
