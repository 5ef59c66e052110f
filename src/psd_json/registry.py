"""
Handler registries keyed by payload kind.

psd_json dispatches blob handling on :py:class:`~psd_json.constants.BlobKind`
and restores raw buffers by their recorded type name. Both go through a
registry created by :py:func:`new_registry`::

    from psd_json.registry import new_registry

    RESTORERS, register = new_registry(attribute='typedarray')

    @register('bytes')
    def restore_bytes(data):
        return bytes(data)

    value = RESTORERS['bytes'](b'...')
    assert restore_bytes.typedarray == 'bytes'
"""

from typing import Any, Callable, Tuple, TypeVar, Union

T = TypeVar("T")


def new_registry(attribute: Union[str, None] = None) -> Tuple[dict, Callable]:
    """
    Create an empty registry and its ``@register`` decorator.

    :param attribute: name of the attribute that receives the key on every
        registered handler, or `None`.
    :raise ValueError: from the decorator when a key is registered twice.
    :return: tuple of `(registry, register)`.
    """
    registry: dict = {}

    def register(key: Any) -> Callable[[Callable[..., T]], Callable[..., T]]:
        if key in registry:
            raise ValueError("Handler for %r is already registered" % (key,))

        def decorator(func: Callable[..., T]) -> Callable[..., T]:
            registry[key] = func
            if attribute:
                setattr(func, attribute, key)
            return func

        return decorator

    return registry, register
