"""
Attribute access that ignores naming conventions.

Generated companion types call these four functions with the name a member is
stored under. Private names arrive already mangled for the class declaring
them (``_Vault__secret``), so a subclass instance reaches the field its base
class code uses, never a same-named field of the subclass.
"""

from typing import Any

from .logging_config import get_logger

logger = get_logger(__name__)


class ReflectionError(AttributeError):
    """Raised when a member cannot be found on an instance."""

    pass


def _lookup(instance: Any, name: str) -> Any:
    try:
        return getattr(instance, name)
    except AttributeError as e:
        raise ReflectionError(
            f"{type(instance).__name__} has no member named {name!r}"
        ) from e


def get_field(instance: Any, name: str) -> Any:
    """Read the field ``name`` of ``instance``."""
    return _lookup(instance, name)


def set_field(instance: Any, name: str, value: Any) -> None:
    """Write ``value`` into the field ``name`` of ``instance``.

    The field does not need to exist yet: annotated fields without a
    class-level default have no attribute until first assigned.
    """
    logger.debug("Setting %s.%s", type(instance).__name__, name)
    setattr(instance, name, value)


def clear_field(instance: Any, name: str) -> None:
    """Reset the field ``name`` of ``instance`` to None."""
    set_field(instance, name, None)


def invoke_method(instance: Any, name: str, *args: Any, **kwargs: Any) -> Any:
    """Call the method ``name`` of ``instance`` with the given arguments."""
    method = _lookup(instance, name)
    if not callable(method):
        raise ReflectionError(
            f"Member {name!r} of {type(instance).__name__} is not callable"
        )
    return method(*args, **kwargs)
