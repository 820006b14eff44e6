"""
Markers flagging the members a companion type should expose.

Both markers are inert at runtime: the generator only reads them from source.

    class PublicType:
        _markers: Annotated[Dict[str, float], Testable()]

        @testable
        def _multiply_sum(self, multiplier: float, *values: float) -> float:
            ...
"""

from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

F = TypeVar("F", bound=Callable)


@dataclass(frozen=True)
class Testable:
    """Field marker, placed in ``Annotated`` metadata.

    Attributes:
        getter: Generate an accessor reading the field
        setter: Generate an accessor writing the field
        clearer: Generate an accessor resetting the field to None
    """

    getter: bool = True
    setter: bool = True
    clearer: bool = True


def testable(func: Optional[F] = None):
    """Method marker, usable as ``@testable`` or ``@testable()``."""
    if func is None:
        return lambda f: f
    return func
