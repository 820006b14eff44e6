"""
Spyglass: testable companions for non-public class members.

Mark fields with ``Annotated[T, Testable()]`` and methods with ``@testable``;
``spyglass generate`` then writes a ``Testable<Class>`` module of static
accessors tests can call instead of reaching into the class.
"""

from .markers import Testable, testable
from .codegen.processor import generate

__version__ = "0.1.0"

__all__ = ["Testable", "testable", "generate", "__version__"]
