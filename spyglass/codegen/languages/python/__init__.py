"""
Python companion generator.

Renders companion types as Python modules of static accessors.
"""

from .generator import PythonCompanionGenerator, create_python_generator

__all__ = [
    "PythonCompanionGenerator",
    "create_python_generator",
]
