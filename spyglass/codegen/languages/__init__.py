"""
Language-specific companion generators.
"""

from .python import PythonCompanionGenerator, create_python_generator

__all__ = [
    "PythonCompanionGenerator",
    "create_python_generator",
]
