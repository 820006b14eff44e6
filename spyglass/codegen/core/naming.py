"""
Naming utilities for companion generation.

Derives companion, accessor and file names, the attribute names private
members are stored under, and conflict-free type parameter names.
"""

import ast
import builtins
import keyword
import re
from typing import Iterable, Optional, Set

from .declarations import EnclosingType, TypeParam, Visibility


DEFAULT_COMPANION_PREFIX = "Testable"
DEFAULT_CLEARER_PREFIX = "clear"
DEFAULT_INSTANCE_TYPE_PARAM = "INSTANCE"


class NameSanitizer:
    """Handles name cleanup and conflict resolution."""

    def __init__(self, reserved_words: Set[str] = None, builtin_types: Set[str] = None):
        """
        Initialize name sanitizer.

        Args:
            reserved_words: Set of language reserved words
            builtin_types: Set of builtin type names that might conflict
        """
        self.reserved_words = reserved_words or set()
        self.builtin_types = builtin_types or set()
        self._used_names: Set[str] = set()

    def to_snake_case(self, name: str) -> str:
        """Clean up and convert a name to snake_case, without conflict tracking."""
        # Insert underscore before uppercase letters
        name = re.sub(r'([a-z0-9])([A-Z])', r'\1_\2', self._clean_basic(name))

        # Convert to lowercase and clean up multiple underscores
        name = name.lower()
        name = re.sub(r'_+', '_', name)

        return name.strip('_')

    def unique_name(self, name: str) -> str:
        """Return ``name`` or a suffixed variant not used yet, and reserve it."""
        final_name = self._resolve_conflicts(name)
        self._used_names.add(final_name)
        return final_name

    def add_used_name(self, name: str):
        """Manually add a name to the used names set."""
        self._used_names.add(name)

    def _clean_basic(self, name: str) -> str:
        """Basic name cleanup - remove invalid characters."""
        # Remove non-alphanumeric chars except underscore
        cleaned = re.sub(r'[^a-zA-Z0-9_]', '_', name)

        # Remove leading/trailing underscores
        cleaned = cleaned.strip('_')

        # Ensure doesn't start with number
        if cleaned and cleaned[0].isdigit():
            cleaned = f"_{cleaned}"

        # Ensure not empty
        if not cleaned:
            cleaned = "name"

        return cleaned

    def _resolve_conflicts(self, name: str) -> str:
        """Resolve naming conflicts with reserved words and existing names."""
        original_name = name

        # Check reserved words and builtin types
        if name in self.reserved_words or name in self.builtin_types:
            name = f"{name}_"

        # Check for duplicates
        counter = 1
        while name in self._used_names:
            name = f"{original_name}_{counter}"
            counter += 1

        return name


def create_python_sanitizer() -> NameSanitizer:
    """Create a name sanitizer configured for Python."""
    python_reserved = set(keyword.kwlist) | set(getattr(keyword, "softkwlist", []))
    python_builtins = {name for name in dir(builtins) if not name.startswith("_")}
    return NameSanitizer(python_reserved, python_builtins)


# Companion and accessor names

def companion_name(enclosing_simple_name: str, prefix: str = DEFAULT_COMPANION_PREFIX) -> str:
    """Name of the companion type generated for a class."""
    return f"{prefix}{enclosing_simple_name}"


def capitalize(identifier: str) -> str:
    """Uppercase the first character only; ``_name`` is left unchanged."""
    if not identifier:
        raise ValueError("Cannot capitalize an empty identifier")
    return identifier[0].upper() + identifier[1:]


def accessor_name(member_name: str) -> str:
    """
    Name of the accessor for a member.

    ``__name`` would be mangled inside the companion class body, so it is
    exposed as ``_name``.
    """
    if member_name.startswith("__") and not member_name.endswith("__"):
        return member_name[1:]
    return member_name


def mangled_name(owner_name: str, member_name: str) -> str:
    """
    Attribute a member of class ``owner_name`` is stored under.

    ``__secret`` declared in ``Vault`` lives in ``_Vault__secret``, whatever
    the runtime type of the instance; other names are stored unchanged.
    """
    if not member_name.startswith("__") or member_name.endswith("__"):
        return member_name
    stripped = owner_name.lstrip("_")
    if not stripped:
        return member_name
    return f"_{stripped}{member_name}"


def clearer_name(field_name: str, prefix: str = DEFAULT_CLEARER_PREFIX) -> str:
    """Name of the accessor resetting a field: ``clearMarkers``, ``clear_markers``."""
    return f"{prefix}{capitalize(field_name)}"


def synthetic_instance_type_param(
    enclosing: EnclosingType,
    member_type_params: Iterable[TypeParam] = (),
    taken: Iterable[str] = (),
    base: str = DEFAULT_INSTANCE_TYPE_PARAM,
) -> TypeParam:
    """
    Type variable standing for the runtime type of the ``instance`` parameter.

    Args:
        enclosing: Class the type variable is bound to
        member_type_params: Type parameters declared by the member itself
        taken: Any other name the generated code already uses
        base: Preferred name

    Returns:
        A TypeParam whose name collides with none of the above
    """
    sanitizer = create_python_sanitizer()
    for name in taken:
        sanitizer.add_used_name(name)
    for param in list(enclosing.type_params) + list(member_type_params):
        sanitizer.add_used_name(param.name)

    return TypeParam(
        name=sanitizer.unique_name(base),
        bound=enclosing.qualname,
    )


def referenced_names(expression: Optional[str], forward_refs: bool = True) -> Set[str]:
    """
    Root names an expression depends on.

    With ``forward_refs``, string constants are parsed as annotations, so
    ``"List[PackageType]"`` yields ``{"List", "PackageType"}``.
    """
    if not expression:
        return set()

    try:
        tree = ast.parse(expression, mode="eval")
    except SyntaxError:
        return set()

    names: Set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Name):
            names.add(node.id)
        elif forward_refs and isinstance(node, ast.Constant) and isinstance(node.value, str):
            names |= referenced_names(node.value)
    return names


def module_file_name(name: str, visibility: Optional[Visibility] = None) -> str:
    """File stem of the module holding a companion type."""
    stem = NameSanitizer().to_snake_case(name)
    if visibility == Visibility.INTERNAL:
        return f"_{stem}"
    return stem
