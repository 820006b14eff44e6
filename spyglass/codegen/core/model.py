"""
In-memory representation of a companion type.

Built by the accessor builder, rendered by the source emitter. Nothing here
touches the file system.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set

from .declarations import EnclosingType, Parameter, TypeParam, Visibility


class AccessorKind(Enum):
    """What a generated accessor does."""

    GETTER = "getter"
    SETTER = "setter"
    CLEARER = "clearer"
    INVOKER = "invoker"


@dataclass
class ReflectionCall:
    """A call into the reflection-access utility."""

    operation: str
    arguments: List[str] = field(default_factory=list)


@dataclass
class GeneratedAccessor:
    """One static function of a companion type."""

    name: str
    kind: AccessorKind
    member_name: str
    visibility: Visibility
    call: ReflectionCall
    type_params: List[TypeParam] = field(default_factory=list)
    parameters: List[Parameter] = field(default_factory=list)
    return_type: Optional[str] = None
    returns_instance: bool = False
    is_async: bool = False

    @property
    def instance_param(self) -> Parameter:
        return self.parameters[0]


@dataclass
class CompanionType:
    """The generated type exposing the annotated members of one class."""

    name: str
    enclosing: EnclosingType
    visibility: Visibility
    accessors: List[GeneratedAccessor] = field(default_factory=list)

    # Names to import from the enclosing module, for type checkers or at runtime
    type_checking_names: Set[str] = field(default_factory=set)
    runtime_names: Set[str] = field(default_factory=set)

    @property
    def namespace(self) -> str:
        return self.enclosing.namespace

    @property
    def source_module(self) -> str:
        return self.enclosing.module.name

    def add_accessor(self, accessor: GeneratedAccessor) -> None:
        """Append an accessor, keeping discovery order."""
        self.accessors.append(accessor)

    def type_params(self) -> List[TypeParam]:
        """Every distinct type parameter used by the accessors, first seen first.

        The builder rejects two different parameters sharing a name, so one
        declaration per name serves every accessor.
        """
        seen: Dict[str, TypeParam] = {}
        for accessor in self.accessors:
            for param in accessor.type_params:
                seen.setdefault(param.name, param)
        return list(seen.values())

    def accessor_groups(self) -> Dict[str, List[GeneratedAccessor]]:
        """Accessors grouped by name, in order of first appearance."""
        groups: Dict[str, List[GeneratedAccessor]] = {}
        for accessor in self.accessors:
            groups.setdefault(accessor.name, []).append(accessor)
        return groups
