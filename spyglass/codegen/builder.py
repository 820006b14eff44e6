"""
Accessor builder.

Turns each annotated member into the static functions of its companion type:
getter, setter and clearer for fields, one invoker for methods.
"""

import builtins
from typing import Dict, Iterable, List, Optional

from ..logging_config import get_logger
from .core.config import GeneratorConfig
from .core.declarations import (
    AnnotatedMember,
    DeclarationError,
    MemberKind,
    Parameter,
    ParameterKind,
    TypeParam,
    Visibility,
)
from .core.model import AccessorKind, CompanionType, GeneratedAccessor, ReflectionCall
from .core.naming import (
    accessor_name,
    clearer_name,
    mangled_name,
    referenced_names,
    synthetic_instance_type_param,
)

logger = get_logger(__name__)

# Names the generated module defines for itself
GENERATED_MODULE_NAMES = {"_typing", "_reflection", "_UNSET", "annotations"}


class AccessorBuilder:
    """Builds the accessors of one companion type."""

    def __init__(self, visibility: Visibility, config: Optional[GeneratorConfig] = None):
        """
        Initialize the builder.

        Args:
            visibility: Visibility applied to every accessor of the group
            config: Generator configuration
        """
        if visibility == Visibility.PRIVATE:
            raise ValueError("Accessors are never generated for private types")

        self.visibility = visibility
        self.config = config or GeneratorConfig()
        self._instance_type: Optional[TypeParam] = None
        # Type parameters share one module-level declaration per name
        self._type_params: Dict[str, TypeParam] = {}

    def begin(self, companion: CompanionType, members: Iterable[AnnotatedMember]) -> TypeParam:
        """
        Pick the synthetic instance type parameter shared by the companion.

        Its name avoids the type parameters and annotation names of every
        member of the group, so one declaration serves all accessors.
        """
        members = list(members)
        taken = set(GENERATED_MODULE_NAMES) | {companion.name}
        member_type_params: List[TypeParam] = []
        for member in members:
            member_type_params.extend(member.type_params)
            taken |= referenced_names(member.declared_type)
            for param in member.parameters:
                taken |= referenced_names(param.annotation)
                taken |= referenced_names(param.default, forward_refs=False)
                taken.add(param.name)

        self._instance_type = synthetic_instance_type_param(
            companion.enclosing,
            member_type_params,
            taken=taken,
            base=self.config.instance_type_param,
        )
        logger.debug(
            "Instance type parameter of %s: %s", companion.name, self._instance_type.name
        )
        return self._instance_type

    def build(self, member: AnnotatedMember, companion: CompanionType) -> List[GeneratedAccessor]:
        """
        Append the accessors of ``member`` to ``companion``.

        Returns:
            The accessors added, possibly none for a field with every option off
        """
        if self._instance_type is None:
            self.begin(companion, [member])

        if member.kind == MemberKind.FIELD:
            accessors = self._field_accessors(member, companion)
        else:
            accessors = [self._method_invoker(member, companion)]

        for accessor in accessors:
            companion.add_accessor(accessor)

        if not accessors:
            logger.warning(
                "Field %s.%s is marked but every accessor is disabled",
                member.enclosing.full_name,
                member.name,
            )
        return accessors

    # Fields

    def _field_accessors(self, member: AnnotatedMember, companion: CompanionType) -> List[GeneratedAccessor]:
        self._require_annotations(member, companion, [member.declared_type])
        instance = self.config.instance_param
        field_name = repr(mangled_name(member.enclosing.name, member.name))
        accessors = []

        if member.getter:
            name = accessor_name(member.name)
            accessor = self._prepare(name, AccessorKind.GETTER, member, companion)
            accessor.call = ReflectionCall("get_field", [instance, field_name])
            accessor.return_type = member.declared_type
            accessors.append(accessor)

        if member.setter:
            name = accessor_name(member.name)
            accessor = self._prepare(name, AccessorKind.SETTER, member, companion)
            accessor.parameters.append(Parameter("value", member.declared_type))
            accessor.call = ReflectionCall("set_field", [instance, field_name, "value"])
            accessor.returns_instance = True
            accessors.append(accessor)

        if member.clearer:
            name = clearer_name(member.name, self.config.clearer_prefix)
            accessor = self._prepare(name, AccessorKind.CLEARER, member, companion)
            accessor.call = ReflectionCall("clear_field", [instance, field_name])
            accessor.returns_instance = True
            accessors.append(accessor)

        return accessors

    # Methods

    def _method_invoker(self, member: AnnotatedMember, companion: CompanionType) -> GeneratedAccessor:
        annotations = [member.declared_type] + [p.annotation for p in member.parameters]
        self._require_annotations(member, companion, annotations)
        self._require_defaults(member, companion)

        instance = self._instance_name(member)
        accessor = self._prepare(
            accessor_name(member.name), AccessorKind.INVOKER, member, companion, instance
        )
        accessor.type_params.extend(member.type_params)
        self._require_type_params(companion, member.type_params, member)
        accessor.parameters.extend(
            Parameter(p.name, p.annotation, p.default, p.kind) for p in member.parameters
        )
        if any(p.kind == ParameterKind.POSITIONAL_ONLY for p in member.parameters):
            accessor.instance_param.kind = ParameterKind.POSITIONAL_ONLY
        accessor.return_type = member.declared_type
        accessor.is_async = member.is_async

        arguments = [instance, repr(mangled_name(member.enclosing.name, member.name))]
        arguments.extend(_forwarded_argument(p) for p in member.parameters)
        accessor.call = ReflectionCall("invoke_method", arguments)
        return accessor

    # Shared preparation

    def _prepare(
        self,
        name: str,
        kind: AccessorKind,
        member: AnnotatedMember,
        companion: CompanionType,
        instance: Optional[str] = None,
    ) -> GeneratedAccessor:
        """Static function with the instance parameter and the class type parameters."""
        instance_type = self._instance_type
        enclosing = member.enclosing

        type_params = [instance_type] + list(enclosing.type_params)
        self._require_type_params(companion, type_params)
        companion.type_checking_names.add(enclosing.qualname.split(".")[0])

        return GeneratedAccessor(
            name=name,
            kind=kind,
            member_name=member.name,
            visibility=self.visibility,
            call=ReflectionCall(""),
            type_params=type_params,
            parameters=[Parameter(instance or self.config.instance_param, instance_type.name)],
            return_type=instance_type.name,
        )

    def _instance_name(self, member: AnnotatedMember) -> str:
        """Instance parameter name that no parameter of the method shadows."""
        name = self.config.instance_param
        taken = {p.name for p in member.parameters}
        while name in taken:
            name += "_"
        return name

    # Imports needed by the generated module

    def _require_annotations(
        self,
        member: AnnotatedMember,
        companion: CompanionType,
        annotations: Iterable[Optional[str]],
    ) -> None:
        bindings = member.enclosing.module.bindings
        for annotation in annotations:
            companion.type_checking_names |= referenced_names(annotation) & bindings

    def _require_type_params(
        self,
        companion: CompanionType,
        type_params: Iterable[TypeParam],
        member: Optional[AnnotatedMember] = None,
    ) -> None:
        bindings = companion.enclosing.module.bindings
        for param in type_params:
            known = self._type_params.setdefault(param.name, param)
            if known != param:
                owner = companion.enclosing.full_name
                if member is not None:
                    owner = f"{owner}.{member.name}"
                raise DeclarationError(
                    f"{owner}: type parameter {param.name!r} ({_describe(param)}) conflicts "
                    f"with another {param.name!r} of the class ({_describe(known)})"
                )
            if param.importable:
                companion.type_checking_names.add(param.name)
            else:
                companion.type_checking_names |= referenced_names(param.bound) & bindings

    def _require_defaults(self, member: AnnotatedMember, companion: CompanionType) -> None:
        bindings = member.enclosing.module.bindings
        for param in member.parameters:
            for name in sorted(referenced_names(param.default, forward_refs=False)):
                if name in bindings:
                    companion.runtime_names.add(name)
                elif not hasattr(builtins, name):
                    raise DeclarationError(
                        f"{member.enclosing.full_name}.{member.name}: default value of "
                        f"{param.name!r} uses {name!r}, which is not defined at module level"
                    )


def _describe(param: TypeParam) -> str:
    if param.constraints:
        return f"constrained to {', '.join(param.constraints)}"
    if param.bound:
        return f"bound to {param.bound}"
    return "unbound"


def _forwarded_argument(param: Parameter) -> str:
    """Expression passing a parameter on to the invoked method."""
    if param.kind == ParameterKind.VAR_POSITIONAL:
        return f"*{param.name}"
    if param.kind == ParameterKind.VAR_KEYWORD:
        return f"**{param.name}"
    if param.kind == ParameterKind.KEYWORD_ONLY:
        return f"{param.name}={param.name}"
    return param.name
