"""
Python companion generator implementation.

Renders a companion model as a Python module holding one non-instantiable
class of static accessors.
"""

import ast
from typing import Any, Dict, List, Optional
from pathlib import Path
from ...core.config import GeneratorConfig
from ...core.declarations import Parameter, ParameterKind, TypeParam, Visibility
from ...core.generator import CodeGenerator, GeneratorError
from ...core.model import AccessorKind, CompanionType, GeneratedAccessor

ANY_TYPE = "_typing.Any"
UNSET = "_UNSET"


class PythonCompanionGenerator(CodeGenerator):
    """Code generator for Python companion modules."""

    def __init__(self, config: Optional[GeneratorConfig] = None):
        """Initialize Python generator with configuration."""
        super().__init__(config)
        self.indent = " " * self.config.indent_size

    @property
    def file_extension(self) -> str:
        """Return Python file extension."""
        return ".py"

    def get_template_directory(self) -> Path:
        """Return the Python templates directory."""
        return Path(__file__).parent / "templates"

    def generate(self, companion: CompanionType) -> str:
        """Generate the module source of one companion."""
        methods = [
            self._method_data(name, accessors, companion)
            for name, accessors in companion.accessor_groups().items()
        ]

        context = {
            "header": f"Generated by spyglass from {companion.source_module}. Do not edit.",
            "reflection_module": self.config.reflection_module,
            "source_module": companion.source_module,
            "runtime_imports": sorted(companion.runtime_names),
            "type_checking_imports": sorted(companion.type_checking_names),
            "type_variables": [
                self._type_variable_declaration(p)
                for p in companion.type_params()
                if not p.importable
            ],
            "needs_unset": any(m["overloads"] for m in methods),
            "exports": [companion.name] if companion.visibility == Visibility.PUBLIC else [],
            "name": companion.name,
            "docstring": self._docstring(companion),
            "indent": self.indent,
            "methods": methods,
        }

        return self.render_template("companion.py.j2", context)

    def check_syntax(self, code: str, companion: CompanionType) -> None:
        """Reject companions whose source does not parse."""
        try:
            ast.parse(code, filename=f"<{companion.name}>")
        except SyntaxError as e:
            raise GeneratorError(
                f"Generated source for {companion.name} is invalid at line {e.lineno}: {e.msg}"
            ) from e

    def _docstring(self, companion: CompanionType) -> Optional[str]:
        if not self.config.add_comments:
            return None
        return (
            f"Static accessors for the non-public members of "
            f"``{companion.enclosing.full_name}``."
        )

    def _method_data(
        self,
        name: str,
        accessors: List[GeneratedAccessor],
        companion: CompanionType,
    ) -> Dict[str, Any]:
        """Template data for every accessor sharing one name."""
        if len(accessors) == 1:
            accessor = accessors[0]
            return {
                "overloads": [],
                "definition": self._definition(accessor),
                "body": self._body(accessor),
            }

        kinds = sorted(a.kind.value for a in accessors)
        if kinds != [AccessorKind.GETTER.value, AccessorKind.SETTER.value]:
            members = ", ".join(sorted({a.member_name for a in accessors}))
            raise GeneratorError(
                f"Accessor name {name!r} of {companion.name} is generated "
                f"more than once (members: {members})"
            )

        # Python has no overloading: one implementation dispatches on "value"
        getter = next(a for a in accessors if a.kind == AccessorKind.GETTER)
        setter = next(a for a in accessors if a.kind == AccessorKind.SETTER)
        instance = getter.instance_param.name
        return {
            "overloads": [self._definition(getter), self._definition(setter)],
            "definition": f"def {name}({instance}, value={UNSET})",
            "body": [
                f"if value is {UNSET}:",
                f"{self.indent}return {self._call(getter)}",
                self._call(setter),
                f"return {instance}",
            ],
        }

    def _definition(self, accessor: GeneratedAccessor) -> str:
        prefix = "async def" if accessor.is_async else "def"
        parameters = self._render_parameters(accessor.parameters)
        return_type = accessor.return_type or ANY_TYPE
        return f"{prefix} {accessor.name}({parameters}) -> {return_type}"

    def _body(self, accessor: GeneratedAccessor) -> List[str]:
        call = self._call(accessor)
        if accessor.returns_instance:
            return [call, f"return {accessor.instance_param.name}"]
        if accessor.is_async:
            return [f"return await {call}"]
        return [f"return {call}"]

    def _call(self, accessor: GeneratedAccessor) -> str:
        arguments = ", ".join(accessor.call.arguments)
        return f"_reflection.{accessor.call.operation}({arguments})"

    def _render_parameters(self, parameters: List[Parameter]) -> str:
        """Parameter list with the ``/`` and ``*`` separators Python needs."""
        parts: List[str] = []
        positional_only = False
        star_seen = False

        for param in parameters:
            if param.kind == ParameterKind.POSITIONAL_ONLY:
                positional_only = True
            elif positional_only:
                parts.append("/")
                positional_only = False

            if param.kind == ParameterKind.VAR_POSITIONAL:
                star_seen = True
            elif param.kind == ParameterKind.KEYWORD_ONLY and not star_seen:
                parts.append("*")
                star_seen = True

            parts.append(self._render_parameter(param))

        if positional_only:
            parts.append("/")
        return ", ".join(parts)

    def _render_parameter(self, param: Parameter) -> str:
        prefix = {
            ParameterKind.VAR_POSITIONAL: "*",
            ParameterKind.VAR_KEYWORD: "**",
        }.get(param.kind, "")

        text = f"{prefix}{param.name}"
        if param.annotation:
            text += f": {param.annotation}"
        if param.default is not None:
            text += f" = {param.default}" if param.annotation else f"={param.default}"
        return text

    def _type_variable_declaration(self, param: TypeParam) -> str:
        arguments = [repr(param.name)] + list(param.constraints)
        if param.bound:
            arguments.append(f"bound={param.bound}")
        return f"{param.name} = _typing.{param.factory}({', '.join(arguments)})"


def create_python_generator(config: Optional[GeneratorConfig] = None) -> PythonCompanionGenerator:
    """Create a Python companion generator."""
    return PythonCompanionGenerator(config)
