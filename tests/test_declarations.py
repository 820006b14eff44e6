"""
Tests for the declaration scanner: markers read from source, never imported.
"""

import sys
import textwrap
from pathlib import Path

import pytest

from spyglass.codegen.core.config import GeneratorConfig
from spyglass.codegen.core.declarations import (
    DeclarationError,
    DeclarationScanner,
    MemberKind,
    ParameterKind,
    Visibility,
    class_visibility,
    iter_source_files,
    module_name_for,
    namespace_of,
    scan_source,
)


def _scan(source: str, module_name: str = "pkg.mod"):
    return scan_source(textwrap.dedent(source), module_name)


def _by_name(members):
    return {member.name: member for member in members}


# ═══════════════════════════════════════════════════════════════════
#  Module helpers
# ═══════════════════════════════════════════════════════════════════


class TestModuleNames:
    def test_module_name_for_nested_module(self, tmp_path: Path):
        path = tmp_path / "pkg" / "sub" / "mod.py"
        assert module_name_for(path, tmp_path) == "pkg.sub.mod"

    def test_module_name_for_package_init(self, tmp_path: Path):
        path = tmp_path / "pkg" / "__init__.py"
        assert module_name_for(path, tmp_path) == "pkg"

    def test_namespace_of_module(self):
        assert namespace_of("pkg.sub.mod") == "pkg.sub"

    def test_namespace_of_top_level_module(self):
        assert namespace_of("mod") == ""

    def test_namespace_of_package(self):
        assert namespace_of("pkg.sub", is_package=True) == "pkg.sub"


class TestClassVisibility:
    def test_public(self):
        assert class_visibility("PublicType", None, False) == Visibility.PUBLIC

    def test_single_underscore_is_internal(self):
        assert class_visibility("_Helper", None, False) == Visibility.INTERNAL

    def test_double_underscore_is_private(self):
        assert class_visibility("__Hidden", None, False) == Visibility.PRIVATE

    def test_defined_in_function_is_private(self):
        assert class_visibility("Local", None, True) == Visibility.PRIVATE

    def test_inherits_parent_restriction(self):
        assert class_visibility("Inner", Visibility.INTERNAL, False) == Visibility.INTERNAL
        assert class_visibility("Inner", Visibility.PRIVATE, False) == Visibility.PRIVATE


class TestIterSourceFiles:
    def test_sorted_and_filtered(self, tmp_path: Path):
        for relative in ("b.py", "a.py", "pkg/c.py", ".hidden/d.py", "__pycache__/e.py", "notes.txt"):
            path = tmp_path / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("", encoding="utf-8")

        found = [path.relative_to(tmp_path).as_posix() for path, _ in iter_source_files([tmp_path])]
        assert found == ["a.py", "b.py", "pkg/c.py"]

    def test_single_file_root_is_its_directory(self, tmp_path: Path):
        path = tmp_path / "mod.py"
        path.write_text("", encoding="utf-8")
        assert list(iter_source_files([path])) == [(path, tmp_path)]

    def test_single_file_in_package_uses_package_root(self, tmp_path: Path):
        package = tmp_path / "pkg" / "sub"
        package.mkdir(parents=True)
        for directory in (tmp_path / "pkg", package):
            (directory / "__init__.py").write_text("", encoding="utf-8")
        path = package / "mod.py"
        path.write_text("", encoding="utf-8")

        ((file, root),) = iter_source_files([path])
        assert root == tmp_path
        assert module_name_for(file, root) == "pkg.sub.mod"


# ═══════════════════════════════════════════════════════════════════
#  Scanning a module
# ═══════════════════════════════════════════════════════════════════


class TestScanSampleModule:
    def test_members_in_declaration_order(self, models_source):
        members = scan_source(models_source, "sample_pkg.models")
        assert [m.name for m in members] == [
            "name",
            "markers",
            "multiply_sum",
            "_double",
            "secret",
        ]

    def test_enclosing_types(self, models_source):
        members = _by_name(scan_source(models_source, "sample_pkg.models"))

        public = members["markers"].enclosing
        assert public.name == "PublicType"
        assert public.visibility == Visibility.PUBLIC
        assert public.namespace == "sample_pkg"
        assert public.full_name == "sample_pkg.models.PublicType"

        assert members["_double"].enclosing.visibility == Visibility.INTERNAL
        assert members["secret"].enclosing.visibility == Visibility.PRIVATE

    def test_members_of_one_class_share_the_enclosing_object(self, models_source):
        members = _by_name(scan_source(models_source, "sample_pkg.models"))
        assert members["name"].enclosing is members["multiply_sum"].enclosing
        assert members["name"].enclosing is not members["_double"].enclosing

    def test_field_in_class_body(self, models_source):
        name = _by_name(scan_source(models_source, "sample_pkg.models"))["name"]
        assert name.kind == MemberKind.FIELD
        assert name.declared_type == "str"
        assert (name.getter, name.setter, name.clearer) == (True, False, False)

    def test_field_declared_in_init(self, models_source):
        markers = _by_name(scan_source(models_source, "sample_pkg.models"))["markers"]
        assert markers.kind == MemberKind.FIELD
        assert markers.declared_type == "Dict[str, float]"
        assert (markers.getter, markers.setter, markers.clearer) == (True, True, True)

    def test_method_signature(self, models_source):
        method = _by_name(scan_source(models_source, "sample_pkg.models"))["multiply_sum"]
        assert method.kind == MemberKind.METHOD
        assert method.declared_type == "float"
        assert [(p.name, p.annotation, p.kind) for p in method.parameters] == [
            ("multiplier", "float", ParameterKind.POSITIONAL_OR_KEYWORD),
            ("values", "Optional[float]", ParameterKind.VAR_POSITIONAL),
        ]
        assert method.is_async is False

    def test_module_bindings(self, models_source):
        members = scan_source(models_source, "sample_pkg.models")
        bindings = members[0].enclosing.module.bindings
        assert {"Annotated", "Dict", "Optional", "PublicType", "Plain"} <= bindings


class TestMarkerResolution:
    def test_no_marker_import_finds_nothing(self):
        members = _scan(
            """
            from typing import Annotated
            from elsewhere import Testable, testable

            class Thing:
                value: Annotated[int, Testable()]

                @testable
                def run(self) -> None: ...
            """
        )
        assert members == []

    def test_module_alias(self):
        members = _scan(
            """
            from typing import Annotated
            import spyglass as sg

            class Thing:
                value: Annotated[int, sg.Testable()]

                @sg.testable
                def run(self) -> None: ...
            """
        )
        assert [m.name for m in members] == ["value", "run"]

    def test_dotted_module_import(self):
        members = _scan(
            """
            import typing
            import spyglass.markers

            class Thing:
                value: typing.Annotated[int, spyglass.markers.Testable()]
            """
        )
        assert [m.name for m in members] == ["value"]

    def test_renamed_markers(self):
        members = _scan(
            """
            from typing import Annotated
            from spyglass.markers import Testable as Exposed, testable as exposed

            class Thing:
                value: Annotated[int, Exposed(setter=False)]

                @exposed()
                def run(self) -> None: ...
            """
        )
        value, run = members
        assert value.setter is False
        assert run.kind == MemberKind.METHOD

    def test_custom_marker_module(self):
        source = textwrap.dedent(
            """
            from typing import Annotated
            from myproject.testing import Testable

            class Thing:
                value: Annotated[int, Testable()]
            """
        )
        config = GeneratorConfig(marker_modules=["myproject.testing"])
        members = scan_source(source, "pkg.mod", config=config)
        assert [m.name for m in members] == ["value"]

    def test_other_annotated_metadata_is_ignored(self):
        members = _scan(
            """
            from typing import Annotated
            from spyglass import Testable

            class Thing:
                plain: Annotated[int, "doc"]
                marked: Annotated[int, "doc", Testable()]
            """
        )
        assert [m.name for m in members] == ["marked"]

    def test_field_declared_twice_is_reported_once(self):
        members = _scan(
            """
            from typing import Annotated
            from spyglass import Testable

            class Thing:
                value: Annotated[int, Testable()]

                def __init__(self) -> None:
                    self.value: Annotated[int, Testable()] = 0
            """
        )
        assert [m.name for m in members] == ["value"]


class TestMarkerOptions:
    def test_positional_options(self):
        (member,) = _scan(
            """
            from typing import Annotated
            from spyglass import Testable

            class Thing:
                value: Annotated[int, Testable(True, False)]
            """
        )
        assert (member.getter, member.setter, member.clearer) == (True, False, True)

    def test_non_literal_option_is_rejected(self):
        with pytest.raises(DeclarationError, match="literal True or False"):
            _scan(
                """
                from typing import Annotated
                from spyglass import Testable

                FLAG = False

                class Thing:
                    value: Annotated[int, Testable(getter=FLAG)]
                """
            )

    def test_unknown_option_is_rejected(self):
        with pytest.raises(DeclarationError, match="unknown marker option"):
            _scan(
                """
                from typing import Annotated
                from spyglass import Testable

                class Thing:
                    value: Annotated[int, Testable(deleter=True)]
                """
            )


class TestClassStructure:
    def test_nested_class(self):
        (member,) = _scan(
            """
            from typing import Annotated
            from spyglass import Testable

            class _Outer:
                class Inner:
                    value: Annotated[int, Testable()]
            """
        )
        assert member.enclosing.qualname == "_Outer.Inner"
        assert member.enclosing.name == "Inner"
        assert member.enclosing.visibility == Visibility.INTERNAL

    def test_class_in_function_is_private(self):
        (member,) = _scan(
            """
            from typing import Annotated
            from spyglass import Testable

            def factory():
                class Local:
                    value: Annotated[int, Testable()]
                return Local
            """
        )
        assert member.enclosing.qualname == "factory.<locals>.Local"
        assert member.enclosing.visibility == Visibility.PRIVATE

    def test_instance_fields_of_nested_scopes_stay_there(self):
        members = _scan(
            """
            from typing import Annotated
            from spyglass import Testable

            class Outer:
                def build(self):
                    class Inner:
                        def __init__(self):
                            self.value: Annotated[int, Testable()] = 1

                    def helper(self):
                        self.other: Annotated[int, Testable()] = 2

                    handler = lambda self: None
                    return Inner
            """
        )
        assert [(m.enclosing.qualname, m.name) for m in members] == [
            ("Outer.build.<locals>.Inner", "value")
        ]
        assert members[0].enclosing.visibility == Visibility.PRIVATE

    def test_generic_class_type_parameters(self):
        (member,) = _scan(
            """
            from typing import Annotated, Generic, TypeVar
            from spyglass import Testable

            T = TypeVar("T", bound=int)

            class Box(Generic[T]):
                item: Annotated[T, Testable()]
            """
        )
        (param,) = member.enclosing.type_params
        assert param.name == "T"
        assert param.bound == "int"
        assert param.importable is True

    @pytest.mark.skipif(sys.version_info < (3, 12), reason="PEP 695 syntax")
    def test_pep695_class_type_parameters(self):
        (member,) = _scan(
            """
            from typing import Annotated
            from spyglass import Testable

            class Box[T: int, *Ts]:
                item: Annotated[T, Testable()]
            """
        )
        first, second = member.enclosing.type_params
        assert (first.name, first.bound, first.factory, first.importable) == ("T", "int", "TypeVar", False)
        assert (second.name, second.factory) == ("Ts", "TypeVarTuple")


class TestMethods:
    def test_parameter_kinds(self):
        (member,) = _scan(
            """
            from spyglass import testable

            class Thing:
                @testable
                def run(self, a, /, b: int = 1, *, c: str = "x", **options) -> None: ...
            """
        )
        assert [(p.name, p.default, p.kind) for p in member.parameters] == [
            ("a", None, ParameterKind.POSITIONAL_ONLY),
            ("b", "1", ParameterKind.POSITIONAL_OR_KEYWORD),
            ("c", "'x'", ParameterKind.KEYWORD_ONLY),
            ("options", None, ParameterKind.VAR_KEYWORD),
        ]

    def test_staticmethod_keeps_first_parameter(self):
        (member,) = _scan(
            """
            from spyglass import testable

            class Thing:
                @staticmethod
                @testable
                def helper(value: int) -> int: ...
            """
        )
        assert [p.name for p in member.parameters] == ["value"]

    def test_method_without_receiver_is_rejected(self):
        with pytest.raises(DeclarationError, match="no self or cls"):
            _scan(
                """
                from spyglass import testable

                class Thing:
                    @testable
                    def broken(): ...
                """
            )

    def test_async_method(self):
        (member,) = _scan(
            """
            from spyglass import testable

            class Thing:
                @testable
                async def fetch(self) -> bytes: ...
            """
        )
        assert member.is_async is True

    def test_module_type_variable_in_signature(self):
        (member,) = _scan(
            """
            from typing import List, TypeVar
            from spyglass import testable

            T = TypeVar("T")

            class Thing:
                @testable
                def first(self, items: List[T]) -> T: ...
            """
        )
        assert [p.name for p in member.type_params] == ["T"]
        assert member.type_params[0].importable is True


# ═══════════════════════════════════════════════════════════════════
#  Files
# ═══════════════════════════════════════════════════════════════════


class TestScanFiles:
    def test_invalid_syntax(self):
        with pytest.raises(DeclarationError, match="invalid syntax"):
            scan_source("class Broken(:\n", "pkg.mod")

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(DeclarationError, match="Could not read"):
            DeclarationScanner().scan_file(tmp_path / "missing.py", tmp_path)

    def test_package_init(self, make_package):
        root = make_package(
            "pkg",
            {
                "__init__": """
                    from typing import Annotated
                    from spyglass import Testable

                    class Root:
                        value: Annotated[int, Testable()]
                """
            },
        )
        (member,) = DeclarationScanner().scan_file(root / "pkg" / "__init__.py", root)
        assert member.enclosing.module.name == "pkg"
        assert member.enclosing.module.is_package is True
        assert member.enclosing.namespace == "pkg"

    def test_scan_paths_reports_errors_and_continues(self, make_package):
        root = make_package(
            "pkg",
            {
                "broken": "class Broken(:\n",
                "good": """
                    from typing import Annotated
                    from spyglass import Testable

                    class Good:
                        value: Annotated[int, Testable()]
                """,
            },
        )
        results = {r.path.name: r for r in DeclarationScanner().scan_paths([root])}

        assert results["broken.py"].error is not None
        assert results["broken.py"].members == []
        assert results["good.py"].error is None
        assert results["good.py"].members[0].enclosing.full_name == "pkg.good.Good"
