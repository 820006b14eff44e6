"""
Declaration model built from Python source.

Parses modules with ``ast`` (the scanned code is never imported) and reports
the class members carrying a spyglass marker, each paired with the class that
declares it.
"""

import ast
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from ...logging_config import get_logger
from .config import GeneratorConfig

logger = get_logger(__name__)

FIELD_MARKER = "Testable"
METHOD_MARKER = "testable"
MARKER_OPTIONS = ("getter", "setter", "clearer")
TYPE_VAR_FACTORIES = {"TypeVar", "ParamSpec", "TypeVarTuple"}
GENERIC_BASES = {"Generic", "Protocol"}
NEW_SCOPES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef, ast.Lambda)


class DeclarationError(Exception):
    """Raised when a declaration cannot be read from source."""

    pass


class Visibility(Enum):
    """Visibility of an enclosing type."""

    PUBLIC = "public"
    INTERNAL = "internal"
    PRIVATE = "private"


class MemberKind(Enum):
    """Kind of an annotated member."""

    FIELD = "field"
    METHOD = "method"


class ParameterKind(Enum):
    """Kinds of parameter, in the order Python allows them."""

    POSITIONAL_ONLY = "positional_only"
    POSITIONAL_OR_KEYWORD = "positional_or_keyword"
    VAR_POSITIONAL = "var_positional"
    KEYWORD_ONLY = "keyword_only"
    VAR_KEYWORD = "var_keyword"


@dataclass
class Parameter:
    """A parameter with its annotation and default as source text."""

    name: str
    annotation: Optional[str] = None
    default: Optional[str] = None
    kind: ParameterKind = ParameterKind.POSITIONAL_OR_KEYWORD


@dataclass
class TypeParam:
    """A type variable usable in a generated signature.

    Importable type variables are module-level declarations of the scanned
    module; the others (PEP 695 parameters, synthetic ones) have to be
    declared by the generated code.
    """

    name: str
    bound: Optional[str] = None
    factory: str = "TypeVar"
    importable: bool = False
    constraints: List[str] = field(default_factory=list)


@dataclass(eq=False)
class SourceModule:
    """A scanned module."""

    name: str
    namespace: str
    path: Optional[Path] = None
    is_package: bool = False
    bindings: Set[str] = field(default_factory=set)
    type_vars: Dict[str, TypeParam] = field(default_factory=dict)


@dataclass(eq=False)
class EnclosingType:
    """A class declaring at least one annotated member.

    Compared by identity: two classes sharing a simple name are never merged.
    """

    name: str
    qualname: str
    module: SourceModule
    visibility: Visibility
    type_params: List[TypeParam] = field(default_factory=list)
    lineno: int = 0

    @property
    def namespace(self) -> str:
        return self.module.namespace

    @property
    def full_name(self) -> str:
        return f"{self.module.name}.{self.qualname}"


@dataclass(eq=False)
class AnnotatedMember:
    """A field or method carrying a marker."""

    name: str
    enclosing: EnclosingType
    kind: MemberKind
    declared_type: Optional[str] = None
    parameters: List[Parameter] = field(default_factory=list)
    type_params: List[TypeParam] = field(default_factory=list)
    getter: bool = True
    setter: bool = True
    clearer: bool = True
    is_async: bool = False
    lineno: int = 0


@dataclass
class ScanResult:
    """Outcome of scanning one source file."""

    path: Path
    members: List[AnnotatedMember] = field(default_factory=list)
    error: Optional[str] = None


def _dotted_name(node: ast.AST) -> Optional[str]:
    """Return ``a.b.c`` for a chain of attribute accesses on a name."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        parent = _dotted_name(node.value)
        if parent is not None:
            return f"{parent}.{node.attr}"
    return None


def _tail_name(node: ast.AST) -> Optional[str]:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


def _walk_scope(node: ast.AST) -> Iterator[ast.AST]:
    """Like ``ast.walk`` below ``node``, without entering nested functions or classes."""
    todo = deque(ast.iter_child_nodes(node))
    while todo:
        child = todo.popleft()
        yield child
        if not isinstance(child, NEW_SCOPES):
            todo.extend(ast.iter_child_nodes(child))


def _nested_bodies(stmt: ast.stmt) -> Iterator[List[ast.stmt]]:
    """Yield the statement lists of compound statements that keep the scope."""
    if isinstance(stmt, (ast.If, ast.For, ast.AsyncFor, ast.While)):
        yield stmt.body
        yield stmt.orelse
    elif isinstance(stmt, (ast.With, ast.AsyncWith)):
        yield stmt.body
    elif isinstance(stmt, ast.Try) or type(stmt).__name__ == "TryStar":
        yield stmt.body
        for handler in stmt.handlers:
            yield handler.body
        yield stmt.orelse
        yield stmt.finalbody


def module_name_for(path: Path, root: Path) -> str:
    """Dotted module name of ``path`` relative to the source root ``root``."""
    relative = path.resolve().relative_to(root.resolve()).with_suffix("")
    parts = list(relative.parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    return ".".join(parts)


def namespace_of(module_name: str, is_package: bool = False) -> str:
    """Package holding the module (the module itself for ``__init__``)."""
    if is_package:
        return module_name
    return module_name.rpartition(".")[0]


def class_visibility(name: str, parent: Optional[Visibility], in_function: bool) -> Visibility:
    """Visibility class of a class named ``name``."""
    if in_function or parent == Visibility.PRIVATE:
        return Visibility.PRIVATE
    if name.startswith("__") and not name.endswith("__"):
        return Visibility.PRIVATE
    if name.startswith("_") or parent == Visibility.INTERNAL:
        return Visibility.INTERNAL
    return Visibility.PUBLIC


class _MarkerNames:
    """How the markers can be spelled in one module, resolved from its imports."""

    def __init__(self, marker_modules: Iterable[str]):
        self.marker_modules = set(marker_modules)
        self.field_names: Set[str] = set()
        self.method_names: Set[str] = set()
        self.module_aliases: Dict[str, str] = {}

    def collect(self, tree: ast.Module) -> None:
        for node in ast.walk(tree):
            if isinstance(node, ast.ImportFrom):
                if node.level or node.module not in self.marker_modules:
                    continue
                for alias in node.names:
                    bound = alias.asname or alias.name
                    if alias.name == FIELD_MARKER:
                        self.field_names.add(bound)
                    elif alias.name == METHOD_MARKER:
                        self.method_names.add(bound)
                    elif f"{node.module}.{alias.name}" in self.marker_modules:
                        self.module_aliases[bound] = f"{node.module}.{alias.name}"
            elif isinstance(node, ast.Import):
                for alias in node.names:
                    if alias.asname and alias.name in self.marker_modules:
                        self.module_aliases[alias.asname] = alias.name
                    elif not alias.asname:
                        # "import a.b" binds "a" and makes "a.b" reachable
                        parts = alias.name.split(".")
                        for i in range(1, len(parts) + 1):
                            dotted = ".".join(parts[:i])
                            if dotted in self.marker_modules:
                                self.module_aliases[dotted] = dotted

    def _matches(self, node: ast.AST, names: Set[str], marker: str) -> bool:
        if isinstance(node, ast.Name):
            return node.id in names
        if isinstance(node, ast.Attribute) and node.attr == marker:
            owner = _dotted_name(node.value)
            return owner is not None and owner in self.module_aliases
        return False

    def is_field_marker(self, node: ast.AST) -> bool:
        target = node.func if isinstance(node, ast.Call) else node
        return self._matches(target, self.field_names, FIELD_MARKER)

    def is_method_marker(self, node: ast.AST) -> bool:
        target = node.func if isinstance(node, ast.Call) else node
        return self._matches(target, self.method_names, METHOD_MARKER)


class DeclarationScanner:
    """Finds annotated members in Python source."""

    def __init__(self, config: Optional[GeneratorConfig] = None):
        self.config = config or GeneratorConfig()

    # Entry points

    def scan_source(
        self,
        source: str,
        module_name: str,
        path: Optional[Path] = None,
        is_package: bool = False,
    ) -> List[AnnotatedMember]:
        """
        Scan the source of one module.

        Args:
            source: Module source text
            module_name: Dotted name the module is imported under
            path: File the source was read from, for messages
            is_package: True for a package ``__init__`` module

        Returns:
            Annotated members in declaration order

        Raises:
            DeclarationError: If the source or a marker cannot be read
        """
        filename = str(path) if path else f"<{module_name}>"
        try:
            tree = ast.parse(source, filename=filename)
        except SyntaxError as e:
            raise DeclarationError(f"{filename}:{e.lineno}: invalid syntax: {e.msg}") from e

        module = SourceModule(
            name=module_name,
            namespace=namespace_of(module_name, is_package),
            path=path,
            is_package=is_package,
        )
        self._collect_module_scope(tree.body, module)

        markers = _MarkerNames(self.config.marker_modules)
        markers.collect(tree)
        if not (markers.field_names or markers.method_names or markers.module_aliases):
            logger.debug("No marker imported by %s", module_name)
            return []

        members: List[AnnotatedMember] = []
        self._visit_body(tree.body, module, markers, members, None, False, "")
        logger.debug("Found %d annotated member(s) in %s", len(members), module_name)
        return members

    def scan_file(self, path: Path, root: Optional[Path] = None) -> List[AnnotatedMember]:
        """Scan a file, naming its module relative to the source root ``root``."""
        path = Path(path)
        root = Path(root) if root is not None else path.parent
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DeclarationError(f"Could not read {path}: {e}") from e

        try:
            module_name = module_name_for(path, root)
        except ValueError as e:
            raise DeclarationError(f"{path} is not inside source root {root}") from e

        return self.scan_source(
            source,
            module_name,
            path=path,
            is_package=path.name == "__init__.py",
        )

    def scan_paths(self, paths: Iterable[Path]) -> Iterator[ScanResult]:
        """Scan files and source roots, in a deterministic order."""
        for path, root in iter_source_files(paths):
            try:
                yield ScanResult(path, self.scan_file(path, root))
            except DeclarationError as e:
                yield ScanResult(path, error=str(e))

    # Module scope

    def _collect_module_scope(self, body: List[ast.stmt], module: SourceModule) -> None:
        for stmt in body:
            if isinstance(stmt, ast.Import):
                for alias in stmt.names:
                    module.bindings.add(alias.asname or alias.name.split(".")[0])
            elif isinstance(stmt, ast.ImportFrom):
                for alias in stmt.names:
                    if alias.name != "*":
                        module.bindings.add(alias.asname or alias.name)
            elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                module.bindings.add(stmt.name)
            elif isinstance(stmt, ast.Assign):
                for target in stmt.targets:
                    for node in ast.walk(target):
                        if isinstance(node, ast.Name):
                            module.bindings.add(node.id)
                type_var = self._type_var_declaration(stmt)
                if type_var is not None:
                    module.type_vars[type_var.name] = type_var
            elif isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
                module.bindings.add(stmt.target.id)
            elif type(stmt).__name__ == "TypeAlias":
                module.bindings.add(stmt.name.id)
            else:
                for nested in _nested_bodies(stmt):
                    self._collect_module_scope(nested, module)

    def _type_var_declaration(self, stmt: ast.Assign) -> Optional[TypeParam]:
        """Read ``T = TypeVar("T", bound=...)`` style declarations."""
        if len(stmt.targets) != 1 or not isinstance(stmt.targets[0], ast.Name):
            return None
        value = stmt.value
        if not isinstance(value, ast.Call) or _tail_name(value.func) not in TYPE_VAR_FACTORIES:
            return None

        bound = None
        for keyword in value.keywords:
            if keyword.arg == "bound":
                bound = ast.unparse(keyword.value)
        return TypeParam(
            name=stmt.targets[0].id,
            bound=bound,
            factory=_tail_name(value.func),
            importable=True,
        )

    # Classes and members

    def _visit_body(
        self,
        body: List[ast.stmt],
        module: SourceModule,
        markers: _MarkerNames,
        members: List[AnnotatedMember],
        parent: Optional[EnclosingType],
        in_function: bool,
        prefix: str,
    ) -> None:
        for stmt in body:
            if isinstance(stmt, ast.ClassDef):
                enclosing = EnclosingType(
                    name=stmt.name,
                    qualname=f"{prefix}{stmt.name}",
                    module=module,
                    visibility=class_visibility(
                        stmt.name, parent.visibility if parent else None, in_function
                    ),
                    type_params=self._class_type_params(stmt, module),
                    lineno=stmt.lineno,
                )
                self._collect_members(stmt, enclosing, markers, members)
                self._visit_body(
                    stmt.body, module, markers, members, enclosing, in_function,
                    f"{enclosing.qualname}.",
                )
            elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self._visit_body(
                    stmt.body, module, markers, members, parent, True,
                    f"{prefix}{stmt.name}.<locals>.",
                )
            else:
                for nested in _nested_bodies(stmt):
                    self._visit_body(
                        nested, module, markers, members, parent, in_function, prefix
                    )

    def _class_type_params(self, node: ast.ClassDef, module: SourceModule) -> List[TypeParam]:
        """Type parameters of a class, PEP 695 style or through its bases."""
        pep695 = getattr(node, "type_params", None)
        if pep695:
            return [self._pep695_param(p) for p in pep695]

        generic_names: List[str] = []
        subscript_names: List[str] = []
        for base in node.bases:
            if not isinstance(base, ast.Subscript):
                continue
            names = [n.id for n in ast.walk(base.slice) if isinstance(n, ast.Name)]
            if _tail_name(base.value) in GENERIC_BASES:
                generic_names.extend(names)
            else:
                subscript_names.extend(n for n in names if n in module.type_vars)

        params: List[TypeParam] = []
        for name in generic_names or subscript_names:
            if any(p.name == name for p in params):
                continue
            params.append(module.type_vars.get(name) or TypeParam(name, importable=True))
        return params

    def _pep695_param(self, node: ast.AST) -> TypeParam:
        factory = {"ParamSpec": "ParamSpec", "TypeVarTuple": "TypeVarTuple"}.get(
            type(node).__name__, "TypeVar"
        )
        bound = getattr(node, "bound", None)
        if isinstance(bound, ast.Tuple):
            # "T: (int, str)" declares constraints, not a bound
            return TypeParam(
                name=node.name,
                factory=factory,
                constraints=[ast.unparse(e) for e in bound.elts],
            )
        return TypeParam(
            name=node.name,
            bound=ast.unparse(bound) if bound is not None else None,
            factory=factory,
        )

    def _collect_members(
        self,
        node: ast.ClassDef,
        enclosing: EnclosingType,
        markers: _MarkerNames,
        members: List[AnnotatedMember],
    ) -> None:
        seen_fields: Set[str] = set()

        def add_field(member: Optional[AnnotatedMember]) -> None:
            if member is not None and member.name not in seen_fields:
                seen_fields.add(member.name)
                members.append(member)

        for stmt in node.body:
            if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
                add_field(self._field_member(stmt, stmt.target.id, enclosing, markers))
            elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                if any(markers.is_method_marker(d) for d in stmt.decorator_list):
                    members.append(self._method_member(stmt, enclosing))
                for member in self._instance_fields(stmt, enclosing, markers):
                    add_field(member)

    def _instance_fields(
        self,
        func: ast.AST,
        enclosing: EnclosingType,
        markers: _MarkerNames,
    ) -> Iterator[AnnotatedMember]:
        """Fields declared as ``self.name: Annotated[...]`` inside a method."""
        arguments = func.args.posonlyargs + func.args.args
        if not arguments:
            return
        receiver = arguments[0].arg

        for stmt in _walk_scope(func):
            if (
                isinstance(stmt, ast.AnnAssign)
                and isinstance(stmt.target, ast.Attribute)
                and isinstance(stmt.target.value, ast.Name)
                and stmt.target.value.id == receiver
            ):
                member = self._field_member(stmt, stmt.target.attr, enclosing, markers)
                if member is not None:
                    yield member

    def _field_member(
        self,
        stmt: ast.AnnAssign,
        name: str,
        enclosing: EnclosingType,
        markers: _MarkerNames,
    ) -> Optional[AnnotatedMember]:
        annotation = stmt.annotation
        if not isinstance(annotation, ast.Subscript) or _tail_name(annotation.value) != "Annotated":
            return None
        if not isinstance(annotation.slice, ast.Tuple) or len(annotation.slice.elts) < 2:
            return None

        declared, *metadata = annotation.slice.elts
        marker = next((m for m in metadata if markers.is_field_marker(m)), None)
        if marker is None:
            return None

        options = self._marker_options(marker, enclosing, name)
        return AnnotatedMember(
            name=name,
            enclosing=enclosing,
            kind=MemberKind.FIELD,
            declared_type=ast.unparse(declared),
            lineno=stmt.lineno,
            **options,
        )

    def _marker_options(self, marker: ast.AST, enclosing: EnclosingType, name: str) -> Dict[str, bool]:
        options = {option: True for option in MARKER_OPTIONS}
        if not isinstance(marker, ast.Call):
            return options

        where = f"{enclosing.full_name}.{name}"
        if len(marker.args) > len(MARKER_OPTIONS):
            raise DeclarationError(f"{where}: too many marker arguments")

        given: List[Tuple[str, ast.AST]] = list(zip(MARKER_OPTIONS, marker.args))
        for keyword in marker.keywords:
            if keyword.arg not in MARKER_OPTIONS:
                raise DeclarationError(f"{where}: unknown marker option {keyword.arg!r}")
            given.append((keyword.arg, keyword.value))

        for option, value in given:
            if not isinstance(value, ast.Constant) or not isinstance(value.value, bool):
                raise DeclarationError(
                    f"{where}: marker option {option!r} must be a literal True or False"
                )
            options[option] = value.value
        return options

    def _method_member(self, node: ast.AST, enclosing: EnclosingType) -> AnnotatedMember:
        decorators = {_tail_name(d) for d in node.decorator_list}
        parameters = self._parameters(node.args)

        if "staticmethod" not in decorators:
            positional = [
                p for p in parameters
                if p.kind in (ParameterKind.POSITIONAL_ONLY, ParameterKind.POSITIONAL_OR_KEYWORD)
            ]
            if not positional:
                raise DeclarationError(
                    f"{enclosing.full_name}.{node.name}: method has no self or cls parameter"
                )
            parameters.remove(positional[0])

        type_params = [self._pep695_param(p) for p in getattr(node, "type_params", None) or []]
        class_params = {p.name for p in enclosing.type_params}
        declared = {p.name for p in type_params}
        annotations = [p.annotation for p in parameters if p.annotation]
        if node.returns is not None:
            annotations.append(ast.unparse(node.returns))
        for text in annotations:
            for child in ast.walk(ast.parse(text, mode="eval")):
                if (
                    isinstance(child, ast.Name)
                    and child.id in enclosing.module.type_vars
                    and child.id not in class_params
                    and child.id not in declared
                ):
                    declared.add(child.id)
                    type_params.append(enclosing.module.type_vars[child.id])

        return AnnotatedMember(
            name=node.name,
            enclosing=enclosing,
            kind=MemberKind.METHOD,
            declared_type=ast.unparse(node.returns) if node.returns is not None else None,
            parameters=parameters,
            type_params=type_params,
            is_async=isinstance(node, ast.AsyncFunctionDef),
            lineno=node.lineno,
        )

    def _parameters(self, args: ast.arguments) -> List[Parameter]:
        def text(node: Optional[ast.AST]) -> Optional[str]:
            return ast.unparse(node) if node is not None else None

        parameters: List[Parameter] = []
        positional = [(a, ParameterKind.POSITIONAL_ONLY) for a in args.posonlyargs]
        positional += [(a, ParameterKind.POSITIONAL_OR_KEYWORD) for a in args.args]
        # Defaults align with the last positional parameters
        defaults = [None] * (len(positional) - len(args.defaults)) + list(args.defaults)

        for (arg, kind), default in zip(positional, defaults):
            parameters.append(Parameter(arg.arg, text(arg.annotation), text(default), kind))
        if args.vararg is not None:
            parameters.append(
                Parameter(args.vararg.arg, text(args.vararg.annotation), None, ParameterKind.VAR_POSITIONAL)
            )
        for arg, default in zip(args.kwonlyargs, args.kw_defaults):
            parameters.append(
                Parameter(arg.arg, text(arg.annotation), text(default), ParameterKind.KEYWORD_ONLY)
            )
        if args.kwarg is not None:
            parameters.append(
                Parameter(args.kwarg.arg, text(args.kwarg.annotation), None, ParameterKind.VAR_KEYWORD)
            )
        return parameters


def iter_source_files(paths: Iterable[Path]) -> Iterator[Tuple[Path, Path]]:
    """Yield ``(file, source root)`` pairs for files and directories, sorted."""
    for path in paths:
        path = Path(path)
        if path.is_dir():
            for file in sorted(path.rglob("*.py")):
                relative = file.relative_to(path).parts
                if any(part.startswith(".") or part == "__pycache__" for part in relative):
                    continue
                yield file, path
        else:
            # A file inside a package belongs to the root above its top package
            root = path.parent
            while (root / "__init__.py").is_file():
                root = root.parent
            yield path, root


def scan_source(
    source: str,
    module_name: str,
    path: Optional[Path] = None,
    config: Optional[GeneratorConfig] = None,
    is_package: bool = False,
) -> List[AnnotatedMember]:
    """Convenience wrapper around ``DeclarationScanner.scan_source``."""
    return DeclarationScanner(config).scan_source(source, module_name, path, is_package)
