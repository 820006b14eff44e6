"""
Shared fixtures: sample packages written to a temporary source root.
"""

import textwrap
from pathlib import Path
from typing import Callable, Dict

import pytest

from spyglass.codegen.core.config import GeneratorConfig
from spyglass.codegen.core.diagnostics import Diagnostics


MODELS_SOURCE = textwrap.dedent(
    '''
    from typing import Annotated, Dict, Optional

    from spyglass import Testable, testable


    class PublicType:
        name: Annotated[str, Testable(getter=True, setter=False, clearer=False)]

        def __init__(self) -> None:
            self.name = "public"
            self.markers: Annotated[Dict[str, float], Testable()] = {}

        @testable
        def multiply_sum(self, multiplier: float, *values: Optional[float]) -> float:
            return multiplier * sum(v for v in values if v is not None)


    class _InternalType:
        @testable
        def _double(self, value: int = 2) -> int:
            return value * 2


    class __PrivateType:
        secret: Annotated[int, Testable()]


    class Plain:
        value: int = 0
    '''
)


def write_package(root: Path, package: str, modules: Dict[str, str]) -> Path:
    """Write ``package/<name>.py`` files (plus ``__init__.py``) below ``root``."""
    package_dir = root.joinpath(*package.split("."))
    package_dir.mkdir(parents=True, exist_ok=True)

    current = root
    for part in package.split("."):
        current = current / part
        init = current / "__init__.py"
        if not init.exists():
            init.write_text("", encoding="utf-8")

    for name, source in modules.items():
        (package_dir / f"{name}.py").write_text(source, encoding="utf-8")
    return package_dir


@pytest.fixture
def source_root(tmp_path: Path) -> Path:
    root = tmp_path / "src"
    root.mkdir()
    return root


@pytest.fixture
def sample_package(source_root: Path) -> Path:
    """``sample_pkg.models`` holding public, internal, private and plain classes."""
    write_package(source_root, "sample_pkg", {"models": MODELS_SOURCE})
    return source_root


@pytest.fixture
def make_package(source_root: Path) -> Callable[[str, Dict[str, str]], Path]:
    def make(package: str, modules: Dict[str, str]) -> Path:
        dedented = {name: textwrap.dedent(source) for name, source in modules.items()}
        write_package(source_root, package, dedented)
        return source_root

    return make


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "generated"


@pytest.fixture
def config(output_dir: Path) -> GeneratorConfig:
    return GeneratorConfig(output_dir=str(output_dir))


@pytest.fixture
def diagnostics() -> Diagnostics:
    return Diagnostics()


@pytest.fixture
def models_source() -> str:
    return MODELS_SOURCE
