"""
Source emitter.

Writes rendered companion modules into the package of the class they were
generated for: next to its module by default, or below a configured output
directory mirroring the package path.
"""

from pathlib import Path
from typing import Dict, Optional

from ..logging_config import get_logger
from .core.diagnostics import Diagnostics
from .core.generator import CodeGenerator, generate_code
from .core.model import CompanionType
from .core.naming import module_file_name

logger = get_logger(__name__)


class SourceEmitter:
    """Serializes companion types to files, one file per companion."""

    def __init__(
        self,
        output_dir: Optional[Path],
        generator: CodeGenerator,
        diagnostics: Diagnostics,
        fallback_dir: Optional[Path] = None,
    ):
        """
        Args:
            output_dir: Root of the companion tree, or None to write each
                companion next to the module of its class
            generator: Code generator rendering companions
            diagnostics: Collector for reported problems
            fallback_dir: Root used for classes whose module has no file
        """
        self.output_dir = Path(output_dir) if output_dir is not None else None
        self.fallback_dir = Path(fallback_dir) if fallback_dir is not None else Path.cwd()
        self.generator = generator
        self.diagnostics = diagnostics
        self.sources: Dict[Path, str] = {}
        self._owners: Dict[Path, str] = {}

    def companion_path(self, companion: CompanionType) -> Path:
        """File a companion is written to."""
        source_path = companion.enclosing.module.path
        if self.output_dir is None and source_path is not None:
            directory = Path(source_path).parent
        else:
            root = self.output_dir if self.output_dir is not None else self.fallback_dir
            directory = root.joinpath(*companion.namespace.split(".")) \
                if companion.namespace else root
        stem = module_file_name(companion.name, companion.visibility)
        return directory / f"{stem}{self.generator.file_extension}"

    def render(self, companion: CompanionType) -> Optional[str]:
        """Render a companion, reporting failures instead of raising."""
        result = generate_code(self.generator, companion)
        if not result.success:
            self._report_failure(companion, result.error_message)
            return None

        for warning in result.warnings:
            self.diagnostics.warning(warning, type_name=companion.enclosing.full_name)
        return result.code

    def emit(self, companion: CompanionType, write: bool = True) -> Optional[Path]:
        """
        Render and write one companion.

        Args:
            companion: Companion to emit
            write: False to only render, keeping the source in ``sources``

        Returns:
            Path of the companion, or None when a diagnostic was reported instead
        """
        path = self.companion_path(companion)
        owner = self._owners.get(path)
        if owner is not None:
            self._report_failure(
                companion, f"{path} was already generated for {owner} in this round"
            )
            return None

        code = self.render(companion)
        if code is None:
            return None

        self._owners[path] = companion.enclosing.full_name
        if not write:
            self.sources[path] = code
            return path

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(code)
        except OSError as e:
            self._report_failure(companion, str(e))
            return None

        self.sources[path] = code
        logger.info("Generated %s for %s", path, companion.enclosing.full_name)
        return path

    def _report_failure(self, companion: CompanionType, reason: str) -> None:
        enclosing = companion.enclosing
        qualified = f"{enclosing.namespace}.{enclosing.name}" if enclosing.namespace else enclosing.name
        self.diagnostics.error(
            f"Could not generate the testable source for class {qualified}: {reason}",
            path=enclosing.module.path,
            type_name=enclosing.full_name,
        )
