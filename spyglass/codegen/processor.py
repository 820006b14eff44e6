"""
Generation round orchestration.

Groups annotated members by the class declaring them and turns each group
into one companion module.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from ..logging_config import get_logger
from .builder import AccessorBuilder
from .core.config import GeneratorConfig
from .core.declarations import (
    AnnotatedMember,
    DeclarationError,
    DeclarationScanner,
    EnclosingType,
    Visibility,
)
from .core.diagnostics import Diagnostics
from .core.generator import GeneratorError
from .core.model import CompanionType
from .core.naming import companion_name
from .emitter import SourceEmitter
from .languages.python import create_python_generator

logger = get_logger(__name__)


@dataclass
class ProcessingResult:
    """Outcome of one generation round."""

    written: List[Path] = field(default_factory=list)
    skipped: List[EnclosingType] = field(default_factory=list)
    companions: List[CompanionType] = field(default_factory=list)
    sources: Dict[Path, str] = field(default_factory=dict)
    emitted: List[Tuple[CompanionType, Path]] = field(default_factory=list)


def group_by_enclosing_type(
    members: Iterable[AnnotatedMember],
) -> List[Tuple[EnclosingType, List[AnnotatedMember]]]:
    """
    Partition members by the class declaring them.

    Classes are compared by identity, groups come in order of first appearance
    and members keep their order inside a group.
    """
    groups: List[Tuple[EnclosingType, List[AnnotatedMember]]] = []
    index = {}
    for member in members:
        key = id(member.enclosing)
        if key not in index:
            index[key] = len(groups)
            groups.append((member.enclosing, []))
        groups[index[key]][1].append(member)
    return groups


class TestableProcessor:
    """Runs generation rounds for annotated members."""

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        config: Optional[GeneratorConfig] = None,
        base_dir: Optional[Path] = None,
        diagnostics: Optional[Diagnostics] = None,
        dry_run: bool = False,
    ):
        self.config = config or GeneratorConfig()
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.dry_run = dry_run
        self.output_dir: Optional[Path] = None
        self.enabled = False
        self._initialized = False
        self._emitter: Optional[SourceEmitter] = None

    def init(self) -> bool:
        """
        Resolve and create the output directory.

        Without a configured ``output_dir`` companions are written next to the
        module declaring their class, inside the same package, so they import
        as ``<package>.<companion module>``.

        Returns:
            True when generation can run. On failure a single diagnostic is
            reported and every later ``process`` call does nothing.
        """
        if self._initialized:
            return self.enabled
        self._initialized = True

        output_dir = None
        if self.config.output_dir:
            output_dir = Path(self.config.output_dir)
            if not output_dir.is_absolute():
                output_dir = self.base_dir / output_dir

        if output_dir is not None and not self.dry_run:
            try:
                output_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                self.diagnostics.error(f"Could not create output directory {output_dir}: {e}")
                return False

        self.output_dir = output_dir
        self._emitter = SourceEmitter(
            output_dir,
            create_python_generator(self.config),
            self.diagnostics,
            fallback_dir=self.base_dir,
        )
        self.enabled = True
        logger.debug("Writing companions to %s", output_dir or "their source packages")
        return True

    def process(self, members: Iterable[AnnotatedMember]) -> ProcessingResult:
        """Build and write the companion of every non-private class."""
        result = ProcessingResult()
        if not self.init():
            return result

        for enclosing, group in group_by_enclosing_type(members):
            if enclosing.visibility == Visibility.PRIVATE:
                logger.debug("Skipping private class %s", enclosing.full_name)
                result.skipped.append(enclosing)
                continue

            companion = self._build(enclosing, group)
            if companion is None:
                continue
            result.companions.append(companion)

            path = self._emitter.emit(companion, write=not self.dry_run)
            if path is None:
                continue
            result.sources[path] = self._emitter.sources[path]
            result.emitted.append((companion, path))
            if not self.dry_run:
                result.written.append(path)

        logger.info("Generated %d companion(s)", len(result.written))
        return result

    def _build(self, enclosing: EnclosingType, members: List[AnnotatedMember]) -> Optional[CompanionType]:
        companion = CompanionType(
            name=companion_name(enclosing.name, self.config.companion_prefix),
            enclosing=enclosing,
            visibility=enclosing.visibility,
        )
        builder = AccessorBuilder(enclosing.visibility, self.config)
        try:
            builder.begin(companion, members)
            for member in members:
                builder.build(member, companion)
        except (DeclarationError, GeneratorError, ValueError) as e:
            self.diagnostics.error(
                f"Could not generate the testable source for class "
                f"{enclosing.namespace + '.' if enclosing.namespace else ''}{enclosing.name}: {e}",
                path=enclosing.module.path,
                type_name=enclosing.full_name,
            )
            return None
        return companion


def generate(
    paths: Iterable[Path],
    config: Optional[GeneratorConfig] = None,
    base_dir: Optional[Path] = None,
    diagnostics: Optional[Diagnostics] = None,
    dry_run: bool = False,
) -> ProcessingResult:
    """
    Scan source files and directories and write their companions.

    Args:
        paths: Source roots or single files
        config: Generator configuration
        base_dir: Directory a relative ``output_dir`` is resolved against
        diagnostics: Collector for reported problems
        dry_run: Render companions without writing them

    Returns:
        ProcessingResult of the round
    """
    config = config or GeneratorConfig()
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    scanner = DeclarationScanner(config)

    members: List[AnnotatedMember] = []
    for scan in scanner.scan_paths(paths):
        if scan.error is not None:
            diagnostics.error(scan.error, path=scan.path)
            continue
        members.extend(scan.members)

    processor = TestableProcessor(config, base_dir, diagnostics, dry_run=dry_run)
    return processor.process(members)
