"""
Diagnostics reported during a generation round.

Failures are collected here instead of being raised, so one broken source file
or companion never prevents the others from being generated.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional

from ...logging_config import get_logger

logger = get_logger(__name__)


class DiagnosticKind(Enum):
    """Severity of a diagnostic."""

    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"


@dataclass(frozen=True)
class Diagnostic:
    """A single message for the developer."""

    kind: DiagnosticKind
    message: str
    path: Optional[Path] = None
    type_name: Optional[str] = None

    def __str__(self) -> str:
        location = ""
        if self.path is not None:
            location = f"{self.path}: "
        return f"{location}{self.kind.value}: {self.message}"


class Diagnostics:
    """Collects diagnostics and mirrors them to the package logger."""

    def __init__(self) -> None:
        self._items: List[Diagnostic] = []

    def report(self, diagnostic: Diagnostic) -> Diagnostic:
        self._items.append(diagnostic)
        if diagnostic.kind == DiagnosticKind.ERROR:
            logger.error("%s", diagnostic)
        elif diagnostic.kind == DiagnosticKind.WARNING:
            logger.warning("%s", diagnostic)
        else:
            logger.info("%s", diagnostic)
        return diagnostic

    def error(
        self,
        message: str,
        path: Optional[Path] = None,
        type_name: Optional[str] = None,
    ) -> Diagnostic:
        return self.report(Diagnostic(DiagnosticKind.ERROR, message, path, type_name))

    def warning(
        self,
        message: str,
        path: Optional[Path] = None,
        type_name: Optional[str] = None,
    ) -> Diagnostic:
        return self.report(
            Diagnostic(DiagnosticKind.WARNING, message, path, type_name)
        )

    def note(
        self,
        message: str,
        path: Optional[Path] = None,
        type_name: Optional[str] = None,
    ) -> Diagnostic:
        return self.report(Diagnostic(DiagnosticKind.NOTE, message, path, type_name))

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self._items if d.kind == DiagnosticKind.ERROR]

    @property
    def has_errors(self) -> bool:
        return any(d.kind == DiagnosticKind.ERROR for d in self._items)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)
