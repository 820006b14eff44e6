"""
Base generator interface for companion rendering.

Defines the contract a companion generator must implement.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Any, Optional
from pathlib import Path

from .config import GeneratorConfig
from .model import CompanionType
from .templates import TemplateEngine, create_template_engine


class GeneratorError(Exception):
    """Base exception for code generation errors."""

    pass


class CodeGenerator(ABC):
    """Abstract base class for companion generators."""

    def __init__(self, config: Optional[GeneratorConfig] = None):
        """Initialize generator with optional configuration."""
        self.config = config or GeneratorConfig()
        self._template_engine = None
        self._setup_templates()

    def _setup_templates(self):
        """Setup template engine for this generator."""
        self._template_engine = create_template_engine(self.get_template_directory())

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """Return the file extension for generated files (e.g., '.py')."""
        pass

    @abstractmethod
    def get_template_directory(self) -> Path:
        """Return the directory containing templates for this generator."""
        pass

    @property
    def template_engine(self) -> TemplateEngine:
        """Get the template engine for this generator."""
        if self._template_engine is None:
            self._setup_templates()
        return self._template_engine

    @abstractmethod
    def generate(self, companion: CompanionType) -> str:
        """
        Generate the source of one companion type.

        Args:
            companion: Companion model to render

        Returns:
            Generated code as a string
        """
        pass

    def check_syntax(self, code: str, companion: CompanionType) -> None:
        """
        Verify that generated code parses.

        Raises:
            GeneratorError: If the code is not valid in the target language
        """
        return None

    def validate_companion(self, companion: CompanionType) -> List[str]:
        """
        Validate a companion for basic structural issues.

        Args:
            companion: Companion to validate

        Returns:
            List of warning messages (empty if no issues)
        """
        warnings = []

        if not companion.accessors:
            warnings.append(f"Companion '{companion.name}' has no accessors")

        for accessor in companion.accessors:
            if accessor.return_type is None:
                warnings.append(
                    f"No type annotation for {companion.enclosing.qualname}.{accessor.member_name}"
                )

        return warnings

    def format_code(self, code: str) -> str:
        """
        Apply formatting to generated code.

        Args:
            code: Raw generated code

        Returns:
            Formatted code
        """
        # Basic cleanup - remove excessive blank lines
        lines = code.split("\n")
        formatted_lines = []
        blank_count = 0

        for line in lines:
            stripped = line.rstrip()
            if not stripped:
                blank_count += 1
                if blank_count <= 2:  # Allow max 2 consecutive blank lines
                    formatted_lines.append("")
            else:
                blank_count = 0
                formatted_lines.append(stripped)

        # Exactly one trailing newline
        while formatted_lines and not formatted_lines[-1]:
            formatted_lines.pop()

        return self.config.line_ending.join(formatted_lines) + self.config.line_ending

    # Template helper methods

    def render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        """
        Render a template with context.

        Args:
            template_name: Template file name
            context: Template variables

        Returns:
            Rendered content
        """
        return self.template_engine.render_template(template_name, context)


class GenerationResult:
    """Container for generation results."""

    def __init__(self, code: str, warnings: List[str] = None):
        """
        Initialize generation result.

        Args:
            code: Generated code
            warnings: Any warnings from generation
        """
        self.code = code
        self.warnings = warnings or []
        self.success = True
        self.error_message = None
        self.exception = None

    @classmethod
    def error(cls, message: str, exception: Exception = None) -> "GenerationResult":
        """Create a failed generation result."""
        result = cls(code="")
        result.success = False
        result.error_message = message
        result.exception = exception
        return result


def generate_code(generator: CodeGenerator, companion: CompanionType) -> GenerationResult:
    """
    Generate code using the specified generator with error handling.

    Args:
        generator: Code generator instance
        companion: Companion to render

    Returns:
        GenerationResult with code and warnings
    """
    try:
        warnings = generator.validate_companion(companion)

        code = generator.generate(companion)
        formatted_code = generator.format_code(code)
        generator.check_syntax(formatted_code, companion)

        return GenerationResult(formatted_code, warnings)

    except Exception as e:
        return GenerationResult.error(f"Code generation failed: {str(e)}", exception=e)
