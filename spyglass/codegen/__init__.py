"""
Spyglass Code Generation Module

Generates companion modules exposing marked class members to tests.
"""

from .core.generator import CodeGenerator, GenerationResult, GeneratorError, generate_code
from .core.config import GeneratorConfig, ConfigManager, load_config
from .core.declarations import DeclarationError, DeclarationScanner
from .core.diagnostics import Diagnostics
from .builder import AccessorBuilder
from .emitter import SourceEmitter
from .processor import ProcessingResult, TestableProcessor, generate, group_by_enclosing_type
from .languages.python import PythonCompanionGenerator, create_python_generator


def quick_generate(source, module_name="module", config=None):
    """
    Render the companions of one module's source without writing files.

    Args:
        source: Python source text
        module_name: Dotted name the module is imported under
        config: Generator configuration

    Returns:
        Dict mapping companion names to generated code
    """
    config = config or GeneratorConfig()
    members = DeclarationScanner(config).scan_source(source, module_name)

    diagnostics = Diagnostics()
    processor = TestableProcessor(config, diagnostics=diagnostics, dry_run=True)
    result = processor.process(members)

    if diagnostics.has_errors:
        messages = "; ".join(d.message for d in diagnostics.errors)
        raise GeneratorError(f"Code generation failed: {messages}")

    return {companion.name: result.sources[path] for companion, path in result.emitted}


# Export main interfaces
__all__ = [
    "AccessorBuilder",
    "CodeGenerator",
    "ConfigManager",
    "DeclarationError",
    "DeclarationScanner",
    "Diagnostics",
    "GenerationResult",
    "GeneratorConfig",
    "GeneratorError",
    "ProcessingResult",
    "PythonCompanionGenerator",
    "SourceEmitter",
    "TestableProcessor",
    "create_python_generator",
    "generate",
    "generate_code",
    "group_by_enclosing_type",
    "load_config",
    "quick_generate",
]
