"""
Core code generation components.

Declaration scanning, naming rules, the companion model and the base
generator interface.
"""

from .generator import CodeGenerator, GeneratorError, GenerationResult, generate_code
from .declarations import (
    AnnotatedMember,
    DeclarationError,
    DeclarationScanner,
    EnclosingType,
    MemberKind,
    Parameter,
    ParameterKind,
    ScanResult,
    SourceModule,
    TypeParam,
    Visibility,
    scan_source,
)
from .diagnostics import Diagnostic, DiagnosticKind, Diagnostics
from .model import AccessorKind, CompanionType, GeneratedAccessor, ReflectionCall
from .naming import NameSanitizer, create_python_sanitizer
from .config import GeneratorConfig, ConfigManager, ConfigError, load_config
from .templates import TemplateEngine, TemplateError, create_template_engine

__all__ = [
    # Base generator interface
    "CodeGenerator",
    "GeneratorError",
    "GenerationResult",
    "generate_code",
    # Declarations read from source
    "AnnotatedMember",
    "DeclarationError",
    "DeclarationScanner",
    "EnclosingType",
    "MemberKind",
    "Parameter",
    "ParameterKind",
    "ScanResult",
    "SourceModule",
    "TypeParam",
    "Visibility",
    "scan_source",
    # Diagnostics
    "Diagnostic",
    "DiagnosticKind",
    "Diagnostics",
    # Companion model
    "AccessorKind",
    "CompanionType",
    "GeneratedAccessor",
    "ReflectionCall",
    # Naming utilities
    "NameSanitizer",
    "create_python_sanitizer",
    # Configuration system
    "GeneratorConfig",
    "ConfigManager",
    "ConfigError",
    "load_config",
    # Template system
    "TemplateEngine",
    "TemplateError",
    "create_template_engine",
]
