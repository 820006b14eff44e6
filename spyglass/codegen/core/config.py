"""
Configuration management for companion generation.

Handles loading and merging configuration from JSON files,
providing defaults and validation for generator settings.
"""

import json
from pathlib import Path
from typing import Dict, Any, List, Optional, Union
from dataclasses import dataclass, field, fields, asdict


class ConfigError(Exception):
    """Exception raised for configuration-related errors."""
    pass


@dataclass
class GeneratorConfig:
    """Configuration for companion generation."""

    # Output settings
    output_dir: Optional[str] = None

    # Naming settings
    companion_prefix: str = "Testable"
    clearer_prefix: str = "clear"
    instance_type_param: str = "INSTANCE"
    instance_param: str = "instance"

    # Collaborators
    reflection_module: str = "spyglass.reflection"
    marker_modules: List[str] = field(
        default_factory=lambda: ["spyglass", "spyglass.markers"]
    )

    # Code style settings
    indent_size: int = 4
    line_ending: str = "\n"
    add_comments: bool = True

    # Keys of the loaded configuration that name no setting
    ignored_keys: List[str] = field(default_factory=list, compare=False, repr=False)


class ConfigManager:
    """Manages configuration loading and merging."""

    def get_config(self, custom_config: Optional[Dict[str, Any]] = None,
                   config_file: Optional[Union[str, Path]] = None) -> GeneratorConfig:
        """
        Get complete configuration.

        Args:
            custom_config: Custom configuration overrides
            config_file: Path to JSON configuration file

        Returns:
            Merged configuration
        """
        # Start with defaults
        base_config = asdict(GeneratorConfig())
        base_config.pop("ignored_keys")

        # Load from file if provided
        if config_file:
            file_config = self._load_config_file(config_file)
            base_config.update(file_config)

        # Apply custom overrides
        if custom_config:
            base_config.update(custom_config)

        return self._dict_to_config(base_config)

    def _load_config_file(self, config_path: Union[str, Path]) -> Dict[str, Any]:
        """Load configuration from JSON file."""
        path = Path(config_path)

        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        if not path.suffix.lower() == '.json':
            raise ConfigError(f"Configuration file must be JSON: {path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in configuration file {path}: {str(e)}")
        except OSError as e:
            raise ConfigError(f"Failed to load configuration file {path}: {str(e)}")

        if not isinstance(config, dict):
            raise ConfigError(f"Configuration file must contain a JSON object: {path}")

        return config

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> GeneratorConfig:
        """Convert dictionary to GeneratorConfig instance."""
        # Extract known fields
        known_fields = {f.name for f in fields(GeneratorConfig)} - {"ignored_keys"}

        config_args = {}
        ignored = []

        for key, value in config_dict.items():
            if key in known_fields:
                config_args[key] = value
            else:
                ignored.append(key)

        return GeneratorConfig(**config_args, ignored_keys=sorted(ignored))

    def validate_config(self, config: GeneratorConfig) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation warnings
        """
        warnings = [
            f"Unknown configuration key {key!r} ignored" for key in config.ignored_keys
        ]

        for name in ("companion_prefix", "instance_type_param", "instance_param"):
            value = getattr(config, name)
            if not value or not value.isidentifier():
                warnings.append(f"Invalid {name}: {value!r}")

        if config.clearer_prefix and not config.clearer_prefix.isidentifier():
            warnings.append(f"Invalid clearer_prefix: {config.clearer_prefix!r}")

        module_parts = config.reflection_module.split(".")
        if not all(part.isidentifier() for part in module_parts):
            warnings.append(f"Invalid reflection_module: {config.reflection_module!r}")

        if not config.marker_modules:
            warnings.append("No marker_modules configured - no member will be found")

        if config.indent_size < 1:
            warnings.append(f"Invalid indent_size: {config.indent_size}")

        if config.line_ending not in {"\n", "\r\n"}:
            warnings.append(f"Invalid line_ending: {config.line_ending!r}")

        return warnings


# Global configuration manager instance
_config_manager = None

def get_config_manager() -> ConfigManager:
    """Get the global configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def load_config(custom_config: Optional[Dict[str, Any]] = None,
                config_file: Optional[Union[str, Path]] = None) -> GeneratorConfig:
    """
    Convenience function to load configuration.

    Args:
        custom_config: Custom configuration overrides
        config_file: Path to JSON configuration file

    Returns:
        Merged configuration
    """
    manager = get_config_manager()
    return manager.get_config(custom_config, config_file)

