"""
Tests for configuration loading, merging and validation.
"""

import json
from pathlib import Path

import pytest

from spyglass.codegen.core.config import (
    ConfigError,
    ConfigManager,
    GeneratorConfig,
    load_config,
)


class TestDefaults:
    def test_default_values(self):
        config = GeneratorConfig()
        assert config.output_dir is None
        assert config.companion_prefix == "Testable"
        assert config.clearer_prefix == "clear"
        assert config.instance_type_param == "INSTANCE"
        assert config.instance_param == "instance"
        assert config.reflection_module == "spyglass.reflection"
        assert config.marker_modules == ["spyglass", "spyglass.markers"]
        assert config.ignored_keys == []

    def test_loaded_defaults_are_independent(self):
        first = load_config()
        first.marker_modules.append("mine")
        assert load_config().marker_modules == ["spyglass", "spyglass.markers"]


class TestLoadConfig:
    def test_overrides(self):
        config = load_config(custom_config={"companion_prefix": "Spy", "indent_size": 2})
        assert config.companion_prefix == "Spy"
        assert config.indent_size == 2

    def test_unknown_keys_are_recorded(self):
        config = load_config(custom_config={"team": "core", "companion_prefx": "Spy"})
        assert config.ignored_keys == ["companion_prefx", "team"]
        assert config.companion_prefix == "Testable"
        assert not hasattr(config, "team")

    def test_unknown_keys_from_file(self, tmp_path: Path):
        path = tmp_path / "spyglass.json"
        path.write_text(json.dumps({"output_dir": "out", "outputdir": "typo"}), encoding="utf-8")
        config = load_config(config_file=path)
        assert config.output_dir == "out"
        assert config.ignored_keys == ["outputdir"]

    def test_file_then_overrides(self, tmp_path: Path):
        path = tmp_path / "spyglass.json"
        path.write_text(json.dumps({"output_dir": "out", "companion_prefix": "Spy"}), encoding="utf-8")

        config = load_config(custom_config={"companion_prefix": "Peek"}, config_file=path)
        assert config.output_dir == "out"
        assert config.companion_prefix == "Peek"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(config_file=tmp_path / "missing.json")

    def test_not_json_suffix(self, tmp_path: Path):
        path = tmp_path / "spyglass.toml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ConfigError, match="must be JSON"):
            load_config(config_file=path)

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "spyglass.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_config(config_file=path)

    def test_json_must_be_object(self, tmp_path: Path):
        path = tmp_path / "spyglass.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ConfigError, match="JSON object"):
            load_config(config_file=path)


class TestConfigManager:
    def test_validate_valid_config(self):
        assert ConfigManager().validate_config(GeneratorConfig()) == []

    def test_validate_reports_problems(self):
        config = GeneratorConfig(
            companion_prefix="not valid",
            reflection_module="my-module",
            marker_modules=[],
            indent_size=0,
            line_ending="\t",
        )
        warnings = ConfigManager().validate_config(config)
        assert len(warnings) == 5
        assert any("companion_prefix" in w for w in warnings)
        assert any("reflection_module" in w for w in warnings)
        assert any("marker_modules" in w for w in warnings)

    def test_validate_warns_about_unknown_keys(self):
        config = ConfigManager().get_config(custom_config={"outputdir": "out"})
        assert ConfigManager().validate_config(config) == [
            "Unknown configuration key 'outputdir' ignored"
        ]
