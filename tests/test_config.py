"""
Unit tests for settings, run config files and mapping scripts.
"""

import json
import os

import pytest

from artimport.config.settings import Config, ConfigurationError, DedupeConfig
from artimport.config_loader import (
    apply_run_config,
    load_input_document,
    load_mapping_script,
    load_run_config,
    parse_mapping_rules,
    plugin_options,
)
from artimport.domain.models import AppendRule, AssignRule


# ===================
# ENVIRONMENT SETTINGS
# ===================

class TestConfig:

    def test_defaults(self, isolated_env):
        """Defaults apply when nothing is set."""
        config = Config()
        assert config.api.base_url == "http://localhost:8787"
        assert config.api.token is None
        assert config.dedupe.threshold == 0.70
        assert config.dedupe.location_epsilon_m == 10.0
        assert config.run.concurrency == 1

    def test_environment_variables(self, isolated_env, monkeypatch):
        """MASS_IMPORT_* variables are read."""
        monkeypatch.setenv("MASS_IMPORT_API_URL", "https://art.example.org")
        monkeypatch.setenv("MASS_IMPORT_API_TOKEN", "secret")
        monkeypatch.setenv("MASS_IMPORT_DEDUPE_THRESHOLD", "0.8")
        monkeypatch.setenv("MASS_IMPORT_CONCURRENCY", "4")

        config = Config()

        assert config.get_api_settings() == {
            "base_url": "https://art.example.org",
            "token": "secret",
            "timeout": 30.0,
            "request_delay": 0.0,
        }
        assert config.dedupe.threshold == 0.8
        assert config.run.concurrency == 4

    def test_dotenv_file(self, isolated_env):
        """A .env file in the working directory is loaded."""
        (isolated_env / ".env").write_text("MASS_IMPORT_API_TOKEN=from-dotenv\n", encoding="utf-8")
        try:
            config = Config()
            assert config.api.token == "from-dotenv"
            assert config.get_summary()["loaded_env_files"]
        finally:
            os.environ.pop("MASS_IMPORT_API_TOKEN", None)

    def test_missing_explicit_env_file(self, isolated_env):
        """An explicit env file must exist."""
        with pytest.raises(ConfigurationError):
            Config(env_file=isolated_env / "nope.env")

    @pytest.mark.parametrize("name,value", [
        ("MASS_IMPORT_API_URL", "art.example.org"),
        ("MASS_IMPORT_DEDUPE_THRESHOLD", "1.5"),
        ("MASS_IMPORT_TIMEOUT_SECONDS", "soon"),
        ("MASS_IMPORT_CONCURRENCY", "0"),
    ])
    def test_invalid_values(self, isolated_env, monkeypatch, name, value):
        """Invalid values raise ConfigurationError."""
        monkeypatch.setenv(name, value)
        with pytest.raises(ConfigurationError):
            Config()

    def test_summary_has_no_secrets(self, isolated_env, monkeypatch):
        """The token never appears in the summary or repr."""
        monkeypatch.setenv("MASS_IMPORT_API_TOKEN", "top-secret")
        config = Config()
        assert config.get_summary()["api_token_set"] is True
        assert "top-secret" not in json.dumps(config.get_summary())
        assert "top-secret" not in repr(config)

    def test_overrides(self, isolated_env):
        """Overrides replace fields and ignore None values."""
        config = Config()
        config.apply_overrides("dedupe", {"threshold": 0.9, "search_radius_m": None})
        assert config.dedupe.threshold == 0.9
        assert config.dedupe.search_radius_m == 100.0

    def test_override_errors(self, isolated_env):
        """Unknown sections, unknown fields and invalid values are rejected."""
        config = Config()
        with pytest.raises(ConfigurationError):
            config.apply_overrides("cache", {"size": 1})
        with pytest.raises(ConfigurationError):
            config.apply_overrides("dedupe", {"treshold": 0.9})
        with pytest.raises(ConfigurationError):
            config.apply_overrides("dedupe", {"threshold": 2})

    def test_radius_must_cover_epsilon(self):
        """The nearby search cannot be narrower than the location epsilon."""
        with pytest.raises(ValueError):
            DedupeConfig(location_epsilon_m=50, search_radius_m=20)


# ===================
# RUN CONFIG FILE
# ===================

class TestRunConfig:

    def test_load_and_apply(self, isolated_env, tmp_path):
        """YAML sections override settings and carry plugin options."""
        path = tmp_path / "run.yaml"
        path.write_text(
            "dedupe:\n"
            "  threshold: 0.75\n"
            "run:\n"
            "  concurrency: 3\n"
            "exporters:\n"
            "  json:\n"
            "    output_path: out.json\n",
            encoding="utf-8",
        )
        run_config = load_run_config(path)
        config = Config()
        apply_run_config(config, run_config)

        assert config.dedupe.threshold == 0.75
        assert config.run.concurrency == 3
        assert plugin_options(run_config, "exporters", "json") == {"output_path": "out.json"}
        assert plugin_options(run_config, "importers", "osm-artwork") == {}

    def test_unknown_section(self, tmp_path):
        """Sections outside the known set are rejected."""
        path = tmp_path / "run.yaml"
        path.write_text("cache:\n  size: 1\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="cache"):
            load_run_config(path)

    def test_missing_file(self, tmp_path):
        """A missing run config is a configuration error."""
        with pytest.raises(ConfigurationError):
            load_run_config(tmp_path / "missing.yaml")

    def test_empty_file(self, tmp_path):
        """An empty YAML file is an empty config."""
        path = tmp_path / "run.yaml"
        path.write_text("", encoding="utf-8")
        assert load_run_config(path) == {}


# ===================
# MAPPING SCRIPTS
# ===================

class TestMappingScript:

    def test_parse_rules(self):
        """camelCase keys are accepted and the operation picks the rule type."""
        rules = parse_mapping_rules([
            {"sourcePath": "$.title_of_work", "targetField": "artwork.title", "operation": "assign"},
            {"source_path": "$.descriptionofwork", "target_field": "artwork.description",
             "operation": "append", "template": "**Description**: {value}"},
        ])
        assert isinstance(rules[0], AssignRule)
        assert isinstance(rules[1], AppendRule)
        assert rules[1].template == "**Description**: {value}"

    @pytest.mark.parametrize("rule", [
        {"sourcePath": "$.a", "targetField": "artwork.colour", "operation": "assign"},
        {"sourcePath": "$.a[", "targetField": "artwork.title", "operation": "assign"},
        {"sourcePath": "$.a", "targetField": "artwork.title", "operation": "merge"},
        {"sourcePath": "$.a", "targetField": "tag:", "operation": "assign"},
        {"targetField": "artwork.title", "operation": "assign"},
    ])
    def test_malformed_rules(self, rule):
        """Bad targets, paths, operations and missing keys are rejected."""
        with pytest.raises(ConfigurationError):
            parse_mapping_rules([rule])

    def test_not_an_array(self):
        """A mapping script must be an array."""
        with pytest.raises(ConfigurationError):
            parse_mapping_rules({"rules": []})

    def test_load_from_file(self, tmp_path):
        """Scripts load from JSON files."""
        path = tmp_path / "mapping.json"
        path.write_text(json.dumps([
            {"sourcePath": "$.name", "targetField": "tag:name", "operation": "assign"},
        ]), encoding="utf-8")
        assert load_mapping_script(path)[0].target_field == "tag:name"

    def test_invalid_json(self, tmp_path):
        """Unparseable scripts are configuration errors."""
        path = tmp_path / "mapping.json"
        path.write_text("[{", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_mapping_script(path)

    def test_missing_input(self, tmp_path):
        """A missing input file is a configuration error."""
        with pytest.raises(ConfigurationError):
            load_input_document(tmp_path / "missing.json")
