"""
Unified loading interface for the files an import run depends on.

- Mapping script: JSON array of assign/append rules
- Run config: optional YAML with api, dedupe, run, importers and exporters sections
- Input document: the source JSON handed to the importer

Every failure here is fatal for the run and raised as ConfigurationError, so
nothing is processed and no report is written.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from .config.settings import Config, ConfigurationError
from .domain.models import FieldMappingRule
from .utils import load_json_file, load_yaml_file

logger = logging.getLogger(__name__)

RUN_CONFIG_SECTIONS = ("api", "dedupe", "run", "importers", "exporters")

_RULES_ADAPTER = TypeAdapter(list[FieldMappingRule])


def parse_mapping_rules(data: Any, source: str = "mapping script") -> list[FieldMappingRule]:
    """
    Validate already-parsed mapping rules.

    Args:
        data: JSON array of rule objects
        source: Label used in error messages

    Returns:
        Typed rules in declared order

    Raises:
        ConfigurationError: If any rule is malformed
    """
    if not isinstance(data, list):
        raise ConfigurationError(f"{source} must be a JSON array of rules, got {type(data).__name__}")
    try:
        return _RULES_ADAPTER.validate_python(data)
    except ValidationError as e:
        problems = "; ".join(
            f"rule {'.'.join(str(p) for p in error['loc'])}: {error['msg']}" for error in e.errors()
        )
        raise ConfigurationError(f"Malformed {source}: {problems}")


def load_mapping_script(path: Path) -> list[FieldMappingRule]:
    """
    Load a mapping script from disk.

    Raises:
        ConfigurationError: If the file is unreadable or malformed
    """
    try:
        data = load_json_file(path)
    except (FileNotFoundError, ValueError, OSError) as e:
        raise ConfigurationError(f"Cannot read mapping script: {e}")

    rules = parse_mapping_rules(data, source=f"mapping script {path}")
    logger.info(f"Loaded {len(rules)} mapping rules from {path}")
    return rules


def load_run_config(path: Path) -> dict[str, Any]:
    """
    Load the optional YAML run config.

    Example:
        api:
          base_url: https://publicartregistry.com
          request_delay_seconds: 0.5
        dedupe:
          threshold: 0.75
        importers:
          vancouver-public-art:
            artists_file: data/public-art-artists.json
        exporters:
          json:
            output_path: out/artworks.json

    Raises:
        ConfigurationError: If the file is unreadable or has unknown sections
    """
    try:
        content = load_yaml_file(path)
    except (FileNotFoundError, ValueError, OSError) as e:
        raise ConfigurationError(f"Cannot read run config: {e}")

    unknown = sorted(set(content) - set(RUN_CONFIG_SECTIONS))
    if unknown:
        raise ConfigurationError(
            f"Unknown sections in {path}: {', '.join(unknown)}. "
            f"Allowed: {', '.join(RUN_CONFIG_SECTIONS)}"
        )
    for section, value in content.items():
        if value is not None and not isinstance(value, dict):
            raise ConfigurationError(f"Section '{section}' in {path} must be a mapping")
    return content


def apply_run_config(config: Config, run_config: dict[str, Any]) -> None:
    """Overlay the api, dedupe and run sections of a run config onto settings."""
    for section in ("api", "dedupe", "run"):
        config.apply_overrides(section, run_config.get(section))


def plugin_options(run_config: dict[str, Any], kind: str, name: str) -> dict[str, Any]:
    """Options for one plugin from the importers/exporters section."""
    options = (run_config.get(kind) or {}).get(name) or {}
    if not isinstance(options, dict):
        raise ConfigurationError(f"Options for {kind[:-1]} '{name}' must be a mapping")
    return dict(options)


def load_input_document(path: Path) -> Any:
    """
    Load the importer input file.

    Raises:
        ConfigurationError: If the file is unreadable or not JSON
    """
    try:
        document = load_json_file(path)
    except (FileNotFoundError, ValueError, OSError) as e:
        raise ConfigurationError(f"Cannot read input file: {e}")
    logger.debug(f"Loaded input document {path}")
    return document


def load_optional_run_config(path: Optional[Path]) -> dict[str, Any]:
    return load_run_config(path) if path else {}
