"""
Configuration management for the mass-import pipeline.

Settings come from the process environment, optionally seeded from
``.env`` files, and are validated into small dataclasses. A YAML run config
and CLI flags may override them afterwards (see ``Config.apply_overrides``).

Usage:
    from artimport.config.settings import Config
    config = Config()
    client = ArtworkApiClient(**config.get_api_settings())

Environment Variables (MASS_IMPORT_ prefix):
    MASS_IMPORT_API_URL: Base URL of the destination platform
    MASS_IMPORT_API_TOKEN: Bearer token for the mass-import endpoint
    MASS_IMPORT_TIMEOUT_SECONDS: HTTP timeout per request
    MASS_IMPORT_REQUEST_DELAY_SECONDS: Minimum delay between API calls
    MASS_IMPORT_DEDUPE_THRESHOLD: Score at or above which a record is a duplicate
    MASS_IMPORT_LOCATION_EPSILON_METERS: Distance below which locations match
    MASS_IMPORT_SEARCH_RADIUS_METERS: Radius of the nearby-artwork lookup
    MASS_IMPORT_CONCURRENCY: Worker threads used by the pipeline
    MASS_IMPORT_REPORTS_DIR: Directory for JSON reports
    MASS_IMPORT_PHOTO_CACHE_DIR: Directory for downloaded photos
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass
class ApiConfig:
    """Destination platform connection settings."""
    base_url: str = "http://localhost:8787"
    token: Optional[str] = None
    timeout_seconds: float = 30.0
    request_delay_seconds: float = 0.0

    def __post_init__(self):
        """Validate connection settings."""
        if not self.base_url.startswith(('http://', 'https://')):
            raise ValueError("API URL must include protocol (https://)")
        if self.timeout_seconds <= 0:
            raise ValueError("Timeout must be positive")
        if self.request_delay_seconds < 0:
            raise ValueError("Request delay must be non-negative")


@dataclass
class DedupeConfig:
    """Duplicate detection weights and limits."""
    threshold: float = 0.70
    location_epsilon_m: float = 10.0
    search_radius_m: float = 100.0
    title_weight: float = 0.20
    artist_weight: float = 0.20
    location_weight: float = 0.30
    tag_weight: float = 0.05
    tag_cap: float = 0.25

    def __post_init__(self):
        """Validate scoring configuration."""
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError("Dedupe threshold must be between 0 and 1")
        if self.location_epsilon_m <= 0:
            raise ValueError("Location epsilon must be positive")
        if self.search_radius_m < self.location_epsilon_m:
            raise ValueError("Search radius must be at least the location epsilon")
        for name in ('title_weight', 'artist_weight', 'location_weight', 'tag_weight', 'tag_cap'):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")


@dataclass
class RunConfig:
    """Pipeline execution settings."""
    concurrency: int = 1
    reports_dir: str = "reports"
    photo_cache_dir: str = ".cache/photos"

    def __post_init__(self):
        """Validate execution settings."""
        if self.concurrency < 1:
            raise ValueError("Concurrency must be at least 1")
        if not self.reports_dir:
            raise ValueError("Reports directory cannot be empty")


class ConfigurationError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'")


class Config:
    """
    Centralized configuration for the mass-import pipeline.

    Environment variables loaded (in order of preference):
    1. Explicit environment file passed to constructor
    2. .env.{ENVIRONMENT} (where ENVIRONMENT=development|production|staging)
    3. .env file in the working directory
    4. System environment variables

    Example:
        # Development defaults plus .env
        config = Config()

        # Explicit env file
        config = Config(env_file=Path("/secure/import.env"))
    """

    def __init__(self,
                 environment: Optional[str] = None,
                 env_file: Optional[Path] = None,
                 load_env_files: bool = True):
        """
        Initialize configuration.

        Args:
            environment: Target environment (development|staging|production)
            env_file: Explicit path to environment file
            load_env_files: Read .env files before the process environment
        """
        self.environment = environment or os.getenv("ENVIRONMENT", "development")
        self._loaded_env_files: list[str] = []

        if load_env_files:
            self._load_environment_variables(env_file)

        self._load_api_config()
        self._load_dedupe_config()
        self._load_run_config()

    def _load_environment_variables(self, env_file: Optional[Path]) -> None:
        """Load environment variables from the appropriate .env files."""
        if env_file:
            if not env_file.exists():
                raise ConfigurationError(f"Specified env file not found: {env_file}")
            load_dotenv(env_file)
            self._loaded_env_files.append(str(env_file))
            logger.info(f"Loaded configuration from {env_file}")
            return

        env_specific_file = Path.cwd() / f".env.{self.environment}"
        if env_specific_file.exists():
            load_dotenv(env_specific_file)
            self._loaded_env_files.append(str(env_specific_file))
            logger.info(f"Loaded environment-specific config: {env_specific_file}")

        generic_env_file = Path.cwd() / ".env"
        if generic_env_file.exists():
            load_dotenv(generic_env_file)
            self._loaded_env_files.append(str(generic_env_file))
            logger.debug(f"Loaded generic config: {generic_env_file}")

        if not self._loaded_env_files:
            logger.debug("No .env files found, using system environment variables only")

    def _load_api_config(self) -> None:
        """Load destination API configuration."""
        try:
            self.api = ApiConfig(
                base_url=os.getenv("MASS_IMPORT_API_URL", ApiConfig.base_url),
                token=os.getenv("MASS_IMPORT_API_TOKEN") or None,
                timeout_seconds=_env_float("MASS_IMPORT_TIMEOUT_SECONDS", ApiConfig.timeout_seconds),
                request_delay_seconds=_env_float(
                    "MASS_IMPORT_REQUEST_DELAY_SECONDS", ApiConfig.request_delay_seconds
                ),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid API configuration: {e}")

    def _load_dedupe_config(self) -> None:
        """Load duplicate detection configuration."""
        try:
            self.dedupe = DedupeConfig(
                threshold=_env_float("MASS_IMPORT_DEDUPE_THRESHOLD", DedupeConfig.threshold),
                location_epsilon_m=_env_float(
                    "MASS_IMPORT_LOCATION_EPSILON_METERS", DedupeConfig.location_epsilon_m
                ),
                search_radius_m=_env_float(
                    "MASS_IMPORT_SEARCH_RADIUS_METERS", DedupeConfig.search_radius_m
                ),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid dedupe configuration: {e}")

    def _load_run_config(self) -> None:
        """Load pipeline execution configuration."""
        try:
            self.run = RunConfig(
                concurrency=_env_int("MASS_IMPORT_CONCURRENCY", RunConfig.concurrency),
                reports_dir=os.getenv("MASS_IMPORT_REPORTS_DIR", RunConfig.reports_dir),
                photo_cache_dir=os.getenv("MASS_IMPORT_PHOTO_CACHE_DIR", RunConfig.photo_cache_dir),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid run configuration: {e}")

    def apply_overrides(self, section: str, values: Optional[dict[str, Any]]) -> None:
        """
        Override one configuration section with values from a run config or CLI.

        Args:
            section: One of 'api', 'dedupe', 'run'
            values: Field name to value; None values are ignored

        Raises:
            ConfigurationError: On unknown sections, unknown fields or invalid values
        """
        if not values:
            return
        current = getattr(self, section, None)
        if section not in ('api', 'dedupe', 'run') or current is None:
            raise ConfigurationError(f"Unknown configuration section '{section}'")

        known = {f.name for f in fields(current)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown {section} settings: {', '.join(unknown)}. Allowed: {', '.join(sorted(known))}"
            )

        changes = {key: value for key, value in values.items() if value is not None}
        try:
            setattr(self, section, replace(current, **changes))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid {section} configuration: {e}")

    def get_api_settings(self) -> dict[str, Any]:
        """
        Get destination API settings as dictionary.

        Returns:
            Keyword arguments for ArtworkApiClient
        """
        return {
            'base_url': self.api.base_url,
            'token': self.api.token,
            'timeout': self.api.timeout_seconds,
            'request_delay': self.api.request_delay_seconds,
        }

    def get_summary(self) -> dict[str, Any]:
        """
        Get configuration summary for logs and the validate-config command.

        Returns:
            Dictionary with configuration info (no secrets)
        """
        return {
            'environment': self.environment,
            'loaded_env_files': self._loaded_env_files,
            'api_url': self.api.base_url,
            'api_token_set': bool(self.api.token),
            'timeout_seconds': self.api.timeout_seconds,
            'request_delay_seconds': self.api.request_delay_seconds,
            'dedupe_threshold': self.dedupe.threshold,
            'location_epsilon_m': self.dedupe.location_epsilon_m,
            'search_radius_m': self.dedupe.search_radius_m,
            'concurrency': self.run.concurrency,
            'reports_dir': self.run.reports_dir,
            'photo_cache_dir': self.run.photo_cache_dir,
        }

    def __repr__(self) -> str:
        """Safe string representation without credentials."""
        return (
            f"Config(environment={self.environment}, "
            f"api_url={self.api.base_url}, "
            f"dedupe_threshold={self.dedupe.threshold})"
        )
