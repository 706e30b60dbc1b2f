"""
Consolidated Utilities

Helper functions shared across the import pipeline.

Sections:
- Logging and timing utilities
- Filesystem and path operations
- Request throttling
- Configuration helpers
"""

import json
import logging
import re
import sys
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import yaml

# =============================================================================
# Logging and Timing Utilities
# =============================================================================

def setup_logging(
    verbose: bool,
    importer_name: Optional[str] = None,
    exporter_name: Optional[str] = None,
    enable_file_logging: bool = False
) -> Optional[Path]:
    """
    Configure logging with optional timestamped file output.

    Args:
        verbose: Enable debug-level logging if True
        importer_name: Importer name for log file naming
        exporter_name: Exporter name for log file naming
        enable_file_logging: Create timestamped log files when True

    Returns:
        Path of the log file when file logging is enabled
    """
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_file = None

    if enable_file_logging:
        logs_dir = ensure_directory(Path("logs"))
        parts = [clean_filename(name) for name in (importer_name, exporter_name) if name]
        log_file = logs_dir / f"{'_'.join(parts + [timestamp_slug()])}.log"
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
        handlers=handlers,
        force=True
    )
    # Quiet urllib3 connection logs
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return log_file


def timestamp_slug(moment: Optional[datetime] = None) -> str:
    """Filesystem-safe timestamp, e.g. 20250101-120000."""
    return (moment or datetime.now()).strftime("%Y%m%d-%H%M%S")


def elapsed_ms(start: float) -> float:
    """Milliseconds since a time.perf_counter() reading."""
    return round((time.perf_counter() - start) * 1000, 3)


# =============================================================================
# Filesystem and Path Operations
# =============================================================================

def ensure_directory(path: Path) -> Path:
    """
    Ensure directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure

    Returns:
        Path object for the directory
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def clean_filename(filename: str) -> str:
    """
    Clean filename for cross-platform compatibility.

    Args:
        filename: Original filename

    Returns:
        Cleaned filename safe for all platforms
    """
    cleaned = re.sub(r'[<>:"/\\|?*\s]', '_', filename)
    cleaned = re.sub(r'_+', '_', cleaned)
    return cleaned.strip('_')


def write_json_file(file_path: Path, data: Any) -> Path:
    """Write JSON with UTF-8 encoding, creating parent directories."""
    ensure_directory(file_path.parent)
    with open(file_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
        f.write("\n")
    return file_path


# =============================================================================
# Request Throttling
# =============================================================================

class MinIntervalThrottle:
    """
    Enforces a minimum interval between calls across threads.

    Used by plugins that talk to rate-limited services; the pipeline itself
    never throttles.
    """

    def __init__(self, min_interval_seconds: float = 0.0):
        self.min_interval_seconds = max(0.0, min_interval_seconds)
        self._last_call = 0.0
        self._lock = threading.Lock()

    def wait(self) -> None:
        """Sleep as needed so calls are at least min_interval_seconds apart."""
        if self.min_interval_seconds <= 0:
            return
        with self._lock:
            elapsed = time.monotonic() - self._last_call
            wait_seconds = self.min_interval_seconds - elapsed
            if wait_seconds > 0:
                time.sleep(wait_seconds)
            self._last_call = time.monotonic()


# =============================================================================
# Configuration Helpers
# =============================================================================

def load_yaml_file(file_path: Path) -> dict[str, Any]:
    """
    Load YAML configuration file with error handling.

    Args:
        file_path: Path to YAML file

    Returns:
        Parsed YAML content as dictionary (empty for an empty file)

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If file is not valid YAML or not a mapping
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    try:
        with open(file_path, encoding='utf-8') as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {file_path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ValueError(f"Configuration file {file_path} must contain a mapping")
    return content


def load_json_file(file_path: Path) -> Any:
    """
    Load JSON file with error handling.

    Args:
        file_path: Path to JSON file

    Returns:
        Parsed JSON content

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If file is not valid JSON
    """
    if not file_path.exists():
        raise FileNotFoundError(f"JSON file not found: {file_path}")

    try:
        with open(file_path, encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ValueError(f"File {file_path} is not UTF-8 text: {e}") from e
