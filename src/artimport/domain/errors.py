"""
Error taxonomy for the import pipeline.

Fatal problems derive from ``ConfigurationError`` and abort a run before any
record is processed. Everything else is recovered per record by the pipeline
and ends up in the report.
"""

from typing import Optional

from ..config.settings import ConfigurationError


class DuplicatePluginError(ConfigurationError):
    """Raised when a plugin name is registered twice."""

    def __init__(self, name: str):
        super().__init__(f"Plugin '{name}' is already registered")
        self.name = name


class PluginNotFoundError(ConfigurationError):
    """Raised when a plugin name is unknown; lists what is available."""

    def __init__(self, name: str, available: list[str], kind: str = "plugin"):
        listing = ", ".join(sorted(available)) or "(none)"
        super().__init__(f"Unknown {kind} '{name}'. Available: {listing}")
        self.name = name
        self.available = sorted(available)


class InvalidPluginError(ConfigurationError):
    """Raised when a plugin does not implement its contract."""

    def __init__(self, name: str, missing_method: str, contract: str):
        super().__init__(f"Plugin '{name}' does not implement {contract}.{missing_method}()")
        self.name = name
        self.missing_method = missing_method
        self.contract = contract


class RecordValidationError(Exception):
    """A raw record failed required-field or coordinate checks."""

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class MappingError(RecordValidationError):
    """Mapped output could not form a valid record."""
    pass


class ExportError(Exception):
    """The destination rejected a record or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DuplicateCheckError(Exception):
    """The nearby-artwork lookup failed."""
    pass


class PhotoDownloadError(Exception):
    """A photo could not be fetched; reported as a warning only."""
    pass
