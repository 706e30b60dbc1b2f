"""
Import Enumerations

Core enums for type safety and clear interface definitions across the pipeline.
"""

from enum import Enum


class RecordStatus(str, Enum):
    """Terminal status of one processed source record."""
    CREATED = "created"                       # Exporter accepted the record
    SKIPPED_DUPLICATE = "skipped_duplicate"   # Matched an existing artwork, exporter not called
    VALIDATION_FAILED = "validation_failed"   # Required-field, coordinate or mapping failure
    EXPORT_FAILED = "export_failed"           # Destination rejected or was unreachable


class PluginType(str, Enum):
    """Plugin contracts known to the registry."""
    IMPORTER = "importer"
    EXPORTER = "exporter"


class OutputFormat(str, Enum):
    """Serialization layout for the JSON file exporter."""
    ARRAY = "array"     # One JSON array holding every record
    LINES = "lines"     # One JSON object per line


class ConsoleFormat(str, Enum):
    """Display styles for the console exporter."""
    COMPACT = "compact"
    JSON = "json"
    DETAILED = "detailed"
