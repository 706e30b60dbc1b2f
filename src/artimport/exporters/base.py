"""
Exporter contract and shared behaviour.

Exporters own every side effect on the destination. The pipeline calls
``configure`` once, ``export`` per non-duplicate record and ``close`` once
after the last record.
"""

import logging
from typing import Any, Optional

from ..domain.enums import PluginType
from ..domain.models import ExportResult, UnifiedImportRecord, ValidationResult

logger = logging.getLogger(__name__)


def record_payload(record: UnifiedImportRecord) -> dict[str, Any]:
    """JSON-ready view of a record without the raw source payload."""
    return record.model_dump(mode="json", exclude={"raw"})


class BaseExporter:
    """
    Base class for exporter plugins.

    Subclasses set ``name`` and ``description``, declare ``option_names``
    and implement ``export``.
    """

    plugin_type = PluginType.EXPORTER
    name = "base"
    description = ""
    option_names: tuple[str, ...] = ()
    # True when lookups read what export writes in this process; the pipeline
    # then runs lookup and export under one lock
    serial_dedupe = False

    def __init__(self):
        self.options: dict[str, Any] = {}
        self.configured = False

    def configure(self, options: Optional[dict[str, Any]] = None) -> None:
        """One-time setup from run options."""
        self.options = dict(options or {})
        self.configured = True

    def validate(self, config: Optional[dict[str, Any]] = None) -> ValidationResult:
        """Check options before a run; unknown option names are errors."""
        config = self.options if config is None else config
        unknown = sorted(set(config) - set(self.option_names))
        errors = [
            f"Unknown option '{key}' for exporter '{self.name}'. "
            f"Allowed: {', '.join(self.option_names) or '(none)'}"
            for key in unknown
        ]
        return ValidationResult.from_errors(errors)

    def nearby_lookup(self) -> Optional[Any]:
        """Read view of the destination for duplicate checks; None when there is none."""
        return None

    def export(self, record: UnifiedImportRecord) -> ExportResult:
        raise NotImplementedError

    def close(self) -> None:
        """Flush and release resources after the last record."""
        pass
