"""
Console exporter: prints mapped records instead of sending them anywhere.

Useful for previewing a mapping script before a real import.
"""

import itertools
import json
import logging
from typing import Any, Optional

import typer

from ..config.settings import ConfigurationError
from ..domain.enums import ConsoleFormat
from ..domain.models import ExportResult, UnifiedImportRecord, ValidationResult
from .base import BaseExporter, record_payload

logger = logging.getLogger(__name__)


class ConsoleExporter(BaseExporter):
    """
    Echoes each record to stdout.

    Options:
        format: 'compact' (default), 'json' or 'detailed'
    """

    name = "console"
    description = "Prints mapped records to the console"
    option_names = ("format",)

    def __init__(self):
        super().__init__()
        self.format = ConsoleFormat.COMPACT
        self._ids = itertools.count(1)

    def configure(self, options: Optional[dict[str, Any]] = None) -> None:
        super().configure(options)
        result = self.validate()
        if not result.valid:
            raise ConfigurationError("; ".join(result.errors))
        self.format = ConsoleFormat(self.options.get("format") or ConsoleFormat.COMPACT.value)
        self._ids = itertools.count(1)

    def validate(self, config: Optional[dict[str, Any]] = None) -> ValidationResult:
        config = self.options if config is None else config
        result = super().validate(config)
        errors = list(result.errors)
        fmt = config.get("format")
        if fmt and fmt not in [f.value for f in ConsoleFormat]:
            errors.append(f"Unknown format '{fmt}'. Allowed: {', '.join(f.value for f in ConsoleFormat)}")
        return ValidationResult.from_errors(errors)

    def render(self, record: UnifiedImportRecord) -> str:
        if self.format == ConsoleFormat.JSON:
            return json.dumps(record_payload(record), ensure_ascii=False)

        title = record.title or "(untitled)"
        artists = ", ".join(record.artists) or "unknown artist"
        if self.format == ConsoleFormat.COMPACT:
            return f"{record.source_id}: {title} by {artists} @ {record.lat:.6f},{record.lon:.6f}"

        lines = [
            f"=== {record.source_id}",
            f"Title:    {title}",
            f"Artists:  {artists}",
            f"Location: {record.lat:.6f}, {record.lon:.6f}",
        ]
        if record.tags:
            lines.append("Tags:")
            lines.extend(f"  {key}: {value}" for key, value in record.tags.items())
        if record.photo_urls:
            lines.append("Photos:")
            lines.extend(f"  {url}" for url in record.photo_urls)
        if record.description:
            lines.append("Description:")
            lines.extend(f"  {line}" for line in record.description.splitlines())
        return "\n".join(lines)

    def export(self, record: UnifiedImportRecord) -> ExportResult:
        typer.echo(self.render(record))
        return ExportResult(success=True, created_id=f"console-{next(self._ids)}")
