"""
JSON file exporter: writes mapped records to a local file.

Records are buffered and written when the run closes the exporter. The
buffer doubles as the duplicate-check destination, so repeated artworks in
one input (or in a merged earlier output) are skipped like on the platform.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional

from ..config.settings import ConfigurationError
from ..domain.enums import OutputFormat
from ..domain.errors import ExportError
from ..domain.models import ExistingArtwork, ExportResult, UnifiedImportRecord, ValidationResult
from ..pipeline.dedupe import geodesic_distance_m
from ..utils import ensure_directory, write_json_file
from .base import BaseExporter, record_payload

logger = logging.getLogger(__name__)


class JsonFileExporter(BaseExporter):
    """
    Buffering JSON exporter.

    Options:
        output_path: Destination file (required)
        format: 'array' (default) or 'lines'
        include_raw: Keep the raw source payload in each entry
        merge_existing: Load an existing output file and keep its entries
    """

    name = "json"
    description = "Writes mapped records to a JSON or JSON-lines file"
    option_names = ("output_path", "format", "include_raw", "merge_existing")
    serial_dedupe = True

    def __init__(self):
        super().__init__()
        self.output_path: Optional[Path] = None
        self.format = OutputFormat.ARRAY
        self.include_raw = False
        self._entries: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._exported = 0

    def configure(self, options: Optional[dict[str, Any]] = None) -> None:
        super().configure(options)
        result = self.validate()
        if not result.valid:
            raise ConfigurationError("; ".join(result.errors))

        self.output_path = Path(self.options["output_path"])
        self.format = OutputFormat(self.options.get("format") or OutputFormat.ARRAY.value)
        self.include_raw = bool(self.options.get("include_raw", False))
        self._entries = []
        self._exported = 0
        if self.options.get("merge_existing") and self.output_path.exists():
            self._entries = self._load_existing(self.output_path)
            logger.info(f"Merged {len(self._entries)} existing entries from {self.output_path}")

    def validate(self, config: Optional[dict[str, Any]] = None) -> ValidationResult:
        config = self.options if config is None else config
        result = super().validate(config)
        errors = list(result.errors)
        if not config.get("output_path"):
            errors.append("JSON exporter requires output_path (--output)")
        fmt = config.get("format")
        if fmt and fmt not in [f.value for f in OutputFormat]:
            errors.append(f"Unknown format '{fmt}'. Allowed: {', '.join(f.value for f in OutputFormat)}")
        return ValidationResult.from_errors(errors)

    def _load_existing(self, path: Path) -> list[dict[str, Any]]:
        try:
            text = path.read_text(encoding="utf-8")
            if self.format == OutputFormat.LINES:
                entries = [json.loads(line) for line in text.splitlines() if line.strip()]
            else:
                entries = json.loads(text) if text.strip() else []
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot merge existing output {path}: {e}")
        if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
            raise ConfigurationError(f"Existing output {path} is not a list of records")
        return entries

    def nearby_lookup(self) -> "JsonFileExporter":
        return self

    def find_nearby(self, lat: float, lon: float, radius_m: float) -> list[ExistingArtwork]:
        """Buffered entries within ``radius_m`` of a point."""
        with self._lock:
            entries = list(self._entries)

        nearby = []
        for entry in entries:
            try:
                distance = geodesic_distance_m(lat, lon, float(entry["lat"]), float(entry["lon"]))
            except (KeyError, TypeError, ValueError):
                continue
            if distance <= radius_m:
                nearby.append(ExistingArtwork(
                    id=str(entry.get("source_id")),
                    title=entry.get("title"),
                    artists=list(entry.get("artists") or []),
                    lat=float(entry["lat"]),
                    lon=float(entry["lon"]),
                    tags={str(k): str(v) for k, v in (entry.get("tags") or {}).items()},
                ))
        return nearby

    def export(self, record: UnifiedImportRecord) -> ExportResult:
        if self.output_path is None:
            raise ExportError("JSON exporter used before configure()")

        entry = record_payload(record)
        if self.include_raw:
            entry["raw"] = record.raw
        with self._lock:
            self._entries.append(entry)
            self._exported += 1
        return ExportResult(success=True, created_id=record.source_id)

    @property
    def entries(self) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._entries)

    def close(self) -> None:
        """Write every buffered entry to the output file."""
        if self.output_path is None:
            return
        if not self._exported:
            logger.info(f"No records exported, {self.output_path} left untouched")
            return
        entries = self.entries
        if self.format == OutputFormat.LINES:
            ensure_directory(self.output_path.parent)
            with open(self.output_path, "w", encoding="utf-8") as f:
                for entry in entries:
                    f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
        else:
            write_json_file(self.output_path, entries)
        logger.info(f"Wrote {len(entries)} records to {self.output_path}")
