"""
Importer contract and shared behaviour.

An importer turns one source's raw JSON records into UnifiedImportRecords.
Subclasses supply validation, stable ids and their default mapping rules;
the mapping itself always runs through the generic FieldMapper.
"""

import logging
import re
from collections.abc import Sequence
from typing import Any, Optional

from ..config.settings import ConfigurationError
from ..domain.enums import PluginType
from ..domain.models import (
    AppendRule,
    AssignRule,
    UnifiedImportRecord,
    ValidationResult,
)
from ..pipeline.transform import FieldMapper

logger = logging.getLogger(__name__)

MappingRules = Sequence[AssignRule | AppendRule]


def slugify(text: str) -> str:
    """Lower-case, whitespace to dashes; used for fallback ids."""
    return re.sub(r"\s+", "-", text.strip()).lower() or "untitled"


def coordinate_errors(lat: Any, lon: Any, label: str = "coordinates") -> list[str]:
    """
    Check a coordinate pair.

    Returns:
        Error messages, empty when the pair is usable
    """
    if isinstance(lat, bool) or isinstance(lon, bool) \
            or not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
        return [f"Missing or non-numeric {label}: lat={lat!r}, lon={lon!r}"]
    errors = []
    if not -90 <= lat <= 90:
        errors.append(f"Invalid latitude {lat}: must be between -90 and 90")
    if not -180 <= lon <= 180:
        errors.append(f"Invalid longitude {lon}: must be between -180 and 180")
    if lat == 0 and lon == 0:
        errors.append("Coordinates (0, 0) are not a valid artwork location")
    return errors


class BaseImporter:
    """
    Base class for importer plugins.

    Subclasses set ``name`` and ``description`` and implement
    ``validate_data``, ``generate_import_id`` and ``default_rules``.
    ``mapping_defaults`` and ``finalize_record`` are optional hooks around
    the FieldMapper.
    """

    plugin_type = PluginType.IMPORTER
    name = "base"
    description = ""

    def __init__(self):
        self.mapper = FieldMapper()
        self.options: dict[str, Any] = {}

    def configure(self, options: Optional[dict[str, Any]] = None) -> None:
        """Apply importer options from the run config."""
        self.options = dict(options or {})

    def read_records(self, document: Any) -> list[Any]:
        """
        Split a loaded input document into raw records.

        Accepts a JSON array, or an object wrapping the array under
        ``records``, ``data`` or ``results``.

        Raises:
            ConfigurationError: If no record list can be found
        """
        if isinstance(document, list):
            return document
        if isinstance(document, dict):
            for key in ("records", "data", "results"):
                if isinstance(document.get(key), list):
                    return document[key]
        raise ConfigurationError(
            f"{self.name} expects a JSON array of records, got {type(document).__name__}"
        )

    def validate_data(self, raw: Any) -> ValidationResult:
        raise NotImplementedError

    def generate_import_id(self, raw: Any) -> str:
        raise NotImplementedError

    def default_rules(self) -> list[AssignRule | AppendRule]:
        """Mapping rules used when no mapping script is supplied."""
        return []

    def mapping_defaults(self, raw: Any) -> dict[str, Any]:
        """Importer-derived base values that rules may override."""
        return {}

    def map_data(
        self,
        raw: Any,
        rules: Optional[MappingRules] = None,
    ) -> tuple[UnifiedImportRecord, list[str]]:
        """
        Map a validated raw record.

        Args:
            raw: Raw source record
            rules: User mapping script; the importer defaults when None

        Returns:
            Tuple of (record, mapping warnings)

        Raises:
            MappingError: If the mapped values do not form a valid record
        """
        active = self.default_rules() if rules is None else rules
        record, warnings = self.mapper.apply(
            raw,
            active,
            source_id=self.generate_import_id(raw),
            defaults=self.mapping_defaults(raw),
        )
        return self.finalize_record(record, raw, warnings), warnings

    def finalize_record(
        self,
        record: UnifiedImportRecord,
        raw: Any,
        warnings: list[str],
    ) -> UnifiedImportRecord:
        """Post-process a mapped record; may add to ``warnings``."""
        return record
