"""
OpenStreetMap artwork importer.

Reads a GeoJSON FeatureCollection of OSM nodes (for example an Overpass
export of ``tourism=artwork``) and maps Point features to artworks.
"""

import logging
import re
from typing import Any

from ..config.settings import ConfigurationError
from ..domain.models import AppendRule, AssignRule, UnifiedImportRecord, ValidationResult
from .base import BaseImporter, coordinate_errors, slugify

logger = logging.getLogger(__name__)

TITLE_FIELDS = ("name", "title", "name:en", "official_name")
ARTIST_FIELDS = ("artist_name", "artist", "created_by")
YEAR_FIELDS = ("start_date", "year")
TAG_FIELDS = (
    "tourism",
    "artwork_type",
    "historic",
    "memorial",
    "material",
    "wikidata",
    "wikipedia",
    "website",
)

_YEAR_PATTERN = re.compile(r"\b(19|20)\d{2}\b")
_ARTIST_SEPARATOR = re.compile(r"\s+and\s+|\s*;\s*")


def _properties(raw: Any) -> dict[str, Any]:
    props = raw.get("properties") if isinstance(raw, dict) else None
    return props if isinstance(props, dict) else {}


def _first_text(props: dict[str, Any], fields: tuple[str, ...]) -> str:
    for field in fields:
        value = props.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


class OSMArtworkImporter(BaseImporter):
    """Importer for OpenStreetMap GeoJSON exports."""

    name = "osm-artwork"
    description = "Imports artwork and monument data from OpenStreetMap GeoJSON files"

    def read_records(self, document: Any) -> list[Any]:
        """
        Extract features, keeping only included feature types when configured.

        Options:
            include_feature_types: list of tourism/historic/artwork_type values
        """
        if isinstance(document, dict) and document.get("type") == "FeatureCollection":
            features = document.get("features")
            if not isinstance(features, list):
                raise ConfigurationError("GeoJSON FeatureCollection has no 'features' array")
        elif isinstance(document, list):
            features = document
        else:
            raise ConfigurationError(
                "osm-artwork expects a GeoJSON FeatureCollection or an array of features"
            )

        included = self.options.get("include_feature_types")
        if not included:
            return features

        kept = [feature for feature in features if self._has_included_type(feature, set(included))]
        if len(kept) < len(features):
            logger.info(f"Skipped {len(features) - len(kept)} features outside {sorted(included)}")
        return kept

    @staticmethod
    def _has_included_type(feature: Any, included: set[str]) -> bool:
        props = feature.get("properties") if isinstance(feature, dict) else None
        if not isinstance(props, dict):
            return False
        values = (props.get(key) for key in ("tourism", "historic", "artwork_type"))
        return any(isinstance(value, str) and value in included for value in values)

    def validate_data(self, raw: Any) -> ValidationResult:
        if not isinstance(raw, dict) or raw.get("type") != "Feature":
            return ValidationResult.from_errors(["Record is not a GeoJSON Feature"])

        geometry = raw.get("geometry")
        if not isinstance(geometry, dict) or geometry.get("type") != "Point":
            kind = geometry.get("type") if isinstance(geometry, dict) else None
            return ValidationResult.from_errors(
                [f"Only Point geometries are supported for artwork locations, got {kind}"]
            )

        properties = raw.get("properties")
        if properties is not None and not isinstance(properties, dict):
            return ValidationResult.from_errors(
                [f"Feature properties must be an object, got {type(properties).__name__}"]
            )

        coordinates = geometry.get("coordinates")
        if not isinstance(coordinates, list) or len(coordinates) < 2:
            return ValidationResult.from_errors(["Point geometry has no [lon, lat] coordinates"])

        lon, lat = coordinates[0], coordinates[1]
        errors = coordinate_errors(lat, lon)
        warnings = []
        if not _first_text(_properties(raw), TITLE_FIELDS):
            warnings.append("Feature has no name; title left empty")
        return ValidationResult.from_errors(errors, warnings)

    def generate_import_id(self, raw: Any) -> str:
        props = _properties(raw)
        osm_id = props.get("id") or props.get("osm_id") or raw.get("id")
        if osm_id:
            return f"osm-{osm_id}"

        name = slugify(_first_text(props, TITLE_FIELDS) or "unnamed")
        try:
            lon, lat = raw["geometry"]["coordinates"][:2]
            return f"osm-{name}-{float(lat):.6f}-{float(lon):.6f}"
        except (KeyError, TypeError, ValueError):
            return f"osm-{name}"

    def default_rules(self) -> list[AssignRule | AppendRule]:
        rules: list[AssignRule | AppendRule] = [
            AppendRule(source_path="$.properties.description", target_field="artwork.description"),
            AppendRule(
                source_path="$.properties.inscription",
                target_field="artwork.description",
                template="**Inscription**: {value}",
            ),
        ]
        rules.extend(
            AssignRule(source_path=f"$.properties['{field}']", target_field=f"tag:{field}")
            for field in TAG_FIELDS
        )
        return rules

    def mapping_defaults(self, raw: Any) -> dict[str, Any]:
        props = _properties(raw)
        lon, lat = raw["geometry"]["coordinates"][:2]

        artist = _first_text(props, ARTIST_FIELDS)
        artists = [name for name in _ARTIST_SEPARATOR.split(artist) if name] if artist else []

        tags = {}
        for field in YEAR_FIELDS:
            match = _YEAR_PATTERN.search(str(props.get(field) or ""))
            if match:
                tags["year_of_installation"] = match.group(0)
                break

        return {
            "title": _first_text(props, TITLE_FIELDS) or None,
            "lat": lat,
            "lon": lon,
            "artists": artists,
            "tags": tags,
        }

    def finalize_record(
        self,
        record: UnifiedImportRecord,
        raw: Any,
        warnings: list[str],
    ) -> UnifiedImportRecord:
        """Append the OSM source attribution to the description."""
        attribution = f"Imported from OpenStreetMap (node: {record.source_id})"
        description = f"{record.description}\n\n{attribution}" if record.description else attribution
        return record.model_copy(update={"description": description})
