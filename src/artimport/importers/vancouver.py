"""
Vancouver Open Data public art importer.

Records come from the City of Vancouver "public-art" dataset export: one
JSON object per artwork with ``title_of_work``, ``geo_point_2d``, artist ids
and a handful of descriptive columns.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from ..config.settings import ConfigurationError
from ..domain.models import AppendRule, AssignRule, UnifiedImportRecord, ValidationResult
from ..utils import load_json_file
from .base import BaseImporter, coordinate_errors, slugify

logger = logging.getLogger(__name__)

TAG_FIELDS = (
    "registryid",
    "type",
    "status",
    "sitename",
    "siteaddress",
    "ownership",
    "neighbourhood",
    "yearofinstallation",
    "primarymaterial",
)


class VancouverPublicArtImporter(BaseImporter):
    """Importer for the Vancouver Open Data public art export."""

    name = "vancouver-public-art"
    description = "Imports artwork data from the Vancouver Open Data portal"

    def __init__(self):
        super().__init__()
        self.artist_lookup: dict[str, str] = {}

    def configure(self, options: Optional[dict[str, Any]] = None) -> None:
        """
        Apply options.

        Options:
            artists_file: JSON array of {artistid, firstname, lastname} used to
                turn artist ids into names
        """
        super().configure(options)
        artists_file = self.options.get("artists_file")
        if artists_file:
            self.artist_lookup = self._load_artist_lookup(Path(artists_file))

    @staticmethod
    def _load_artist_lookup(path: Path) -> dict[str, str]:
        try:
            entries = load_json_file(path)
        except (FileNotFoundError, ValueError) as e:
            raise ConfigurationError(f"Cannot load artist lookup: {e}")
        if not isinstance(entries, list):
            raise ConfigurationError(f"Artist lookup {path} must be a JSON array")

        lookup = {}
        for entry in entries:
            if not isinstance(entry, dict) or "artistid" not in entry:
                continue
            full_name = f"{entry.get('firstname') or ''} {entry.get('lastname') or ''}".strip()
            if full_name:
                lookup[str(entry["artistid"])] = full_name
        logger.info(f"Loaded {len(lookup)} artists into lookup table from {path}")
        return lookup

    def validate_data(self, raw: Any) -> ValidationResult:
        if not isinstance(raw, dict):
            return ValidationResult.from_errors([f"Record must be an object, got {type(raw).__name__}"])

        errors = []
        title = raw.get("title_of_work")
        if not isinstance(title, str) or not title.strip():
            errors.append("Missing required field 'title_of_work'")

        point = raw.get("geo_point_2d")
        if not isinstance(point, dict):
            errors.append("Missing or invalid geo_point_2d coordinates")
        else:
            errors.extend(coordinate_errors(point.get("lat"), point.get("lon"), "geo_point_2d"))

        return ValidationResult.from_errors(errors)

    def generate_import_id(self, raw: Any) -> str:
        registry_id = raw.get("registryid") if isinstance(raw, dict) else None
        if registry_id not in (None, ""):
            return f"{self.name}:{registry_id}"

        point = raw.get("geo_point_2d") or {}
        title = slugify(str(raw.get("title_of_work") or "untitled"))
        try:
            return f"{self.name}:{title}-{float(point['lat']):.6f}-{float(point['lon']):.6f}"
        except (KeyError, TypeError, ValueError):
            return f"{self.name}:{title}"

    def default_rules(self) -> list[AssignRule | AppendRule]:
        rules: list[AssignRule | AppendRule] = [
            AssignRule(source_path="$.title_of_work", target_field="artwork.title"),
            AppendRule(
                source_path="$.artistprojectstatement",
                target_field="artwork.description",
                template="**Artist Project Statement**: {value}",
            ),
            AppendRule(
                source_path="$.descriptionofwork",
                target_field="artwork.description",
                template="**Description**: {value}",
            ),
            AppendRule(
                source_path="$.registryid",
                target_field="artwork.description",
                template="Imported from Vancouver Open Data (registryid: {value})",
            ),
            AssignRule(source_path="$.artists", target_field="artwork.artists"),
            AssignRule(source_path="$.photourl.url", target_field="artwork.photos"),
        ]
        rules.extend(
            AssignRule(source_path=f"$.{field}", target_field=f"tag:{field}")
            for field in TAG_FIELDS
        )
        rules.append(AssignRule(source_path="$.artists", target_field="tag:artist_ids"))
        return rules

    def mapping_defaults(self, raw: Any) -> dict[str, Any]:
        point = raw.get("geo_point_2d") or {}
        return {
            "lat": point.get("lat"),
            "lon": point.get("lon"),
            "tags": {"content_type": "artwork"},
        }

    def finalize_record(
        self,
        record: UnifiedImportRecord,
        raw: Any,
        warnings: list[str],
    ) -> UnifiedImportRecord:
        """Resolve artist ids to names when a lookup table is configured."""
        if not self.artist_lookup or not record.artists:
            return record

        names = []
        for artist_id in record.artists:
            name = self.artist_lookup.get(artist_id)
            if name is None:
                warnings.append(f"Artist id {artist_id} not found in lookup table")
                name = f"Artist ID {artist_id}"
            names.append(name)
        return record.model_copy(update={"artists": tuple(names)})
