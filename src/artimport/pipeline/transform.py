"""
FieldMapper - Declarative Record Mapping

Turns one raw source record into a UnifiedImportRecord by evaluating an
ordered list of AssignRule / AppendRule objects. Evaluation is a pure
function of the raw record, the rules and the optional defaults: no clock,
no randomness, no state carried between calls.
"""

import json
import logging
from collections.abc import Sequence
from typing import Any, Optional

from pydantic import ValidationError

from ..domain.errors import MappingError
from ..domain.models import (
    LIST_TARGETS,
    TAG_PREFIX,
    AppendRule,
    AssignRule,
    UnifiedImportRecord,
)
from ..domain.paths import MISSING, parse_path, resolve_path

logger = logging.getLogger(__name__)

PART_SEPARATOR = "\n\n"
VALUE_PLACEHOLDER = "{value}"

_RECORD_FIELDS = {
    "artwork.title": "title",
    "artwork.description": "description",
    "artwork.lat": "lat",
    "artwork.lon": "lon",
    "artwork.artists": "artists",
    "artwork.photos": "photo_urls",
}


def stringify(value: Any) -> str:
    """
    Render a source value as text for a scalar target.

    Lists are joined with ", ", objects become compact key-sorted JSON,
    booleans are lower-case like their JSON spelling.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        return ", ".join(stringify(item) for item in value if item is not None)
    if isinstance(value, dict):
        return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def render_template(template: Optional[str], text: str) -> str:
    """Wrap text in a rule template; a template without {value} is a prefix."""
    if not template:
        return text
    if VALUE_PLACEHOLDER in template:
        return template.replace(VALUE_PLACEHOLDER, text)
    return template + text


class FieldMapper:
    """
    Applies mapping rules to raw records.

    Each target keeps an ordered list of parts. ``assign`` replaces the list
    with a single part, ``append`` adds to it. Scalar text targets join their
    parts with a blank line, list targets (artists, photos) keep them as
    separate items.
    """

    def apply(
        self,
        raw: Any,
        rules: Sequence[AssignRule | AppendRule],
        *,
        source_id: str,
        defaults: Optional[dict[str, Any]] = None,
    ) -> tuple[UnifiedImportRecord, list[str]]:
        """
        Map a raw record.

        Args:
            raw: Source record as parsed from JSON
            rules: Ordered mapping rules
            source_id: Stable identifier to stamp on the record
            defaults: Base values (title, description, lat, lon, tags,
                artists, photo_urls) that rules may override or extend

        Returns:
            Tuple of (record, warnings)

        Raises:
            MappingError: If the mapped values cannot form a valid record
        """
        parts: dict[str, list[str]] = {}
        tag_parts: dict[str, list[str]] = {}
        warnings: list[str] = []

        self._seed_defaults(defaults or {}, parts, tag_parts)

        for position, rule in enumerate(rules, start=1):
            value = resolve_path(raw, parse_path(rule.source_path))
            label = f"Rule {position} ({rule.source_path} -> {rule.target_field})"

            if value is MISSING or value is None:
                warnings.append(f"{label}: source path not found")
                continue

            rendered = self._render(rule, value)
            if not rendered:
                warnings.append(f"{label}: source value is empty")
                continue

            if rule.target_field.startswith(TAG_PREFIX):
                key = rule.target_field[len(TAG_PREFIX):]
                bucket = tag_parts
            else:
                key = _RECORD_FIELDS[rule.target_field]
                bucket = parts

            if rule.operation == "assign":
                bucket[key] = rendered
            else:
                bucket.setdefault(key, []).extend(rendered)

        return self._build(raw, source_id, parts, tag_parts), warnings

    def _render(self, rule: AssignRule | AppendRule, value: Any) -> list[str]:
        """Turn a resolved value into the parts it contributes."""
        if rule.target_field in LIST_TARGETS:
            items = value if isinstance(value, list) else [value]
            rendered = []
            for item in items:
                text = stringify(item).strip() if item is not None else ""
                if text:
                    rendered.append(render_template(rule.template, text))
            return rendered

        text = stringify(value).strip()
        if not text:
            return []
        return [render_template(rule.template, text)]

    def _seed_defaults(
        self,
        defaults: dict[str, Any],
        parts: dict[str, list[str]],
        tag_parts: dict[str, list[str]],
    ) -> None:
        for name in ("title", "description", "lat", "lon"):
            if defaults.get(name) is not None:
                parts[name] = [stringify(defaults[name])]
        for name in ("artists", "photo_urls"):
            if defaults.get(name):
                parts[name] = [stringify(item) for item in defaults[name]]
        for key, value in (defaults.get("tags") or {}).items():
            if value is not None:
                tag_parts[key] = [stringify(value)]

    def _build(
        self,
        raw: Any,
        source_id: str,
        parts: dict[str, list[str]],
        tag_parts: dict[str, list[str]],
    ) -> UnifiedImportRecord:
        lat = self._coordinate(parts, "lat")
        lon = self._coordinate(parts, "lon")

        def joined(name: str) -> Optional[str]:
            values = parts.get(name)
            return PART_SEPARATOR.join(values) if values else None

        try:
            return UnifiedImportRecord(
                source_id=source_id,
                title=joined("title"),
                description=joined("description"),
                lat=lat,
                lon=lon,
                tags={key: PART_SEPARATOR.join(values) for key, values in tag_parts.items() if values},
                artists=tuple(parts.get("artists", ())),
                photo_urls=tuple(parts.get("photo_urls", ())),
                raw=raw,
            )
        except ValidationError as e:
            messages = [error["msg"] for error in e.errors()]
            raise MappingError(f"Invalid mapped record {source_id}: {'; '.join(messages)}", messages)

    @staticmethod
    def _coordinate(parts: dict[str, list[str]], name: str) -> float:
        values = parts.get(name)
        if not values:
            raise MappingError(f"Mapped record has no {'latitude' if name == 'lat' else 'longitude'}")
        try:
            return float(values[-1])
        except ValueError:
            raise MappingError(f"Mapped {name} '{values[-1]}' is not a number")
