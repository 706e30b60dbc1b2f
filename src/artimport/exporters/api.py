"""
API exporter: creates artworks on the destination platform over HTTP.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from ..api_client import ArtworkApiClient
from ..config.settings import ConfigurationError
from ..domain.errors import ExportError, PhotoDownloadError
from ..domain.models import ExportResult, UnifiedImportRecord, ValidationResult
from ..photo_cache import PhotoCache
from .base import BaseExporter

logger = logging.getLogger(__name__)


class ApiExporter(BaseExporter):
    """
    Posts one record at a time to the platform's mass-import endpoint.

    Options:
        base_url: Platform root URL
        token: Bearer token
        timeout: Request timeout in seconds
        request_delay: Minimum seconds between requests
        auto_approve: Ask the platform to skip moderation
        download_photos: Verify photos by downloading them into the cache first
        photo_cache_dir: Where downloaded photos are kept
    """

    name = "api"
    description = "Creates artworks through the platform's mass-import REST endpoint"
    option_names = (
        "base_url",
        "token",
        "timeout",
        "request_delay",
        "auto_approve",
        "download_photos",
        "photo_cache_dir",
    )

    def __init__(self):
        super().__init__()
        self.client: Optional[ArtworkApiClient] = None
        self.photo_cache: Optional[PhotoCache] = None
        self.auto_approve = False

    def configure(self, options: Optional[dict[str, Any]] = None) -> None:
        super().configure(options)
        result = self.validate()
        if not result.valid:
            raise ConfigurationError("; ".join(result.errors))
        for warning in result.warnings:
            logger.warning(warning)

        self.client = ArtworkApiClient(
            base_url=str(self.options["base_url"]),
            token=self.options.get("token"),
            timeout=float(self.options.get("timeout") or 30.0),
            request_delay=float(self.options.get("request_delay") or 0.0),
        )
        self.auto_approve = bool(self.options.get("auto_approve", False))
        if self.options.get("download_photos"):
            self.photo_cache = PhotoCache(Path(self.options.get("photo_cache_dir") or ".cache/photos"))

    def validate(self, config: Optional[dict[str, Any]] = None) -> ValidationResult:
        config = self.options if config is None else config
        result = super().validate(config)
        errors = list(result.errors)
        warnings = list(result.warnings)

        base_url = config.get("base_url")
        if not base_url:
            errors.append("API exporter requires base_url (MASS_IMPORT_API_URL)")
        elif not str(base_url).startswith(("http://", "https://")):
            errors.append(f"base_url must include protocol, got '{base_url}'")

        for key, minimum, inclusive in (("timeout", 0.0, False), ("request_delay", 0.0, True)):
            value = config.get(key)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                errors.append(f"{key} must be a number, got {value!r}")
            elif value < minimum or (value == minimum and not inclusive):
                errors.append(f"{key} must be {'non-negative' if inclusive else 'positive'}, got {value}")

        for key in ("auto_approve", "download_photos"):
            value = config.get(key)
            if value is not None and not isinstance(value, bool):
                errors.append(f"{key} must be true or false, got {value!r}")

        if not config.get("token"):
            warnings.append(
                "No API token configured (MASS_IMPORT_API_TOKEN); "
                "the endpoint must allow unauthenticated requests"
            )
        return ValidationResult.from_errors(errors, warnings)

    def nearby_lookup(self) -> Optional[ArtworkApiClient]:
        return self.client

    def build_payload(self, record: UnifiedImportRecord, photo_urls: list[str]) -> dict[str, Any]:
        return {
            "external_id": record.source_id,
            "title": record.title or "Untitled Artwork",
            "description": record.description or "",
            "lat": record.lat,
            "lon": record.lon,
            "tags": dict(record.tags),
            "artists": list(record.artists),
            "photos": photo_urls,
            "auto_approve": self.auto_approve,
        }

    def _checked_photos(self, record: UnifiedImportRecord) -> tuple[list[str], list[str]]:
        """Photo URLs to submit and warnings for the ones that failed."""
        if self.photo_cache is None:
            return list(record.photo_urls), []

        kept, warnings = [], []
        for url in record.photo_urls:
            try:
                self.photo_cache.fetch(url)
                kept.append(url)
            except PhotoDownloadError as e:
                warnings.append(str(e))
        return kept, warnings

    def export(self, record: UnifiedImportRecord) -> ExportResult:
        if self.client is None:
            raise ExportError("API exporter used before configure()")

        photo_urls, photo_warnings = self._checked_photos(record)
        try:
            data = self.client.create_artwork(self.build_payload(record, photo_urls))
        except ExportError as e:
            return ExportResult(
                success=False,
                error=str(e),
                status_code=e.status_code,
                photo_warnings=photo_warnings,
            )

        created_id = data.get("artwork_id") or data.get("id")
        return ExportResult(
            success=True,
            created_id=str(created_id) if created_id is not None else None,
            photo_warnings=photo_warnings,
        )

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
