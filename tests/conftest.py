"""
Shared test fixtures.
"""

import logging
import os
import threading
from typing import Optional

import pytest

from artimport.domain.enums import PluginType
from artimport.domain.models import (
    ExistingArtwork,
    ExportResult,
    UnifiedImportRecord,
    ValidationResult,
)
from artimport.pipeline.dedupe import geodesic_distance_m

# ===================
# IN-MEMORY DESTINATION
# ===================

class InMemoryDestination:
    """Exporter and nearby lookup backed by a list, standing in for the platform."""

    plugin_type = PluginType.EXPORTER
    name = "memory"
    description = "In-memory destination for tests"
    option_names = ()
    serial_dedupe = True

    def __init__(self, fail_with: Optional[str] = None, lookup_error: Optional[Exception] = None):
        self.artworks: list[ExistingArtwork] = []
        self.exported: list[UnifiedImportRecord] = []
        self.fail_with = fail_with
        self.lookup_error = lookup_error
        self.closed = False
        self.lookups = 0
        self._lock = threading.Lock()

    def configure(self, options=None):
        pass

    def validate(self, config=None):
        return ValidationResult(valid=True)

    def nearby_lookup(self):
        return self

    def find_nearby(self, lat, lon, radius_m):
        self.lookups += 1
        if self.lookup_error is not None:
            raise self.lookup_error
        with self._lock:
            return [
                artwork for artwork in self.artworks
                if geodesic_distance_m(lat, lon, artwork.lat, artwork.lon) <= radius_m
            ]

    def export(self, record):
        if self.fail_with:
            return ExportResult(success=False, error=self.fail_with, status_code=422)
        with self._lock:
            artwork_id = f"art-{len(self.artworks) + 1:03d}"
            self.exported.append(record)
            self.artworks.append(ExistingArtwork(
                id=artwork_id,
                title=record.title,
                artists=list(record.artists),
                lat=record.lat,
                lon=record.lon,
                tags=dict(record.tags),
            ))
        return ExportResult(success=True, created_id=artwork_id)

    def close(self):
        self.closed = True


# ===================
# FIXTURES
# ===================

@pytest.fixture
def destination():
    """Empty in-memory destination."""
    return InMemoryDestination()


@pytest.fixture
def solo_record():
    """Vancouver record used by the end-to-end scenarios."""
    return {
        "title_of_work": "Solo",
        "artists": ["103"],
        "geo_point_2d": {"lat": 49.293313, "lon": -123.133965},
    }


@pytest.fixture
def vancouver_record():
    """Fuller Vancouver Open Data record."""
    return {
        "registryid": 82,
        "title_of_work": "Digital Orca",
        "artistprojectstatement": "A pixelated killer whale.",
        "descriptionofwork": "Aluminium and powder-coated steel.",
        "type": "Sculpture",
        "status": "In place",
        "neighbourhood": "Downtown",
        "yearofinstallation": "2009",
        "primarymaterial": "Aluminium",
        "artists": ["87"],
        "photourl": {"url": "https://example.org/photos/orca.jpg"},
        "geo_point_2d": {"lat": 49.289256, "lon": -123.117103},
    }


@pytest.fixture
def osm_feature():
    """OpenStreetMap artwork node as a GeoJSON feature."""
    return {
        "type": "Feature",
        "properties": {
            "id": "node/123456",
            "name": "The Drop",
            "tourism": "artwork",
            "artwork_type": "sculpture",
            "artist_name": "Inges Idee",
            "start_date": "2009-06",
            "description": "Giant blue raindrop.",
        },
        "geometry": {"type": "Point", "coordinates": [-123.1178, 49.2894]},
    }


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Run in an empty directory with no MASS_IMPORT_* variables set."""
    for key in list(os.environ):
        if key.startswith("MASS_IMPORT_") or key == "ENVIRONMENT":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MASS_IMPORT_REPORTS_DIR", str(tmp_path / "reports"))
    return tmp_path


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by CLI runs so later tests never log to closed streams."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
