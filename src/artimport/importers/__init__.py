"""
Importer plugins.

- vancouver-public-art: Vancouver Open Data public art export
- osm-artwork: OpenStreetMap GeoJSON artwork features
"""

from .base import BaseImporter
from .osm import OSMArtworkImporter
from .vancouver import VancouverPublicArtImporter

__all__ = ["BaseImporter", "VancouverPublicArtImporter", "OSMArtworkImporter"]
