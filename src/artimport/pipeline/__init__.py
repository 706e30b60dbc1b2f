"""
Import Pipeline Components

Core pipeline architecture: Import -> Validate -> Map -> Dedupe-check -> Export.

Components:
- transform: FieldMapper applying declarative mapping rules
- registry: PluginRegistry of named importers and exporters
- dedupe: DuplicateDetector scoring records against nearby artworks
- report: ReportTracker collecting outcomes into an ImportReport
- runner: DataPipeline orchestrating the per-record state machine
"""

from .dedupe import DuplicateDetector, NearbyArtworkLookup
from .registry import PluginRegistry
from .report import ReportTracker
from .runner import DataPipeline
from .transform import FieldMapper

__all__ = [
    "FieldMapper", "PluginRegistry", "DuplicateDetector", "NearbyArtworkLookup",
    "ReportTracker", "DataPipeline",
]
