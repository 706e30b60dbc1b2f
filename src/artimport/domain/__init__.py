"""
Domain Models and Types

This module contains the core domain models, enumerations and errors used
throughout the import pipeline.

Models:
- UnifiedImportRecord: Canonical artwork record produced by every importer
- AssignRule / AppendRule: Typed field mapping rules
- ExistingArtwork, DuplicateCandidate, DuplicateDecision: Duplicate detection
- ImportReportRecord, ImportReport: Run reporting

Enums:
- RecordStatus: Terminal status of a processed record
- PluginType: importer or exporter
"""

from .enums import ConsoleFormat, OutputFormat, PluginType, RecordStatus
from .models import (
    AppendRule,
    AssignRule,
    DuplicateCandidate,
    DuplicateDecision,
    ExistingArtwork,
    ExportResult,
    FieldMappingRule,
    ImportReport,
    ImportReportRecord,
    MatchSignals,
    ReportMetadata,
    ReportSummary,
    UnifiedImportRecord,
    ValidationResult,
)

__all__ = [
    "UnifiedImportRecord", "AssignRule", "AppendRule", "FieldMappingRule",
    "ExistingArtwork", "MatchSignals", "DuplicateCandidate", "DuplicateDecision",
    "ValidationResult", "ExportResult", "ImportReportRecord", "ImportReport",
    "ReportMetadata", "ReportSummary",
    "RecordStatus", "PluginType", "OutputFormat", "ConsoleFormat",
]
