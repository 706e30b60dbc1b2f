"""
Import Domain Models

Pydantic models for type safety and validation across the pipeline.
These models ensure data integrity and provide clear interfaces between
importers, the duplicate detector, exporters and the report tracker.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from .enums import RecordStatus
from .paths import parse_path

# Core record fields a mapping rule may write besides ``tag:<key>``
SCALAR_TARGETS = ("artwork.title", "artwork.description", "artwork.lat", "artwork.lon")
LIST_TARGETS = ("artwork.artists", "artwork.photos")
TAG_PREFIX = "tag:"


class TagMap(dict):
    """Tag dictionary that rejects in-place changes once a record is built."""

    def _read_only(self, *args, **kwargs):
        raise TypeError("Record tags are read-only; build a new record instead")

    __setitem__ = __delitem__ = __ior__ = _read_only
    clear = pop = popitem = setdefault = update = _read_only

    def __reduce__(self):
        return (TagMap, (dict(self),))


class UnifiedImportRecord(BaseModel):
    """Canonical, source-independent representation of one importable artwork."""
    source_id: str = Field(..., description="Stable identifier of the source record")
    title: Optional[str] = Field(None, description="Artwork title")
    description: Optional[str] = Field(None, description="Markdown description")
    lat: float = Field(..., description="Latitude in decimal degrees")
    lon: float = Field(..., description="Longitude in decimal degrees")
    tags: dict[str, str] = Field(default_factory=TagMap, description="Ordered tag map, read-only")
    artists: tuple[str, ...] = Field(default=(), description="Ordered artist names")
    photo_urls: tuple[str, ...] = Field(default=(), description="Remote photo URLs")
    raw: Any = Field(None, description="Original source payload, kept for audit only")

    class Config:
        """Pydantic configuration."""
        frozen = True

    @model_validator(mode="after")
    def check_coordinates(self) -> "UnifiedImportRecord":
        if not -90 <= self.lat <= 90:
            raise ValueError(f"Latitude {self.lat} outside [-90, 90]")
        if not -180 <= self.lon <= 180:
            raise ValueError(f"Longitude {self.lon} outside [-180, 180]")
        if self.lat == 0 and self.lon == 0:
            raise ValueError("Coordinates (0, 0) are not a valid artwork location")
        return self

    @field_validator("tags")
    @classmethod
    def freeze_tags(cls, value: dict[str, str]) -> dict[str, str]:
        return TagMap(value)


class _MappingRuleBase(BaseModel):
    source_path: str = Field(..., alias="sourcePath", description="Path into the raw record")
    target_field: str = Field(..., alias="targetField", description="Record field or tag:<key>")
    template: Optional[str] = Field(None, description="Text wrapped around the value, {value} placeholder")

    class Config:
        """Pydantic configuration."""
        frozen = True
        populate_by_name = True
        extra = "forbid"

    @field_validator("source_path")
    @classmethod
    def check_source_path(cls, value: str) -> str:
        parse_path(value)
        return value

    @field_validator("target_field")
    @classmethod
    def check_target_field(cls, value: str) -> str:
        if value in SCALAR_TARGETS or value in LIST_TARGETS:
            return value
        if value.startswith(TAG_PREFIX) and value[len(TAG_PREFIX):].strip():
            return value
        allowed = ", ".join(SCALAR_TARGETS + LIST_TARGETS + ("tag:<key>",))
        raise ValueError(f"Unknown target field '{value}'. Allowed: {allowed}")


class AssignRule(_MappingRuleBase):
    """Replace whatever earlier rules wrote to the target."""
    operation: Literal["assign"] = "assign"


class AppendRule(_MappingRuleBase):
    """Add another part to the target, joined with a blank line at the end."""
    operation: Literal["append"] = "append"


FieldMappingRule = Annotated[Union[AssignRule, AppendRule], Field(discriminator="operation")]


class ExistingArtwork(BaseModel):
    """Artwork already present at the destination, as returned by a nearby lookup."""
    id: str = Field(..., description="Destination artwork identifier")
    title: Optional[str] = Field(None, description="Artwork title")
    artists: list[str] = Field(default_factory=list, description="Artist names")
    lat: float = Field(..., description="Latitude in decimal degrees")
    lon: float = Field(..., description="Longitude in decimal degrees")
    tags: dict[str, str] = Field(default_factory=dict, description="Tag map")


class MatchSignals(BaseModel):
    """Per-signal score contributions for one comparison."""
    title: float = 0.0
    artist: float = 0.0
    location: float = 0.0
    tags: float = 0.0
    distance_m: Optional[float] = Field(None, description="Geodesic distance between the two points")
    matching_tags: list[str] = Field(default_factory=list, description="Tag keys with equal values")


class DuplicateCandidate(BaseModel):
    """Scored comparison between a new record and one existing artwork."""
    existing_artwork_id: str
    score: float = Field(..., ge=0.0, le=1.0)
    signals: MatchSignals


class DuplicateDecision(BaseModel):
    """Threshold decision over every candidate of one record."""
    is_duplicate: bool
    threshold: float
    matched: Optional[DuplicateCandidate] = None
    tied: list[DuplicateCandidate] = Field(default_factory=list)
    candidates: list[DuplicateCandidate] = Field(default_factory=list)

    @property
    def best_score(self) -> Optional[float]:
        return self.candidates[0].score if self.candidates else None


class ValidationResult(BaseModel):
    """Outcome of a structural check on a raw record or plugin configuration."""
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: list[str], warnings: Optional[list[str]] = None) -> "ValidationResult":
        return cls(valid=not errors, errors=errors, warnings=warnings or [])


class ExportResult(BaseModel):
    """What an exporter reports back for one record."""
    success: bool
    created_id: Optional[str] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    photo_warnings: list[str] = Field(default_factory=list)


class ImportReportRecord(BaseModel):
    """One report row per processed source record."""
    index: int = Field(..., description="Position of the record in the input")
    source_id: str
    status: RecordStatus
    matched_artwork_id: Optional[str] = None
    score: Optional[float] = None
    candidates: list[DuplicateCandidate] = Field(default_factory=list, description="Tied top candidates")
    created_id: Optional[str] = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list, description="Mapping warnings")
    photo_warnings: list[str] = Field(default_factory=list)
    duration_ms: float = 0.0
    dry_run: bool = Field(False, description="Would have been exported; export was not called")
    timestamp: datetime = Field(default_factory=datetime.now)

    @property
    def failed(self) -> bool:
        return self.status in (RecordStatus.VALIDATION_FAILED, RecordStatus.EXPORT_FAILED)


class ReportMetadata(BaseModel):
    """Run-level context for an import report."""
    importer: str
    exporter: str
    input_file: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    input_records: int = 0
    cancelled: bool = False
    dry_run: bool = False
    parameters: dict[str, Any] = Field(default_factory=dict)


class ReportSummary(BaseModel):
    """Counts per status and throughput for a finished run."""
    total: int = 0
    created: int = 0
    skipped_duplicate: int = 0
    validation_failed: int = 0
    export_failed: int = 0
    failed: int = 0
    total_duration_ms: float = 0.0
    average_duration_ms: float = 0.0
    records_per_second: float = 0.0

    def one_line(self) -> str:
        """Human readable single-line summary for the console."""
        return (
            f"total={self.total} created={self.created} "
            f"skipped_duplicate={self.skipped_duplicate} "
            f"validation_failed={self.validation_failed} "
            f"export_failed={self.export_failed}"
        )


class ImportReport(BaseModel):
    """Full output of one import run."""
    metadata: ReportMetadata
    summary: ReportSummary
    records: list[ImportReportRecord] = Field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return self.summary.failed > 0
