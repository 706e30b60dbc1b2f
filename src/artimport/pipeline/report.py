"""
ReportTracker - Per-Record Outcomes and Run Summary

Collects one ImportReportRecord per processed source record. ``record`` is
safe to call from pipeline worker threads and only appends under a lock;
nothing touches the disk until ``write`` is called on the finalized report.
"""

import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from ..domain.enums import RecordStatus
from ..domain.models import ImportReport, ImportReportRecord, ReportMetadata, ReportSummary
from ..utils import clean_filename, timestamp_slug, write_json_file

logger = logging.getLogger(__name__)


class ReportTracker:
    """Thread-safe, append-only collector for one import run."""

    def __init__(self, reports_dir: Path = Path("reports")):
        self.reports_dir = Path(reports_dir)
        self._records: list[ImportReportRecord] = []
        self._lock = threading.Lock()
        self._metadata: Optional[ReportMetadata] = None
        self._started: Optional[float] = None
        self._report: Optional[ImportReport] = None

    def start(
        self,
        importer: str,
        exporter: str,
        input_file: Optional[str] = None,
        parameters: Optional[dict[str, Any]] = None,
        input_records: int = 0,
        dry_run: bool = False,
    ) -> None:
        """Stamp run metadata and start the clock."""
        self._metadata = ReportMetadata(
            importer=importer,
            exporter=exporter,
            input_file=input_file,
            started_at=datetime.now(),
            input_records=input_records,
            dry_run=dry_run,
            parameters=parameters or {},
        )
        self._started = time.perf_counter()

    def record(self, outcome: ImportReportRecord) -> None:
        """Append one outcome. Never discards rows, failed ones included."""
        if self._report is not None:
            raise RuntimeError("Report already finalized")
        with self._lock:
            self._records.append(outcome)

        if outcome.dry_run:
            logger.info(f"[{outcome.index}] {outcome.source_id}: would be created (dry run)")
        elif outcome.status == RecordStatus.CREATED:
            logger.info(f"[{outcome.index}] {outcome.source_id}: created {outcome.created_id or ''}".rstrip())
        elif outcome.status == RecordStatus.SKIPPED_DUPLICATE:
            logger.info(
                f"[{outcome.index}] {outcome.source_id}: duplicate of {outcome.matched_artwork_id} "
                f"(score {outcome.score:.2f})"
            )
        else:
            logger.warning(
                f"[{outcome.index}] {outcome.source_id}: {outcome.status.value} - {'; '.join(outcome.errors)}"
            )

    @property
    def records(self) -> list[ImportReportRecord]:
        with self._lock:
            return list(self._records)

    def finalize(self, cancelled: bool = False) -> ImportReport:
        """
        Build the summary and freeze the report. Callable exactly once.

        Returns:
            The finished ImportReport with rows in input order

        Raises:
            RuntimeError: If called twice or before start()
        """
        if self._report is not None:
            raise RuntimeError("Report already finalized")
        if self._metadata is None or self._started is None:
            raise RuntimeError("ReportTracker.start() was never called")

        elapsed = time.perf_counter() - self._started
        with self._lock:
            rows = sorted(self._records, key=lambda r: r.index)

        counts = {status: 0 for status in RecordStatus}
        for row in rows:
            counts[row.status] += 1

        total = len(rows)
        total_duration = round(sum(row.duration_ms for row in rows), 3)
        summary = ReportSummary(
            total=total,
            created=counts[RecordStatus.CREATED],
            skipped_duplicate=counts[RecordStatus.SKIPPED_DUPLICATE],
            validation_failed=counts[RecordStatus.VALIDATION_FAILED],
            export_failed=counts[RecordStatus.EXPORT_FAILED],
            failed=counts[RecordStatus.VALIDATION_FAILED] + counts[RecordStatus.EXPORT_FAILED],
            total_duration_ms=total_duration,
            average_duration_ms=round(total_duration / total, 3) if total else 0.0,
            records_per_second=round(total / elapsed, 3) if elapsed > 0 else 0.0,
        )

        metadata = self._metadata.model_copy(update={
            'finished_at': datetime.now(),
            'duration_seconds': round(elapsed, 3),
            'cancelled': cancelled,
        })
        self._report = ImportReport(metadata=metadata, summary=summary, records=rows)
        logger.info(f"Import finished: {summary.one_line()}")
        return self._report

    def default_path(self, report: ImportReport) -> Path:
        """reports/<timestamp>-<importer>-<exporter>.json"""
        name = "-".join([
            timestamp_slug(report.metadata.started_at),
            clean_filename(report.metadata.importer),
            clean_filename(report.metadata.exporter),
        ])
        return self.reports_dir / f"{name}.json"

    def write(self, report: ImportReport, path: Optional[Path] = None) -> Path:
        """Serialize a finalized report to JSON."""
        target = Path(path) if path else self.default_path(report)
        write_json_file(target, report.model_dump(mode="json"))
        logger.info(f"Report written to {target}")
        return target
