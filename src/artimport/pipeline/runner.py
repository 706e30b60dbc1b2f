"""
DataPipeline - Import Orchestration

Drives every raw record through validate -> map -> dedupe-check -> export and
hands exactly one outcome per record to the ReportTracker. Records are
independent: a failure is recorded and the run moves on, nothing is retried.

Execution:
- concurrency 1 processes records sequentially in the calling thread
- concurrency N starts N worker threads draining a shared queue
- a cancellation event is checked between records, never mid-record
- dry run decides created vs duplicate against the destination without exporting
"""

import contextlib
import logging
import queue
import threading
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

from ..domain.enums import RecordStatus
from ..domain.errors import DuplicateCheckError, ExportError, RecordValidationError
from ..domain.models import ImportReport, ImportReportRecord
from ..utils import elapsed_ms
from .dedupe import DuplicateDetector, NearbyArtworkLookup
from .report import ReportTracker

logger = logging.getLogger(__name__)


class DataPipeline:
    """
    Per-run orchestrator binding one importer to one exporter.

    Args:
        importer: Importer plugin (validate_data, map_data, generate_import_id)
        exporter: Exporter plugin, already configured
        detector: DuplicateDetector with the run's scoring configuration
        tracker: ReportTracker collecting outcomes
        lookup: Nearby-artwork collaborator; None disables the duplicate check
        rules: User mapping rules; None uses the importer defaults
        concurrency: Number of worker threads
        search_radius_m: Radius of the nearby lookup, defaults to the detector's
        cancel_event: Set to stop after the records currently in flight
        dry_run: Run lookups and the duplicate decision but never call export
    """

    def __init__(
        self,
        importer: Any,
        exporter: Any,
        detector: DuplicateDetector,
        tracker: ReportTracker,
        lookup: Optional[NearbyArtworkLookup] = None,
        rules: Optional[Sequence] = None,
        concurrency: int = 1,
        search_radius_m: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        dry_run: bool = False,
    ):
        if concurrency < 1:
            raise ValueError("Concurrency must be at least 1")
        self.importer = importer
        self.exporter = exporter
        self.detector = detector
        self.tracker = tracker
        self.lookup = lookup
        self.rules = rules
        self.concurrency = concurrency
        self.search_radius_m = search_radius_m or detector.config.search_radius_m
        self.cancel_event = cancel_event or threading.Event()
        self.dry_run = dry_run
        # In-process destinations answer lookups from the records they exported,
        # so lookup and export must happen as one step for them
        self._dedupe_guard = (
            threading.Lock() if getattr(exporter, "serial_dedupe", False) else contextlib.nullcontext()
        )

    # =========================================================================
    # Run
    # =========================================================================

    def run(
        self,
        raw_records: Sequence[Any],
        offset: int = 0,
        limit: Optional[int] = None,
        input_file: Optional[str] = None,
        parameters: Optional[dict[str, Any]] = None,
    ) -> ImportReport:
        """
        Process a batch of raw records and finalize the report.

        Args:
            raw_records: Records returned by importer.read_records()
            offset: Number of leading records to skip
            limit: Maximum number of records to process
            input_file: Input path for report metadata
            parameters: Run parameters for report metadata

        Returns:
            The finalized ImportReport
        """
        if offset < 0:
            raise ValueError("Offset must be non-negative")
        if limit is not None and limit < 0:
            raise ValueError("Limit must be non-negative")

        end = None if limit is None else offset + limit
        items = list(enumerate(raw_records))[offset:end]

        self.tracker.start(
            importer=self.importer.name,
            exporter=self.exporter.name,
            input_file=input_file,
            parameters=parameters,
            input_records=len(raw_records),
            dry_run=self.dry_run,
        )
        logger.info(
            f"Importing {len(items)} of {len(raw_records)} records "
            f"with {self.importer.name} -> {self.exporter.name} (concurrency {self.concurrency})"
            + (" [dry run]" if self.dry_run else "")
        )

        try:
            if self.concurrency == 1 or len(items) <= 1:
                self._run_sequential(items)
            else:
                self._run_pooled(items)
        finally:
            close = getattr(self.exporter, "close", None)
            if callable(close):
                close()

        cancelled = self.cancel_event.is_set()
        if cancelled:
            logger.warning("Import cancelled; records not yet started were left unprocessed")
        return self.tracker.finalize(cancelled=cancelled)

    def _run_sequential(self, items: list[tuple[int, Any]]) -> None:
        for index, raw in items:
            if self.cancel_event.is_set():
                break
            self.tracker.record(self.process_record(index, raw))

    def _run_pooled(self, items: list[tuple[int, Any]]) -> None:
        pending: queue.Queue = queue.Queue()
        for item in items:
            pending.put(item)

        workers = min(self.concurrency, len(items))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="import-worker") as pool:
            futures = [pool.submit(self._drain, pending) for _ in range(workers)]
            for future in futures:
                future.result()

    def _drain(self, pending: queue.Queue) -> None:
        while not self.cancel_event.is_set():
            try:
                index, raw = pending.get_nowait()
            except queue.Empty:
                return
            self.tracker.record(self.process_record(index, raw))

    # =========================================================================
    # Single record state machine
    # =========================================================================

    def process_record(self, index: int, raw: Any) -> ImportReportRecord:
        """Run one record through every stage and return its outcome."""
        started = time.perf_counter()
        source_id = self._source_id(raw, index)

        def outcome(status: RecordStatus, **fields) -> ImportReportRecord:
            return ImportReportRecord(
                index=index,
                source_id=source_id,
                status=status,
                duration_ms=elapsed_ms(started),
                **fields,
            )

        # Validated
        try:
            validation = self.importer.validate_data(raw)
        except Exception as e:
            logger.exception(f"Unexpected error validating {source_id}")
            return outcome(RecordStatus.VALIDATION_FAILED, errors=[f"Unexpected validation error: {e}"])
        if not validation.valid:
            return outcome(
                RecordStatus.VALIDATION_FAILED,
                errors=list(validation.errors),
                warnings=list(validation.warnings),
            )

        # Mapped
        try:
            record, mapping_warnings = self.importer.map_data(raw, self.rules)
        except RecordValidationError as e:
            return outcome(
                RecordStatus.VALIDATION_FAILED,
                errors=list(e.errors),
                warnings=list(validation.warnings),
            )
        except Exception as e:
            logger.exception(f"Unexpected error mapping {source_id}")
            return outcome(
                RecordStatus.VALIDATION_FAILED,
                errors=[f"Unexpected mapping error: {e}"],
                warnings=list(validation.warnings),
            )
        warnings = list(validation.warnings) + list(mapping_warnings)
        source_id = record.source_id

        with self._dedupe_guard:
            # DedupeChecked
            best_score = None
            if self.lookup is not None:
                try:
                    nearby = self.lookup.find_nearby(record.lat, record.lon, self.search_radius_m)
                except DuplicateCheckError as e:
                    return outcome(
                        RecordStatus.EXPORT_FAILED,
                        errors=[f"Duplicate check failed: {e}"],
                        warnings=warnings,
                    )

                decision = self.detector.check(record, nearby)
                best_score = decision.best_score
                if decision.is_duplicate:
                    return outcome(
                        RecordStatus.SKIPPED_DUPLICATE,
                        matched_artwork_id=decision.matched.existing_artwork_id,
                        score=decision.matched.score,
                        candidates=decision.tied,
                        warnings=warnings,
                    )

            if self.dry_run:
                return outcome(RecordStatus.CREATED, score=best_score, warnings=warnings, dry_run=True)

            # Exported
            try:
                result = self.exporter.export(record)
            except ExportError as e:
                return outcome(RecordStatus.EXPORT_FAILED, errors=[str(e)], score=best_score, warnings=warnings)
            except Exception as e:
                logger.exception(f"Unexpected error exporting {source_id}")
                return outcome(
                    RecordStatus.EXPORT_FAILED,
                    errors=[f"Unexpected export error: {e}"],
                    score=best_score,
                    warnings=warnings,
                )

        if not result.success:
            return outcome(
                RecordStatus.EXPORT_FAILED,
                errors=[result.error or "Export failed"],
                score=best_score,
                warnings=warnings,
                photo_warnings=list(result.photo_warnings),
            )

        return outcome(
            RecordStatus.CREATED,
            created_id=result.created_id,
            score=best_score,
            warnings=warnings,
            photo_warnings=list(result.photo_warnings),
        )

    def _source_id(self, raw: Any, index: int) -> str:
        try:
            return str(self.importer.generate_import_id(raw))
        except (AttributeError, KeyError, TypeError, ValueError, IndexError):
            return f"record-{index}"
