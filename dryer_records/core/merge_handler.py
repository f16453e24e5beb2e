"""
Merge and reconciliation of record batches from external sources.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .io_handler import BatchRejectedError, CsvRecordParser, FileReader
from .models import ImportReport, Record, RecordFormatError
from .record_store import RecordLike, ingest_record, normalize_record, sort_by_date_desc
from .results import ErrorKind, OperationResult
from .schema import SchemaRegistry

_LOG = logging.getLogger(__name__)


@dataclass
class MasterBuild:
    """Outcome of building a master database from several files."""
    records: list[Record] = field(default_factory=list)
    reports: list[ImportReport] = field(default_factory=list)

    @property
    def failed_sources(self) -> list[str]:
        return [r.source for r in self.reports if r.failed]

    @property
    def skipped_rows(self) -> int:
        return sum(len(r.skipped) for r in self.reports)


def merge_snapshots(
    master: Optional[Iterable[RecordLike]],
    daily: Optional[Iterable[RecordLike]],
    registry: SchemaRegistry
) -> list[Record]:
    """
    Merge a canonical snapshot with a daily delta.

    Both inputs are normalized independently. When both contain the same id
    the daily version wins. Every output record is marked synced and the
    result is sorted newest first. Nothing outside the returned list changes.

    Args:
        master: Records of the canonical snapshot
        daily: Records exported from a device during the day
        registry: Schema provider for normalization

    Returns:
        New canonical record list
    """
    merged: dict[str, Record] = {}
    for source, items in (("master", master), ("daily", daily)):
        taken: set[str] = set()
        for i, item in enumerate(items or []):
            try:
                record = ingest_record(item)
            except RecordFormatError as exc:
                _LOG.warning("skipping %s record #%d: %s", source, i, exc)
                continue
            record.is_synced = True
            normalize_record(record, registry, taken)
            if record.id in merged:
                _LOG.debug("daily record %s replaces the master copy", record.id)
            merged[record.id] = record

    result = sort_by_date_desc(merged.values())
    _LOG.info("merged snapshots into %d records", len(result))
    return result


class RecordMerger:
    """Builds canonical record sets out of CSV and JSON files."""

    def __init__(
        self,
        registry: SchemaRegistry,
        parser: Optional[CsvRecordParser] = None,
        reader: Optional[FileReader] = None
    ):
        self.registry = registry
        self.parser = parser or CsvRecordParser(registry)
        self.reader = reader or FileReader()

    def import_csv(self, filepath: Path | str) -> ImportReport:
        """
        Read one CSV file and project its rows.

        A file that cannot be read or parsed yields a failed report instead
        of raising.
        """
        source = Path(filepath).name
        try:
            headers, rows = self.reader.read_csv_rows(filepath)
        except (OSError, ValueError) as exc:
            _LOG.error("reading %s failed: %s", filepath, exc)
            return ImportReport(source=source, error=f"Cannot read file: {exc}")

        try:
            return self.parser.parse_rows(rows, headers, source=source)
        except BatchRejectedError as exc:
            _LOG.error("batch %s rejected: %s", source, exc)
            return ImportReport(source=source, error=f"Batch rejected: {exc}")

    def build_master(self, filepaths: Iterable[Path | str]) -> OperationResult:
        """
        Build a master database out of many CSV files.

        Each file is isolated: one that fails is recorded in its report and
        the others still count.

        Returns:
            Result whose value is a MasterBuild
        """
        build = MasterBuild()
        taken: set[str] = set()
        for path in filepaths:
            report = self.import_csv(path)
            build.reports.append(report)
            for record in report.records:
                record.is_synced = True
                build.records.append(normalize_record(record, self.registry, taken))

        build.records = sort_by_date_desc(build.records)

        if not build.records:
            return OperationResult.failure(
                ErrorKind.VALIDATION, "No valid data found in the selected files.", build
            )

        message = (
            f"Master database built: {len(build.records)} records "
            f"from {len(build.reports)} files."
        )
        if build.failed_sources:
            _LOG.warning("files skipped while building master: %s", build.failed_sources)
            return OperationResult.partial(
                f"{message} Skipped: {', '.join(build.failed_sources)}.", build
            )
        return OperationResult.success(message, build)

    def merge_files(
        self,
        master_path: Path | str,
        daily_path: Path | str
    ) -> OperationResult:
        """
        Merge a master JSON snapshot with a daily JSON export.

        Returns:
            Result whose value is the merged record list
        """
        payloads = []
        for path in (master_path, daily_path):
            try:
                payload = self.reader.read_json_records(path)
            except (OSError, ValueError) as exc:
                _LOG.error("reading %s failed: %s", path, exc)
                return OperationResult.failure(
                    ErrorKind.VALIDATION, f"Cannot read {Path(path).name}: {exc}"
                )
            if not isinstance(payload, list):
                return OperationResult.failure(
                    ErrorKind.VALIDATION, f"{Path(path).name} is not a list of records."
                )
            payloads.append(payload)

        merged = merge_snapshots(payloads[0], payloads[1], self.registry)
        return OperationResult.success(f"Merge complete: {len(merged)} records.", merged)
