"""
File IO, CSV row projection and export frames for the dryer record manager.
"""
from __future__ import annotations

import json
import logging
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence

import pandas as pd
from rapidfuzz import fuzz

from .models import (
    HeaderDiff,
    ImportReport,
    Record,
    RecordType,
    SkippedRow,
    normalize_dryer_model,
    normalize_record_type,
    parse_optional_float,
)
from .schema import (
    DEFAULT_DRYER_MODEL,
    FieldDescriptor,
    FieldKind,
    ModelSchema,
    SchemaRegistry,
)

_LOG = logging.getLogger(__name__)

# Fixed CSV columns
TYPE_COLUMN = "類型"
MODEL_COLUMN = "機台型號"
RTO_COLUMN = "RTO啟用狀態"
HEATING_COLUMN = "升溫狀態"

YES_LABEL = "有"
NO_LABEL = "無"

RECORD_TYPE_LABELS = {
    RecordType.EVALUATION_TEAM: "評價TEAM用",
    RecordType.CONDITION_SETTING: "條件設定用",
}

MASTER_DB_FILENAME = "all_records.json"
MERGED_DB_FILENAME = "all_records_updated.json"
FULL_EXPORT_FILENAME = "power_bi_export_full.csv"


class UnrecognizedTypePolicy(Enum):
    """What to do with a row whose record type label is not recognized."""
    SKIP = "skip"      # Drop the row with a warning
    REJECT = "reject"  # Fail the whole batch


class BatchRejectedError(ValueError):
    """Raised when a batch is rejected as a whole."""


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and pd.isna(value):
        return True
    text = str(value).strip()
    return not text or text.lower() == "null"


def _tri_state_from_label(value: Any) -> Optional[str]:
    text = "" if value is None else str(value).strip()
    if text == YES_LABEL:
        return "yes"
    if text == NO_LABEL:
        return "no"
    return None


def _tri_state_label(value: Optional[str]) -> str:
    return {"yes": YES_LABEL, "no": NO_LABEL}.get(value or "", "")


class CsvRecordParser:
    """Projects parsed CSV rows into Records using the model field schema."""

    def __init__(
        self,
        registry: SchemaRegistry,
        supported_models: Optional[Iterable[str]] = None,
        default_model: str = DEFAULT_DRYER_MODEL,
        type_policy: UnrecognizedTypePolicy = UnrecognizedTypePolicy.SKIP,
        fuzzy_threshold: int = 80
    ):
        self.registry = registry
        self.supported_models = [
            normalize_dryer_model(m) for m in (supported_models or registry.supported_models)
        ]
        self.default_model = normalize_dryer_model(default_model)
        self.type_policy = type_policy
        self.fuzzy_threshold = fuzzy_threshold

    def parse_rows(
        self,
        rows: Sequence[Mapping[str, Any]],
        headers: Optional[Sequence[str]] = None,
        source: str = ""
    ) -> ImportReport:
        """
        Convert rows into records.

        Rows with an unrecognized type label (under the SKIP policy) or an
        unsupported model are skipped with a logged reason.

        Raises:
            BatchRejectedError: under the REJECT policy, on the first row
                with an unrecognized type label
        """
        report = ImportReport(source=source)
        file_headers = [str(h).strip() for h in (headers or (rows[0].keys() if rows else []))]

        for index, row in enumerate(rows):
            type_text = str(row.get(TYPE_COLUMN) or "")
            record_type = normalize_record_type(type_text)
            if record_type is None:
                reason = f"unrecognized record type {type_text!r}"
                if self.type_policy == UnrecognizedTypePolicy.REJECT:
                    raise BatchRejectedError(f"row {index}: {reason}")
                self._skip(report, index, reason)
                continue

            model = normalize_dryer_model(row.get(MODEL_COLUMN)) or self.default_model
            if model not in self.supported_models or not self.registry.supports(model):
                self._skip(report, index, f"unsupported dryer model {model!r}")
                continue

            try:
                record = self._project_row(row, record_type, model)
            except (ValueError, TypeError) as exc:
                self._skip(report, index, f"malformed row: {exc}")
                continue
            report.records.append(record)

            if model not in report.header_diffs:
                diff = compute_header_diff(
                    self.registry.get(model).csv_headers(), file_headers, self.fuzzy_threshold
                )
                report.header_diffs[model] = diff
                if diff.extra:
                    _LOG.info("%s [%s]: %s", source or "import", model, diff.get_summary())

        _LOG.info(report.get_summary())
        return report

    @staticmethod
    def _skip(report: ImportReport, index: int, reason: str) -> None:
        _LOG.warning("skipping CSV row %d of %s: %s", index, report.source or "import", reason)
        report.skipped.append(SkippedRow(index=index, reason=reason))

    def _project_row(
        self,
        row: Mapping[str, Any],
        record_type: RecordType,
        model: str
    ) -> Record:
        schema = self.registry.get(model)
        record = Record(record_type=record_type, dryer_model=model, is_synced=True)

        for raw_header, value in row.items():
            header = str(raw_header).strip()
            if header in (TYPE_COLUMN, MODEL_COLUMN):
                continue
            if header == RTO_COLUMN:
                record.rto_status = _tri_state_from_label(value)
                continue
            if header == HEATING_COLUMN:
                record.heating_status = _tri_state_from_label(value)
                continue

            descriptor = schema.find_by_header(header)
            if descriptor is None or descriptor.is_calculated or not descriptor.accessor.settable:
                continue
            if not descriptor.applies_to(record_type) or _blank(value):
                continue

            if descriptor.kind == FieldKind.NUMBER:
                descriptor.set(record, parse_optional_float(value))
            else:
                descriptor.set(record, value)

        schema.refresh_derived_fields(record)
        return record


def compute_header_diff(
    schema_headers: list[str],
    file_headers: list[str],
    fuzzy_threshold: int = 80
) -> HeaderDiff:
    """
    Compute differences between schema CSV headers and file headers.

    Args:
        schema_headers: CSV headers of the model schema
        file_headers: Headers from the imported file
        fuzzy_threshold: Minimum similarity score for rename suggestions (0-100)

    Returns:
        HeaderDiff object with missing, extra, matched, and fuzzy matches
    """
    fixed = {TYPE_COLUMN, MODEL_COLUMN, RTO_COLUMN, HEATING_COLUMN}
    schema_set = set(schema_headers) | fixed
    file_set = {h.strip() for h in file_headers}

    matched = list(schema_set & file_set)
    missing = list(set(schema_headers) - file_set)
    extra = list(file_set - schema_set)

    # Suggest renames for unknown file headers
    fuzzy_matches: dict[str, str] = {}

    for extra_h in extra:
        best_match = None
        best_score = 0

        for missing_h in missing:
            score = fuzz.token_sort_ratio(extra_h.lower(), missing_h.lower())
            if score > best_score and score >= fuzzy_threshold:
                best_score = score
                best_match = missing_h

        if best_match:
            fuzzy_matches[extra_h] = best_match

    return HeaderDiff(
        missing=sorted(missing),
        extra=sorted(extra),
        matched=sorted(matched),
        fuzzy_matches=fuzzy_matches
    )


def apply_header_mapping(
    rows: Iterable[Mapping[str, Any]],
    column_mapping: dict[str, str]
) -> list[dict[str, Any]]:
    """
    Rename columns of parsed rows.

    Args:
        rows: Parsed CSV rows
        column_mapping: Dict mapping old_name -> new_name

    Returns:
        New row dictionaries with renamed keys
    """
    renamed = []
    for row in rows:
        renamed.append({
            column_mapping.get(str(k).strip(), k): v for k, v in row.items()
        })
    return renamed


class FileReader:
    """Reads and writes interchange files."""

    def detect_encoding(self, filepath: Path) -> str:
        """Detect file encoding."""
        encodings = ["utf-8-sig", "utf-16", "big5", "cp950", "latin-1"]

        for enc in encodings:
            try:
                with open(filepath, "r", encoding=enc) as f:
                    f.read(4096)
                return enc
            except (UnicodeDecodeError, UnicodeError):
                continue

        return "utf-8"  # Default fallback

    def read_csv_rows(self, filepath: Path | str) -> tuple[list[str], list[dict[str, Any]]]:
        """
        Read a CSV export into string-valued rows.

        Raises:
            FileNotFoundError: if the file does not exist
            ValueError: if pandas cannot parse the file
        """
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        df = pd.read_csv(
            filepath,
            encoding=self.detect_encoding(filepath),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True
        )
        headers = [str(c).strip() for c in df.columns]
        return headers, df.to_dict(orient="records")

    def read_json_records(self, filepath: Path | str) -> Any:
        """
        Read a JSON snapshot.

        Raises:
            FileNotFoundError: if the file does not exist
            ValueError: if the content is not valid JSON
        """
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")
        with open(filepath, "r", encoding="utf-8-sig") as f:
            return json.load(f)

    def write_json_records(self, records: Iterable[Record], filepath: Path | str) -> Path:
        """Write records as a pretty-printed JSON array."""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump([r.to_dict() for r in records], f, ensure_ascii=False, indent=2)
        return filepath

    def write_csv(self, frame: pd.DataFrame, filepath: Path | str) -> Path:
        """Write a frame as CSV with a UTF-8 BOM (spreadsheet friendly)."""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(filepath, index=False, encoding="utf-8-sig")
        return filepath


def _export_value(descriptor: FieldDescriptor, record: Record) -> Any:
    if descriptor.key == "recordType":
        return RECORD_TYPE_LABELS[record.record_type]
    if descriptor.key == "dryerModel":
        return record.dryer_model.upper()
    if descriptor.kind == FieldKind.STATUS:
        return _tri_state_label(descriptor.get(record))
    value = descriptor.get(record)
    return "" if value is None else value


def build_export_frame(records: Sequence[Record], schema: ModelSchema) -> pd.DataFrame:
    """
    Table export of one view.

    Columns are the in-table fields of the records' type, with type, model
    and status values written as display labels.
    """
    if not records:
        return pd.DataFrame()

    descriptors = schema.table_fields(records[0].record_type)
    headers = [d.header for d in descriptors]
    rows = [[_export_value(d, r) for d in descriptors] for r in records]
    return pd.DataFrame(rows, columns=headers)


def build_full_export_frame(records: Sequence[Record], registry: SchemaRegistry) -> pd.DataFrame:
    """
    Export every record with the union of all models' table columns.

    Columns are ordered by descriptor order and values are written raw. A
    header shared by several models reads through the record's own model.
    """
    by_header: dict[str, dict[str, FieldDescriptor]] = {}
    for model in registry.supported_models:
        for descriptor in registry.get(model).fields:
            if descriptor.in_table:
                by_header.setdefault(descriptor.header, {})[model] = descriptor

    columns = sorted(by_header.items(), key=lambda item: next(iter(item[1].values())).order)
    headers = [header for header, _ in columns]
    rows = []
    for record in records:
        row = []
        for _, per_model in columns:
            descriptor = per_model.get(record.dryer_model) or next(iter(per_model.values()))
            value = descriptor.get(record)
            row.append("" if value is None else value)
        rows.append(row)
    return pd.DataFrame(rows, columns=headers)


def main_export_filename(dryer_model: str, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")
    return f"乾燥機數據_{dryer_model}_{stamp}.csv"


def daily_export_filename(day: date) -> str:
    return f"tablet-data-{day.isoformat()}.json"
