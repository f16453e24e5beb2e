"""
Record session: the controller that turns UI intents into core operations
and publishes their outcome through Qt signals.
"""
from __future__ import annotations

import dataclasses
import logging
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence, Union

import pandas as pd
from PySide6.QtCore import QObject, Signal

from ..config import Settings
from .comparison import ComparisonAnalysis, RecordComparer
from .filter_manager import FilterManager
from .golden_batch import GoldenBatchRegistry
from .io_handler import (
    FULL_EXPORT_FILENAME,
    MASTER_DB_FILENAME,
    MERGED_DB_FILENAME,
    CsvRecordParser,
    FileReader,
    UnrecognizedTypePolicy,
    build_export_frame,
    build_full_export_frame,
    daily_export_filename,
    main_export_filename,
)
from .merge_handler import RecordMerger
from .models import FilterState, PageView, RecordType, ViewScope, today
from .record_store import RecordLike, RecordStore
from .results import ErrorKind, MessageLevel, OperationResult
from .schema import SchemaRegistry, default_registry
from .storage import JsonFileStorage, KeyValueStorage

_LOG = logging.getLogger(__name__)


class RecordSession(QObject):
    """
    Owns the record store and view state of one user session.

    Every intent returns an OperationResult and posts its message through
    ``message_posted``. Intents that change what is visible emit
    ``data_updated`` with the new PageView.
    """

    data_updated = Signal(object)        # PageView
    comparison_updated = Signal(object)  # ComparisonAnalysis or None
    message_posted = Signal(str, str)    # level, text

    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[KeyValueStorage] = None,
        registry: Optional[SchemaRegistry] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)
        self.settings = settings or Settings()
        self.registry = registry or default_registry(self.settings.supported_models)
        self.storage = storage if storage is not None else JsonFileStorage(self.settings.storage_dir)

        self.store = RecordStore(self.storage, self.registry)
        self.view = FilterManager(
            self.registry,
            page_size=self.settings.page_size,
            scope=ViewScope(dryer_model=self.settings.default_dryer_model)
        )
        self.golden_batches = GoldenBatchRegistry(self.storage)
        self.comparer = RecordComparer(self.registry)
        self.reader = FileReader()
        self.merger = RecordMerger(
            self.registry,
            parser=CsvRecordParser(
                self.registry,
                supported_models=self.settings.supported_models,
                default_model=self.settings.default_dryer_model,
                type_policy=UnrecognizedTypePolicy(self.settings.unrecognized_record_type),
                fuzzy_threshold=self.settings.header_fuzzy_threshold
            ),
            reader=self.reader
        )
        self.comparison: Optional[ComparisonAnalysis] = None

    # --- plumbing ------------------------------------------------------------

    def _notify(self, result: OperationResult) -> OperationResult:
        """Forward a result's message to the UI."""
        if result.level == MessageLevel.ERROR:
            _LOG.warning("%s: %s", result.error.name if result.error else "error", result.message)
        else:
            _LOG.debug(result.message)
        if result.message:
            self.message_posted.emit(result.level.value, result.message)
        return result

    def refresh(self) -> PageView:
        """Recompute the visible page and publish it."""
        page = self.view.query(self.store.records)
        page.golden_batch_id = self.golden_batches.get(self.view.scope.dryer_model)
        self.data_updated.emit(page)
        return page

    def _write_failed(self, exc: OSError) -> OperationResult:
        _LOG.error("writing export failed: %s", exc)
        return OperationResult.failure(ErrorKind.PERSISTENCE, f"Export failed: {exc}")

    # --- lifecycle -----------------------------------------------------------

    def initialize(self) -> OperationResult:
        """Load persisted records and publish the first page."""
        result = self.store.load()
        self.refresh()
        return self._notify(result)

    def add_record(self, payload: RecordLike) -> OperationResult:
        result = self.store.add(payload)
        if result.ok or result.error == ErrorKind.PERSISTENCE:
            self.refresh()
        return self._notify(result)

    def update_record(self, payload: RecordLike) -> OperationResult:
        """Save an edited record and close the edit session."""
        result = self.store.update(payload)
        if result.ok or result.error == ErrorKind.PERSISTENCE:
            self.view.cancel_edit()
            self.refresh()
        return self._notify(result)

    def delete_record(self, record_id: str) -> OperationResult:
        result = self.store.delete(record_id)
        if result.ok or result.error == ErrorKind.PERSISTENCE:
            self.view.forget(record_id)
            if self.comparison and record_id in (
                self.comparison.record_a_id, self.comparison.record_b_id
            ):
                self.clear_comparison()
            self.refresh()
        return self._notify(result)

    def load_for_edit(self, record_id: str) -> OperationResult:
        """Start editing a record; the result value is the record."""
        result = self.view.begin_edit(record_id, self.store.records)
        if result.ok:
            self.refresh()
            return result
        return self._notify(result)

    def cancel_edit(self) -> None:
        self.view.cancel_edit()
        self.refresh()

    def clear_all(self) -> OperationResult:
        """Remove every record and every golden batch pointer."""
        result = self.store.clear()
        for model in self.registry.supported_models:
            cleared = self.golden_batches.clear(model)
            if not cleared.ok and result.ok:
                result = cleared
        self.view.cancel_edit()
        self.clear_comparison()
        self.refresh()
        return self._notify(result)

    # --- view state ----------------------------------------------------------

    def apply_filters(self, filters: Union[FilterState, dict[str, Any]]) -> OperationResult:
        result = self.view.apply_filters(filters)
        if result.ok:
            self.refresh()
            return result
        return self._notify(result)

    def sort_by(self, key: str) -> OperationResult:
        result = self.view.sort_by(key)
        if result.ok:
            self.refresh()
            return result
        return self._notify(result)

    def change_page(self, page: int) -> OperationResult:
        result = self.view.change_page(page, self.store.records)
        if result.ok:
            self.refresh()
            return result
        return self._notify(result)

    def set_scope(self, record_type: Union[RecordType, str], dryer_model: str) -> OperationResult:
        result = self.view.set_scope(record_type, dryer_model)
        if result.ok:
            self.refresh()
            return result
        return self._notify(result)

    # --- golden batch & comparison ------------------------------------------

    def toggle_golden_batch(self, record_id: str) -> OperationResult:
        record = self.store.get(record_id)
        if record is None:
            return self._notify(OperationResult.failure(
                ErrorKind.NOT_FOUND, "The selected record does not exist."
            ))
        result = self.golden_batches.toggle(record.dryer_model, record_id)
        self.refresh()
        return self._notify(result)

    def compare(self, record_ids: Optional[Sequence[str]]) -> OperationResult:
        """
        Compare two records. Any failure clears the previous comparison.
        """
        result = self.comparer.compare(record_ids, self.store.get)
        self.comparison = result.value if result.ok else None
        self.comparison_updated.emit(self.comparison)
        if result.ok:
            return result
        return self._notify(result)

    def clear_comparison(self) -> None:
        self.comparison = None
        self.comparison_updated.emit(None)

    # --- import --------------------------------------------------------------

    def import_csv(self, filepath: Path | str) -> OperationResult:
        """Import a CSV export and merge its rows into the store."""
        report = self.merger.import_csv(filepath)
        if report.failed:
            return self._notify(OperationResult.failure(ErrorKind.VALIDATION, report.error))

        result = self.store.merge(report.records)
        if report.skipped and result.ok:
            result = dataclasses.replace(
                result, message=f"{result.message} {len(report.skipped)} rows skipped."
            )
        self.refresh()
        return self._notify(result)

    def replace_all_from_json(self, filepath: Path | str) -> OperationResult:
        """Replace every record with a canonical JSON snapshot."""
        try:
            payload = self.reader.read_json_records(filepath)
        except (OSError, ValueError) as exc:
            _LOG.error("reading %s failed: %s", filepath, exc)
            return self._notify(OperationResult.failure(ErrorKind.VALIDATION, f"Load failed: {exc}"))

        result = self.store.replace_all(payload)
        if result.ok or result.error == ErrorKind.PERSISTENCE:
            self.view.cancel_edit()
            self.clear_comparison()
            if result.value:
                first = result.value[0]
                switched = self.view.set_scope(first.record_type, first.dryer_model)
                if not switched.ok:
                    _LOG.warning("keeping current view: %s", switched.message)
            self.refresh()
        return self._notify(result)

    def merge_snapshot_files(
        self,
        master_path: Path | str,
        daily_path: Path | str,
        output_dir: Path | str
    ) -> OperationResult:
        """Merge a master snapshot with a daily export and write the new snapshot."""
        result = self.merger.merge_files(master_path, daily_path)
        if not result.ok:
            return self._notify(result)
        try:
            path = self.reader.write_json_records(result.value, Path(output_dir) / MERGED_DB_FILENAME)
        except OSError as exc:
            return self._notify(self._write_failed(exc))
        return self._notify(OperationResult.success(result.message, path))

    def build_master_database(
        self,
        filepaths: Iterable[Path | str],
        output_dir: Path | str
    ) -> OperationResult:
        """Build a master JSON snapshot from many CSV files."""
        result = self.merger.build_master(filepaths)
        if not result.ok:
            return self._notify(result)
        try:
            path = self.reader.write_json_records(
                result.value.records, Path(output_dir) / MASTER_DB_FILENAME
            )
        except OSError as exc:
            return self._notify(self._write_failed(exc))
        return self._notify(dataclasses.replace(result, value=path))

    # --- export --------------------------------------------------------------

    def export_current_csv(self, output_dir: Path | str) -> OperationResult:
        """Export the filtered, sorted view (all pages) of the current scope."""
        records = self.view.full_view(self.store.records)
        if not records:
            return self._notify(OperationResult.info("No records to export."))

        model = self.view.scope.dryer_model
        frame = build_export_frame(records, self.registry.get(model))
        try:
            path = self.reader.write_csv(frame, Path(output_dir) / main_export_filename(model))
        except OSError as exc:
            return self._notify(self._write_failed(exc))
        return self._notify(OperationResult.success(f"Exported {len(records)} records.", path))

    def export_daily_json(self, output_dir: Path | str, day: Optional[date] = None) -> OperationResult:
        """Export today's unsynced records, then mark them synced."""
        day = day or today()
        records = self.store.daily_unsynced(day)
        if not records:
            return self._notify(OperationResult.info("No new unsynced records today."))

        try:
            path = self.reader.write_json_records(records, Path(output_dir) / daily_export_filename(day))
        except OSError as exc:
            return self._notify(self._write_failed(exc))

        synced = self.store.mark_synced(r.id for r in records)
        self.refresh()
        if not synced.ok:
            return self._notify(synced)
        return self._notify(OperationResult.success(f"Exported {len(records)} records.", path))

    def export_full_csv(self, output_dir: Path | str) -> OperationResult:
        """Export every record with the columns of all models."""
        records = self.store.records
        if not records:
            return self._notify(OperationResult.info("No records to export."))

        frame = build_full_export_frame(records, self.registry)
        try:
            path = self.reader.write_csv(frame, Path(output_dir) / FULL_EXPORT_FILENAME)
        except OSError as exc:
            return self._notify(self._write_failed(exc))
        return self._notify(OperationResult.success(f"Exported {len(records)} records.", path))

    def raw_chart_frame(self, record_id: str) -> OperationResult:
        """Raw time-series of a record as a DataFrame."""
        record = self.store.get(record_id)
        if record is None:
            return self._notify(OperationResult.failure(
                ErrorKind.NOT_FOUND, "The selected record does not exist."
            ))
        if not record.has_raw_chart:
            return self._notify(OperationResult.info("This record has no raw chart data."))
        frame: pd.DataFrame = record.raw_chart_data.to_dataframe()
        return OperationResult.success("", frame)
