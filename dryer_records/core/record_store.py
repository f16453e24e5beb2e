"""
Record store: the authoritative in-memory record list and its durable slot.
"""
from __future__ import annotations

import copy
import json
import logging
from datetime import date
from typing import Any, Iterable, Optional, Union

from .models import Record, RecordFormatError, new_record_id, today
from .results import ErrorKind, MessageLevel, OperationResult
from .schema import SchemaRegistry
from .storage import RECORDS_KEY, KeyValueStorage, StorageError

_LOG = logging.getLogger(__name__)

RecordLike = Union[Record, dict[str, Any]]


def ingest_record(item: RecordLike) -> Record:
    """
    Turn a Record or snapshot mapping into a private Record instance.

    Raises:
        RecordFormatError: if the item cannot be turned into a Record
    """
    if isinstance(item, Record):
        return copy.deepcopy(item)
    return Record.from_dict(item)


def normalize_record(
    record: Record,
    registry: SchemaRegistry,
    taken_ids: Optional[set[str]] = None
) -> Record:
    """
    Normalization pass applied at every ingestion boundary.

    Lowercases the model, assigns a fresh id when missing or already taken,
    and recomputes schema-derived values.

    Args:
        record: Record to normalize in place
        registry: Schema provider for derived values
        taken_ids: Ids already in use; the record's final id is added to it
    """
    record.dryer_model = record.dryer_model.strip().lower()
    if not record.id or (taken_ids is not None and record.id in taken_ids):
        old_id = record.id
        record.id = new_record_id()
        _LOG.debug("reassigned record id %r -> %s", old_id, record.id)
    registry.refresh_derived_fields(record)
    if taken_ids is not None:
        taken_ids.add(record.id)
    return record


def sort_by_date_desc(records: Iterable[Record]) -> list[Record]:
    """Newest first, records without a timestamp last (stable)."""
    records = list(records)
    dated = [r for r in records if r.date_time]
    undated = [r for r in records if not r.date_time]
    return sorted(dated, key=lambda r: r.date_time, reverse=True) + undated


class RecordStore:
    """
    Holds the record list and mediates all durable reads and writes.

    Every mutation builds the new list before swapping it in, then persists
    it. A failed save is reported but the in-memory list stays authoritative.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        registry: SchemaRegistry,
        storage_key: str = RECORDS_KEY
    ):
        self._storage = storage
        self._registry = registry
        self._key = storage_key
        self._records: list[Record] = []

    @property
    def records(self) -> tuple[Record, ...]:
        return tuple(self._records)

    @property
    def registry(self) -> SchemaRegistry:
        return self._registry

    def __len__(self) -> int:
        return len(self._records)

    def get(self, record_id: str) -> Optional[Record]:
        """Get a record by ID."""
        index = self._index_of(record_id)
        return self._records[index] if index is not None else None

    def ids(self) -> set[str]:
        return {r.id for r in self._records}

    def _index_of(self, record_id: str) -> Optional[int]:
        for i, record in enumerate(self._records):
            if record.id == record_id:
                return i
        return None

    # --- persistence ---------------------------------------------------------

    def load(self) -> OperationResult:
        """
        Load the persisted snapshot.

        Never raises: a corrupted snapshot is discarded and the store resets
        to empty with a CORRUPTION result.
        """
        try:
            raw = self._storage.get(self._key)
        except StorageError as exc:
            _LOG.error("reading stored records failed: %s", exc)
            self._records = []
            return OperationResult.failure(ErrorKind.PERSISTENCE, "Failed to read local data.")

        if raw is None:
            self._records = []
            return OperationResult.info("No local data yet.", value=0)

        try:
            payload = json.loads(raw)
            if not isinstance(payload, list):
                raise ValueError(f"stored snapshot is a {type(payload).__name__}, not a list")
        except ValueError as exc:
            _LOG.error("stored records are corrupted, resetting: %s", exc)
            self._records = []
            try:
                self._storage.remove(self._key)
            except StorageError as remove_exc:
                _LOG.error("removing corrupted snapshot failed: %s", remove_exc)
            return OperationResult.failure(
                ErrorKind.CORRUPTION,
                "Local data was corrupted and has been reset. Previous records cannot be recovered."
            )

        taken: set[str] = set()
        loaded: list[Record] = []
        for i, item in enumerate(payload):
            if not isinstance(item, dict):
                continue
            try:
                record = Record.from_dict(item)
            except RecordFormatError as exc:
                _LOG.warning("dropping stored record #%d: %s", i, exc)
                continue
            loaded.append(normalize_record(record, self._registry, taken))

        self._records = loaded
        _LOG.info("loaded %d records from local storage", len(loaded))
        return OperationResult.success(f"Loaded {len(loaded)} records.", value=len(loaded))

    def save(self) -> OperationResult:
        """Serialize the full list to the durable slot."""
        payload = json.dumps(self.snapshot(), ensure_ascii=False)
        try:
            self._storage.set(self._key, payload)
        except StorageError as exc:
            _LOG.error("saving records failed: %s", exc)
            return OperationResult.failure(ErrorKind.PERSISTENCE, "Failed to save local data.")
        _LOG.debug("saved %d records", len(self._records))
        return OperationResult.success("Saved.")

    def snapshot(self) -> list[dict[str, Any]]:
        """Durable snapshot payload."""
        return [r.to_dict() for r in self._records]

    def _commit(
        self,
        records: list[Record],
        message: str,
        value: Any = None,
        level: MessageLevel = MessageLevel.SUCCESS
    ) -> OperationResult:
        self._records = records
        saved = self.save()
        if not saved:
            return OperationResult.failure(ErrorKind.PERSISTENCE, f"{message} {saved.message}", value)
        if level == MessageLevel.INFO:
            return OperationResult.info(message, value)
        return OperationResult.success(message, value)

    # --- mutations -----------------------------------------------------------

    def add(self, item: RecordLike) -> OperationResult:
        """Add a new record at the front of the list."""
        try:
            record = ingest_record(item)
        except RecordFormatError as exc:
            return OperationResult.failure(ErrorKind.VALIDATION, f"Invalid record: {exc}")

        record.is_synced = False
        normalize_record(record, self._registry, self.ids())
        return self._commit([record] + self._records, "Record added.", record)

    def update(self, payload: RecordLike) -> OperationResult:
        """
        Shallow-merge fields into the stored record with the same id.

        Fields absent from the payload keep their stored values.
        """
        changes = payload.to_dict() if isinstance(payload, Record) else dict(payload)
        record_id = changes.get("id")
        index = self._index_of(record_id) if record_id else None
        if index is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, "The record to update does not exist.")

        merged = {**self._records[index].to_dict(), **changes, "isSynced": False}
        try:
            record = Record.from_dict(merged)
        except RecordFormatError as exc:
            return OperationResult.failure(ErrorKind.VALIDATION, f"Invalid record: {exc}")
        normalize_record(record, self._registry)

        records = list(self._records)
        records[index] = record
        return self._commit(records, "Record updated.", record)

    def delete(self, record_id: str) -> OperationResult:
        """Remove a record by id."""
        index = self._index_of(record_id)
        if index is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, "The record to delete does not exist.")
        records = self._records[:index] + self._records[index + 1:]
        return self._commit(records, "Record deleted.", record_id, MessageLevel.INFO)

    def replace_all(self, items: Any) -> OperationResult:
        """
        Replace the whole list with a canonical snapshot.

        Every record is normalized and marked synced.
        """
        if not isinstance(items, (list, tuple)):
            return OperationResult.failure(
                ErrorKind.VALIDATION, "Load failed: the file is not a list of records."
            )

        taken: set[str] = set()
        records: list[Record] = []
        for i, item in enumerate(items):
            try:
                record = ingest_record(item)
            except RecordFormatError as exc:
                _LOG.warning("skipping snapshot record #%d: %s", i, exc)
                continue
            record.is_synced = True
            records.append(normalize_record(record, self._registry, taken))

        return self._commit(
            records, f"Master database loaded: {len(records)} records.", records
        )

    def merge(self, items: Iterable[RecordLike]) -> OperationResult:
        """
        Fold imported records into the store.

        Records without an id, or whose id is already in use, get fresh ids;
        nothing is overwritten. Merged records are unsynced and the combined
        list is re-sorted newest first.
        """
        items = list(items or [])
        if not items:
            return OperationResult.info("The imported file has no records to add.", value=[])

        taken = self.ids()
        added: list[Record] = []
        for i, item in enumerate(items):
            try:
                record = ingest_record(item)
            except RecordFormatError as exc:
                _LOG.warning("skipping imported record #%d: %s", i, exc)
                continue
            record.is_synced = False
            added.append(normalize_record(record, self._registry, taken))

        if not added:
            return OperationResult.info("The imported file has no valid records to add.", value=[])

        _LOG.info("merged %d imported records", len(added))
        return self._commit(
            sort_by_date_desc(added + self._records),
            f"Imported {len(added)} records.",
            added
        )

    def mark_synced(self, record_ids: Iterable[str]) -> OperationResult:
        """Flag exported records as reconciled with the canonical snapshot."""
        wanted = set(record_ids)
        records = []
        count = 0
        for record in self._records:
            if record.id in wanted and not record.is_synced:
                record = copy.copy(record)
                record.is_synced = True
                count += 1
            records.append(record)
        return self._commit(records, f"{count} records marked as synced.", count, MessageLevel.INFO)

    def clear(self) -> OperationResult:
        """Remove every record."""
        return self._commit([], "All data cleared.", None, MessageLevel.INFO)

    def daily_unsynced(self, day: Optional[date] = None) -> list[Record]:
        """Records taken on ``day`` (default today) that are not yet synced."""
        day = day or today()
        return [r for r in self._records if r.is_on(day) and not r.is_synced]
