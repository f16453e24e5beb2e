"""
Golden batch registry: one reference record per dryer model.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from .models import Record, normalize_dryer_model
from .results import ErrorKind, OperationResult
from .storage import KeyValueStorage, StorageError

if TYPE_CHECKING:
    from .record_store import RecordStore

_LOG = logging.getLogger(__name__)

GOLDEN_BATCH_KEY_PREFIX = "goldenBatchId_"


def golden_batch_key(dryer_model: str) -> str:
    return f"{GOLDEN_BATCH_KEY_PREFIX}{normalize_dryer_model(dryer_model)}"


class GoldenBatchRegistry:
    """
    Per-model pointer to at most one record, persisted independently of the
    record snapshot.

    The pointer is not cleaned up when its record is deleted; ``resolve``
    simply finds nothing.
    """

    def __init__(self, storage: KeyValueStorage):
        self._storage = storage

    def get(self, dryer_model: str) -> Optional[str]:
        """Stored record id for the model, or None."""
        try:
            return self._storage.get(golden_batch_key(dryer_model)) or None
        except StorageError as exc:
            _LOG.error("reading golden batch for %s failed: %s", dryer_model, exc)
            return None

    def toggle(self, dryer_model: str, record_id: str) -> OperationResult:
        """
        Set the golden batch, or unset it when ``record_id`` is already set.

        Returns:
            Result whose value is the new pointer (None when unset)
        """
        if not record_id:
            return OperationResult.failure(ErrorKind.VALIDATION, "No record selected.")

        key = golden_batch_key(dryer_model)
        try:
            if self.get(dryer_model) == record_id:
                self._storage.remove(key)
                _LOG.info("golden batch for %s cleared", dryer_model)
                return OperationResult.info("Golden batch cleared.", None)
            self._storage.set(key, record_id)
        except StorageError as exc:
            _LOG.error("saving golden batch for %s failed: %s", dryer_model, exc)
            return OperationResult.failure(ErrorKind.PERSISTENCE, "Failed to save the golden batch.")

        _LOG.info("golden batch for %s set to %s", dryer_model, record_id)
        return OperationResult.success("Golden batch set.", record_id)

    def clear(self, dryer_model: str) -> OperationResult:
        try:
            self._storage.remove(golden_batch_key(dryer_model))
        except StorageError as exc:
            _LOG.error("clearing golden batch for %s failed: %s", dryer_model, exc)
            return OperationResult.failure(ErrorKind.PERSISTENCE, "Failed to clear the golden batch.")
        return OperationResult.info("Golden batch cleared.", None)

    def resolve(self, dryer_model: str, store: RecordStore) -> Optional[Record]:
        """The golden batch record, or None if unset or dangling."""
        record_id = self.get(dryer_model)
        if record_id is None:
            return None
        record = store.get(record_id)
        if record is None:
            _LOG.debug("golden batch %s of %s no longer exists", record_id, dryer_model)
        return record
