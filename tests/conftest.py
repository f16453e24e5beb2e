"""
Shared fixtures for the dryer record tests.
"""
from typing import Optional

import pytest

from dryer_records.core import (
    ActualTempReading,
    AirVolumeReading,
    MemoryStorage,
    Record,
    RecordStore,
    RecordType,
    default_registry,
)


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage, registry):
    return RecordStore(storage, registry)


@pytest.fixture
def make_record(registry):
    """Factory for records with derived values already computed."""

    def _make(
        record_type: RecordType = RecordType.EVALUATION_TEAM,
        dryer_model: str = "vt8",
        date_time: Optional[str] = None,
        speeds: Optional[dict] = None,
        temps: Optional[dict] = None,
        **kwargs
    ) -> Record:
        record = Record(
            record_type=record_type,
            dryer_model=dryer_model,
            date_time=date_time,
            **kwargs
        )
        for point_id, (speed, temperature) in (speeds or {}).items():
            record.air_volumes[point_id] = AirVolumeReading(speed=speed, temperature=temperature)
        for point_id, values in (temps or {}).items():
            record.actual_temps[point_id] = ActualTempReading(*values)
        registry.refresh_derived_fields(record)
        return record

    return _make
