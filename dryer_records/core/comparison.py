"""
Two-record comparative analysis producing chart-ready series.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from .models import RECORD_FIELD_COUNT, Record
from .results import ErrorKind, OperationResult
from .schema import PROBE_LINE_NAMES, SchemaRegistry, TemperaturePoint

_LOG = logging.getLogger(__name__)

NO_TIME_PLACEHOLDER = "No time"


@dataclass
class SeriesDataset:
    """One plotted series."""
    label: str
    data: list[Optional[float]] = field(default_factory=list)
    record: int = 1          # 1 for record A, 2 for record B
    line: Optional[int] = None  # Probe line (temperature series only)

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "data": list(self.data), "record": self.record, "line": self.line}


@dataclass
class ChartSeries:
    """Categories plus datasets for one chart."""
    labels: list[str] = field(default_factory=list)
    keys: list[str] = field(default_factory=list)  # Point ids behind the labels
    datasets: list[SeriesDataset] = field(default_factory=list)

    def datasets_for(self, record: int) -> list[SeriesDataset]:
        return [d for d in self.datasets if d.record == record]

    def to_dict(self) -> dict[str, Any]:
        return {
            "labels": list(self.labels),
            "keys": list(self.keys),
            "datasets": [d.to_dict() for d in self.datasets]
        }


@dataclass
class ComparisonAnalysis:
    """Payload handed to the charting adapter."""
    record_a_id: str
    record_b_id: str
    air_volume: Optional[ChartSeries]
    temperature: ChartSeries
    record_a_label: str = ""
    record_b_label: str = ""
    rto_a: Optional[str] = None
    rto_b: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "airVolumeData": self.air_volume.to_dict() if self.air_volume else None,
            "tempData": self.temperature.to_dict(),
            "recordInfo": {
                "recordA": self.record_a_label,
                "recordB": self.record_b_label,
                "recordAId": self.record_a_id,
                "recordBId": self.record_b_id,
                "rtoA": self.rto_a,
                "rtoB": self.rto_b
            }
        }


def record_label(record: Record, position: int) -> str:
    """Human-readable identifier derived from the timestamp."""
    return f"Record {position}: {record.display_time() or NO_TIME_PLACEHOLDER}"


def rto_label(record: Record) -> str:
    return "RTO on" if record.rto_status == "yes" else "RTO off"


class RecordComparer:
    """Compares exactly two records."""

    def __init__(self, registry: SchemaRegistry):
        self._registry = registry

    def compare(
        self,
        record_ids: Optional[Sequence[str]],
        lookup: Callable[[str], Optional[Record]]
    ) -> OperationResult:
        """
        Resolve two ids and build their comparison.

        Args:
            record_ids: Exactly two record ids
            lookup: Resolves an id to a stored record

        Returns:
            Success with a ComparisonAnalysis, or a failure carrying no
            value; callers clear any previous comparison on failure.
        """
        if not record_ids or len(record_ids) != 2:
            return OperationResult.failure(
                ErrorKind.VALIDATION, "Select exactly two records to compare."
            )

        record_a = lookup(record_ids[0])
        record_b = lookup(record_ids[1])
        if record_a is None or record_b is None:
            return OperationResult.failure(
                ErrorKind.NOT_FOUND, "The selected records are invalid and cannot be compared."
            )

        return OperationResult.success("Comparison ready.", self.build(record_a, record_b))

    def build(self, record_a: Record, record_b: Record) -> ComparisonAnalysis:
        """Build the comparison payload of two resolved records."""
        return ComparisonAnalysis(
            record_a_id=record_a.id,
            record_b_id=record_b.id,
            air_volume=self.air_volume_series(record_a, record_b),
            temperature=self.temperature_series(record_a, record_b),
            record_a_label=record_label(record_a, 1),
            record_b_label=record_label(record_b, 2),
            rto_a=record_a.rto_status,
            rto_b=record_b.rto_status
        )

    def _point_labels(self, *records: Record) -> dict[str, str]:
        labels: dict[str, str] = {}
        for record in records:
            schema = self._registry.find(record.dryer_model)
            if schema is None:
                continue
            for point in schema.measurement_points:
                labels.setdefault(point.id, point.label)
        return labels

    def _temperature_points(self, *records: Record) -> list[TemperaturePoint]:
        points: dict[str, TemperaturePoint] = {}
        for record in records:
            schema = self._registry.find(record.dryer_model)
            if schema is None:
                continue
            for point in schema.temperature_points:
                points.setdefault(point.id, point)
        return list(points.values())

    def air_volume_series(self, record_a: Record, record_b: Record) -> Optional[ChartSeries]:
        """
        Bar series of computed volume per measurement point.

        A side without a reading is plotted as 0. Points where neither side
        has a volume are left out; None when no point qualifies.
        """
        labels = self._point_labels(record_a, record_b)
        keys = list(dict.fromkeys([*record_a.air_volumes, *record_b.air_volumes]))

        series = ChartSeries()
        data_a: list[Optional[float]] = []
        data_b: list[Optional[float]] = []
        for key in keys:
            volume_a = self._volume(record_a, key)
            volume_b = self._volume(record_b, key)
            if volume_a is None and volume_b is None:
                continue
            series.keys.append(key)
            series.labels.append(labels.get(key, key))
            data_a.append(volume_a or 0.0)
            data_b.append(volume_b or 0.0)

        if not series.keys:
            return None

        series.datasets = [
            SeriesDataset(label=f"Record 1 air volume ({rto_label(record_a)})", data=data_a, record=1),
            SeriesDataset(label=f"Record 2 air volume ({rto_label(record_b)})", data=data_b, record=2),
        ]
        return series

    @staticmethod
    def _volume(record: Record, key: str) -> Optional[float]:
        reading = record.air_volumes.get(key)
        return reading.computed_volume if reading else None

    def temperature_series(self, record_a: Record, record_b: Record) -> ChartSeries:
        """
        Line series per probe line and temperature point.

        Missing readings stay None so the curve shows a gap.
        """
        points = self._temperature_points(record_a, record_b)
        series = ChartSeries(
            labels=[p.short_label for p in points],
            keys=[p.id for p in points]
        )

        for position, record in ((1, record_a), (2, record_b)):
            for line in range(1, RECORD_FIELD_COUNT + 1):
                data = []
                for point in points:
                    reading = record.actual_temps.get(point.id)
                    data.append(reading.get_value(line) if reading else None)
                series.datasets.append(SeriesDataset(
                    label=f"Record {position} - {PROBE_LINE_NAMES[line - 1]}",
                    data=data,
                    record=position,
                    line=line
                ))

        _LOG.debug("temperature series: %d points x %d datasets", len(points), len(series.datasets))
        return series
