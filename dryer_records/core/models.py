"""
Core data models for the dryer record manager.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

import numpy as np
import pandas as pd


RECORD_FIELD_COUNT = 5  # val1..val5 per temperature point

TRI_STATE_VALUES = ("yes", "no")

# Source label fragments recognized when normalizing free-form record types
EVALUATION_TEAM_PHRASE = "評價"
CONDITION_SETTING_PHRASE = "條件設定"


class RecordFormatError(ValueError):
    """Raised when a payload cannot be turned into a well-formed Record."""


class RecordType(Enum):
    """Kinds of measurement session."""
    EVALUATION_TEAM = "evaluationTeam"
    CONDITION_SETTING = "conditionSetting"


class PointStatus(Enum):
    """Measurement point availability."""
    NORMAL = "normal"
    DANGEROUS = "dangerous"          # Measuring is unsafe
    UNMEASURABLE = "unmeasurable"    # No access port


class SortDirection(Enum):
    ASC = "asc"
    DESC = "desc"


def new_record_id() -> str:
    """Generate a fresh opaque record id."""
    return str(uuid.uuid4())


def normalize_record_type(value: Any) -> Optional[RecordType]:
    """
    Map a free-form source label onto a RecordType.

    Recognizes the canonical enum values (case-insensitive) and any label
    containing one of the two known source phrases. Returns None for
    anything else; callers decide what an unrecognized label means.
    """
    if isinstance(value, RecordType):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if EVALUATION_TEAM_PHRASE in text:
        return RecordType.EVALUATION_TEAM
    if CONDITION_SETTING_PHRASE in text:
        return RecordType.CONDITION_SETTING

    lowered = text.lower()
    for record_type in RecordType:
        if record_type.value.lower() == lowered:
            return record_type
    return None


def normalize_dryer_model(value: Any) -> str:
    """Lowercase a dryer model code."""
    if value is None:
        return ""
    return str(value).strip().lower()


def normalize_tri_state(value: Any) -> Optional[str]:
    """Normalize a yes/no/unset flag."""
    if isinstance(value, str) and value.strip().lower() in TRI_STATE_VALUES:
        return value.strip().lower()
    return None


def normalize_sync_flag(value: Any) -> bool:
    """Only a real True or the text "true" counts as synced."""
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


def normalize_date_time(value: Any) -> Optional[str]:
    """Normalize a timestamp to local minute precision (YYYY-MM-DDTHH:MM)."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None

    stamp = pd.to_datetime(value, errors="coerce")
    if pd.isna(stamp):
        return None
    return stamp.strftime("%Y-%m-%dT%H:%M")


def parse_optional_float(value: Any) -> Optional[float]:
    """
    Parse a numeric reading.

    Blank, whitespace-only, "null" and unparseable values become None,
    never zero.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text or text.lower() == "null":
            return None
        value = text

    number = pd.to_numeric(value, errors="coerce")
    if pd.isna(number) or not np.isfinite(number):
        return None
    return float(number)


@dataclass
class AirVolumeReading:
    """Air speed/temperature reading at one measurement point."""
    speed: Optional[float] = None
    temperature: Optional[float] = None
    computed_volume: Optional[float] = None
    status: PointStatus = PointStatus.NORMAL

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "speed": self.speed,
            "temperature": self.temperature,
            "computedVolume": self.computed_volume,
            "status": self.status.value
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AirVolumeReading:
        """Deserialize from dictionary (accepts legacy temp/volume keys)."""
        status_raw = data.get("status", PointStatus.NORMAL.value)
        try:
            status = PointStatus(status_raw)
        except ValueError:
            status = PointStatus.NORMAL
        return cls(
            speed=parse_optional_float(data.get("speed")),
            temperature=parse_optional_float(data.get("temperature", data.get("temp"))),
            computed_volume=parse_optional_float(data.get("computedVolume", data.get("volume"))),
            status=status
        )


@dataclass
class ActualTempReading:
    """Five probe readings at one temperature point."""
    val1: Optional[float] = None
    val2: Optional[float] = None
    val3: Optional[float] = None
    val4: Optional[float] = None
    val5: Optional[float] = None

    @property
    def values(self) -> list[Optional[float]]:
        return [getattr(self, f"val{i}") for i in range(1, RECORD_FIELD_COUNT + 1)]

    @property
    def diff(self) -> Optional[float]:
        """Spread between the highest and lowest present reading."""
        present = [v for v in self.values if v is not None]
        if not present:
            return None
        return float(np.ptp(np.asarray(present, dtype=float)))

    def get_value(self, line: int) -> Optional[float]:
        """Get the reading of probe line 1..5."""
        return getattr(self, f"val{line}")

    def set_value(self, line: int, value: Optional[float]) -> None:
        """Set the reading of probe line 1..5."""
        if not 1 <= line <= RECORD_FIELD_COUNT:
            raise ValueError(f"Probe line out of range: {line}")
        setattr(self, f"val{line}", value)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary, including the derived diff."""
        data: dict[str, Any] = {f"val{i}": v for i, v in enumerate(self.values, start=1)}
        data["diff"] = self.diff
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActualTempReading:
        """Deserialize from dictionary; a stored diff is ignored."""
        return cls(**{
            f"val{i}": parse_optional_float(data.get(f"val{i}"))
            for i in range(1, RECORD_FIELD_COUNT + 1)
        })


@dataclass
class RawChartData:
    """Embedded raw time-series import, kept as received."""
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def columns(self) -> list[str]:
        meta = self.payload.get("meta") or {}
        fields = meta.get("fields") if isinstance(meta, dict) else None
        if fields:
            return [str(f) for f in fields]
        rows = self.rows
        return list(rows[0].keys()) if rows else []

    @property
    def rows(self) -> list[dict[str, Any]]:
        rows = self.payload.get("data") or []
        return [r for r in rows if isinstance(r, dict)]

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def to_dataframe(self) -> pd.DataFrame:
        """Build a dataframe with one column per channel."""
        return pd.DataFrame(self.rows, columns=self.columns or None)

    def to_dict(self) -> dict[str, Any]:
        return self.payload

    @classmethod
    def from_dict(cls, data: Any) -> Optional[RawChartData]:
        if not isinstance(data, dict) or not data:
            return None
        return cls(payload=data)


@dataclass
class Record:
    """One dryer measurement session."""
    id: str = field(default_factory=new_record_id)
    record_type: RecordType = RecordType.EVALUATION_TEAM
    dryer_model: str = "vt8"
    date_time: Optional[str] = None
    rto_status: Optional[str] = None
    heating_status: Optional[str] = None
    remark: Optional[str] = None

    air_volumes: dict[str, AirVolumeReading] = field(default_factory=dict)
    actual_temps: dict[str, ActualTempReading] = field(default_factory=dict)
    hmi_data: dict[str, Optional[float]] = field(default_factory=dict)
    raw_chart_data: Optional[RawChartData] = None

    is_synced: bool = False

    def __post_init__(self):
        self.dryer_model = normalize_dryer_model(self.dryer_model)

    @property
    def date_prefix(self) -> Optional[str]:
        """Calendar date part of the timestamp."""
        return self.date_time[:10] if self.date_time else None

    @property
    def has_raw_chart(self) -> bool:
        return self.raw_chart_data is not None and not self.raw_chart_data.is_empty

    def display_time(self) -> Optional[str]:
        """Timestamp formatted for labels."""
        return self.date_time.replace("T", " ") if self.date_time else None

    def is_on(self, day: date) -> bool:
        """Check whether the record was taken on the given day."""
        return self.date_prefix == day.isoformat()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the durable snapshot format."""
        return {
            "id": self.id,
            "recordType": self.record_type.value,
            "dryerModel": self.dryer_model,
            "dateTime": self.date_time,
            "rtoStatus": self.rto_status,
            "heatingStatus": self.heating_status,
            "remark": self.remark,
            "airVolumes": {k: v.to_dict() for k, v in self.air_volumes.items()},
            "actualTemps": {k: v.to_dict() for k, v in self.actual_temps.items()},
            "hmiData": dict(self.hmi_data),
            "rawChartData": self.raw_chart_data.to_dict() if self.raw_chart_data else None,
            "isSynced": self.is_synced
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Record:
        """
        Deserialize from the durable snapshot format.

        Raises:
            RecordFormatError: if the payload is not a mapping or its record
                type cannot be recognized.
        """
        if not isinstance(data, dict):
            raise RecordFormatError(f"Record payload must be an object, got {type(data).__name__}")

        record_type = normalize_record_type(data.get("recordType"))
        if record_type is None:
            raise RecordFormatError(f"Unrecognized record type: {data.get('recordType')!r}")

        record_id = data.get("id")
        remark = data.get("remark")

        record = cls(
            id=str(record_id) if record_id else new_record_id(),
            record_type=record_type,
            dryer_model=normalize_dryer_model(data.get("dryerModel")),
            date_time=normalize_date_time(data.get("dateTime")),
            rto_status=normalize_tri_state(data.get("rtoStatus")),
            heating_status=normalize_tri_state(data.get("heatingStatus")),
            remark=str(remark) if remark not in (None, "") else None,
            raw_chart_data=RawChartData.from_dict(data.get("rawChartData")),
            is_synced=normalize_sync_flag(data.get("isSynced"))
        )

        # Restore nested readings
        for k, v in (data.get("airVolumes") or {}).items():
            if isinstance(v, dict):
                record.air_volumes[str(k)] = AirVolumeReading.from_dict(v)
        for k, v in (data.get("actualTemps") or {}).items():
            if isinstance(v, dict):
                record.actual_temps[str(k)] = ActualTempReading.from_dict(v)
        for k, v in (data.get("hmiData") or {}).items():
            record.hmi_data[str(k)] = parse_optional_float(v)

        return record


@dataclass
class ViewScope:
    """Hard partition of the record list shown at once."""
    record_type: RecordType = RecordType.EVALUATION_TEAM
    dryer_model: str = "vt8"

    def __post_init__(self):
        self.dryer_model = normalize_dryer_model(self.dryer_model)

    def contains(self, record: Record) -> bool:
        return record.record_type == self.record_type and record.dryer_model == self.dryer_model


@dataclass
class FilterState:
    """Optional filters applied on top of the view scope."""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    rto_status: Optional[str] = None
    heating_status: Optional[str] = None
    remark: str = ""
    range_field: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None

    @property
    def has_range_filter(self) -> bool:
        return bool(self.range_field) and (self.min_value is not None or self.max_value is not None)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "startDate": self.start_date,
            "endDate": self.end_date,
            "rtoStatus": self.rto_status,
            "heatingStatus": self.heating_status,
            "remark": self.remark,
            "field": self.range_field,
            "min": self.min_value,
            "max": self.max_value
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FilterState:
        """Deserialize from a UI filter form; blank entries are inactive."""
        def _text(key: str) -> Optional[str]:
            value = data.get(key)
            if value is None or not str(value).strip():
                return None
            return str(value).strip()

        def _status(key: str) -> Optional[str]:
            value = _text(key)
            return None if value in (None, "all") else value

        return cls(
            start_date=_text("startDate"),
            end_date=_text("endDate"),
            rto_status=_status("rtoStatus"),
            heating_status=_status("heatingStatus"),
            remark=_text("remark") or "",
            range_field=_text("field"),
            min_value=parse_optional_float(data.get("min")),
            max_value=parse_optional_float(data.get("max"))
        )


@dataclass
class SortState:
    """Active sort key (dotted field path) and direction."""
    key: str = "dateTime"
    direction: SortDirection = SortDirection.DESC

    @property
    def ascending(self) -> bool:
        return self.direction == SortDirection.ASC

    def toggled(self, key: str) -> SortState:
        """Same key flips direction, a new key starts descending."""
        if key == self.key:
            flipped = SortDirection.DESC if self.ascending else SortDirection.ASC
            return SortState(key=key, direction=flipped)
        return SortState(key=key, direction=SortDirection.DESC)

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "direction": self.direction.value}


@dataclass
class PageView:
    """One page of the filtered, sorted view."""
    records: list[Record] = field(default_factory=list)
    current_page: int = 1
    total_pages: int = 1
    total_records: int = 0
    sort: SortState = field(default_factory=SortState)

    # Edit session position (None when nothing is edited or it is off-page)
    editing_id: Optional[str] = None
    editing_row: Optional[int] = None
    editing_page: Optional[int] = None

    golden_batch_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "records": [r.to_dict() for r in self.records],
            "pagination": {"currentPage": self.current_page, "totalPages": self.total_pages},
            "totalRecords": self.total_records,
            "sortState": self.sort.to_dict(),
            "editingId": self.editing_id,
            "editingIndex": self.editing_row if self.editing_row is not None else -1,
            "editingPage": self.editing_page,
            "goldenBatchId": self.golden_batch_id
        }


@dataclass
class SkippedRow:
    """A source row dropped during import."""
    index: int
    reason: str


@dataclass
class HeaderDiff:
    """Differences between schema CSV headers and a file's headers."""
    missing: list[str] = field(default_factory=list)    # In schema but not in file
    extra: list[str] = field(default_factory=list)      # In file but not in schema
    matched: list[str] = field(default_factory=list)    # Exact matches
    fuzzy_matches: dict[str, str] = field(default_factory=dict)  # file_header -> schema_header suggestions

    @property
    def has_differences(self) -> bool:
        return bool(self.missing or self.extra)

    def get_summary(self) -> str:
        """Get a human-readable summary of differences."""
        parts = []
        if self.extra:
            parts.append(f"{len(self.extra)} unknown columns: {', '.join(self.extra[:5])}")
            if len(self.extra) > 5:
                parts[-1] += f"... (+{len(self.extra) - 5} more)"
        if self.missing:
            parts.append(f"{len(self.missing)} schema columns absent")
        if self.fuzzy_matches:
            parts.append(f"possible renames: {len(self.fuzzy_matches)}")
        return "; ".join(parts) if parts else "Headers match exactly"


@dataclass
class ImportReport:
    """Result of projecting one source (file or row batch) into records."""
    source: str = ""
    records: list[Record] = field(default_factory=list)
    skipped: list[SkippedRow] = field(default_factory=list)
    header_diffs: dict[str, HeaderDiff] = field(default_factory=dict)  # model -> diff
    error: Optional[str] = None  # Set when the whole source failed

    @property
    def failed(self) -> bool:
        return self.error is not None

    def get_summary(self) -> str:
        if self.failed:
            return f"{self.source}: {self.error}"
        return f"{self.source}: {len(self.records)} records, {len(self.skipped)} rows skipped"


def today() -> date:
    """Local calendar date used for the daily partition."""
    return datetime.now().date()
