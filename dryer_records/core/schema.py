"""
Per-model field schema: measurement topology, field descriptors and typed
accessors for the dryer record manager.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Iterable, Optional

from .models import (
    RECORD_FIELD_COUNT,
    ActualTempReading,
    AirVolumeReading,
    PointStatus,
    Record,
    RecordType,
    normalize_date_time,
    normalize_dryer_model,
    normalize_tri_state,
    parse_optional_float,
)

_LOG = logging.getLogger(__name__)

DEFAULT_DRYER_MODEL = "vt8"

# Standard conditions for normalized air volume (Nm³/min)
STANDARD_TEMPERATURE_K = 273.15
SECONDS_PER_MINUTE = 60.0

TEMP_POINT_LABEL_PREFIX = "技術溫測實溫_"
PROBE_LINE_NAMES = ("1 (right)", "2", "3 (center)", "4", "5 (left)")

ALL_RECORD_TYPES = (RecordType.EVALUATION_TEAM, RecordType.CONDITION_SETTING)


class SchemaError(Exception):
    """Raised for invalid field paths or unknown dryer models."""


class FieldKind(Enum):
    NUMBER = "number"
    TEXT = "text"
    DATETIME = "datetime"
    STATUS = "status"   # yes/no/unset
    ENUM = "enum"       # record type, dryer model


@dataclass(frozen=True)
class MeasurementPoint:
    """Air volume measurement location."""
    id: str
    label: str
    floor: str = ""
    duct: float = 0.0          # Duct diameter (m)
    area: float = 0.0          # Cross-sectional area (m²)
    probe_depth: Optional[float] = None  # cm
    status: PointStatus = PointStatus.NORMAL

    @property
    def is_measurable(self) -> bool:
        return self.status == PointStatus.NORMAL


@dataclass(frozen=True)
class TemperaturePoint:
    """Technical temperature survey location (five probe lines each)."""
    id: str
    label: str

    @property
    def short_label(self) -> str:
        return self.label.replace(TEMP_POINT_LABEL_PREFIX, "")


@dataclass(frozen=True)
class HmiField:
    """Machine panel reading."""
    id: str
    label: str
    unit: str = ""
    panel: str = ""


@dataclass(frozen=True)
class FieldAccessor:
    """Compiled getter/setter pair for one dotted field path."""
    key: str
    getter: Callable[[Record], Any]
    setter: Optional[Callable[[Record, Any], None]] = None

    @property
    def settable(self) -> bool:
        return self.setter is not None


@dataclass(frozen=True)
class FieldDescriptor:
    """Schema entry describing one record field."""
    key: str
    label: str
    kind: FieldKind
    accessor: FieldAccessor
    csv_header: str = ""
    is_calculated: bool = False
    in_table: bool = True
    record_types: tuple[RecordType, ...] = ALL_RECORD_TYPES
    order: int = 9999

    @property
    def header(self) -> str:
        return self.csv_header or self.label

    @property
    def is_numeric(self) -> bool:
        return self.kind == FieldKind.NUMBER

    def applies_to(self, record_type: RecordType) -> bool:
        return record_type in self.record_types

    def get(self, record: Record) -> Any:
        return self.accessor.getter(record)

    def set(self, record: Record, value: Any) -> None:
        if self.is_calculated or self.accessor.setter is None:
            raise SchemaError(f"Field {self.key!r} is derived and cannot be set")
        self.accessor.setter(record, value)


def calculate_air_volume(
    speed: Optional[float],
    temperature: Optional[float],
    area: float
) -> Optional[float]:
    """
    Normalized air volume in Nm³/min.

    Args:
        speed: Air speed (m/s)
        temperature: Gas temperature (°C)
        area: Duct cross-sectional area (m²)

    Returns:
        Volume corrected to 0 °C, or None if an input is missing
    """
    if speed is None or temperature is None or not area:
        return None
    absolute = STANDARD_TEMPERATURE_K + temperature
    if absolute <= 0:
        return None
    return speed * area * SECONDS_PER_MINUTE * STANDARD_TEMPERATURE_K / absolute


# --- accessor compilation ---------------------------------------------------

def _text_or_none(value: Any) -> Optional[str]:
    if value is None or not str(value).strip():
        return None
    return str(value)


# camelCase path -> (attribute, normalizer); normalizer None means read-only
_TOP_LEVEL_FIELDS: dict[str, tuple[str, Optional[Callable[[Any], Any]]]] = {
    "id": ("id", None),
    "recordType": ("record_type", None),
    "dryerModel": ("dryer_model", None),
    "isSynced": ("is_synced", None),
    "dateTime": ("date_time", normalize_date_time),
    "rtoStatus": ("rto_status", normalize_tri_state),
    "heatingStatus": ("heating_status", normalize_tri_state),
    "remark": ("remark", _text_or_none),
}

_AIR_ATTRIBUTES = {
    "speed": "speed",
    "temperature": "temperature",
    "temp": "temperature",
    "computedVolume": "computed_volume",
    "volume": "computed_volume",
}


def _compile_top_level(key: str) -> FieldAccessor:
    attribute, normalizer = _TOP_LEVEL_FIELDS[key]

    def getter(record: Record) -> Any:
        value = getattr(record, attribute)
        return value.value if isinstance(value, Enum) else value

    setter = None
    if normalizer is not None:
        def setter(record: Record, value: Any) -> None:
            setattr(record, attribute, normalizer(value))

    return FieldAccessor(key=key, getter=getter, setter=setter)


def _compile_air(key: str, point_id: str, attr: str) -> FieldAccessor:
    if attr not in _AIR_ATTRIBUTES:
        raise SchemaError(f"Unknown air volume attribute in {key!r}")
    attribute = _AIR_ATTRIBUTES[attr]

    def getter(record: Record) -> Any:
        reading = record.air_volumes.get(point_id)
        return getattr(reading, attribute) if reading else None

    setter = None
    if attribute != "computed_volume":
        def setter(record: Record, value: Any) -> None:
            reading = record.air_volumes.setdefault(point_id, AirVolumeReading())
            setattr(reading, attribute, parse_optional_float(value))

    return FieldAccessor(key=key, getter=getter, setter=setter)


def _compile_temp(key: str, point_id: str, attr: str) -> FieldAccessor:
    if attr == "diff":
        def getter(record: Record) -> Any:
            reading = record.actual_temps.get(point_id)
            return reading.diff if reading else None
        return FieldAccessor(key=key, getter=getter)

    line = attr[3:] if attr.startswith("val") else ""
    if not line.isdigit() or not 1 <= int(line) <= RECORD_FIELD_COUNT:
        raise SchemaError(f"Unknown temperature attribute in {key!r}")
    line_no = int(line)

    def getter(record: Record) -> Any:
        reading = record.actual_temps.get(point_id)
        return reading.get_value(line_no) if reading else None

    def setter(record: Record, value: Any) -> None:
        reading = record.actual_temps.setdefault(point_id, ActualTempReading())
        reading.set_value(line_no, parse_optional_float(value))

    return FieldAccessor(key=key, getter=getter, setter=setter)


def _compile_hmi(key: str, field_id: str) -> FieldAccessor:
    def getter(record: Record) -> Any:
        return record.hmi_data.get(field_id)

    def setter(record: Record, value: Any) -> None:
        record.hmi_data[field_id] = parse_optional_float(value)

    return FieldAccessor(key=key, getter=getter, setter=setter)


@lru_cache(maxsize=None)
def compile_accessor(key: str) -> FieldAccessor:
    """
    Validate a dotted field path and compile it into a typed accessor.

    Supported paths:
        dateTime, rtoStatus, ... (top-level record fields)
        airVolumes.<point>.speed|temperature|computedVolume
        actualTemps.<point>.val1..val5|diff
        hmiData.<field>

    Raises:
        SchemaError: if the path does not address a record field
    """
    if key in _TOP_LEVEL_FIELDS:
        return _compile_top_level(key)

    parts = key.split(".")
    if len(parts) == 3 and parts[0] == "airVolumes" and parts[1]:
        return _compile_air(key, parts[1], parts[2])
    if len(parts) == 3 and parts[0] == "actualTemps" and parts[1]:
        return _compile_temp(key, parts[1], parts[2])
    if len(parts) == 2 and parts[0] == "hmiData" and parts[1]:
        return _compile_hmi(key, parts[1])

    raise SchemaError(f"Invalid field path: {key!r}")


# --- model schema -------------------------------------------------------------

@dataclass
class ModelSchema:
    """Field and topology schema of one dryer model."""
    model: str
    measurement_points: list[MeasurementPoint] = field(default_factory=list)
    temperature_points: list[TemperaturePoint] = field(default_factory=list)
    hmi_fields: list[HmiField] = field(default_factory=list)
    fields: list[FieldDescriptor] = field(default_factory=list)

    def __post_init__(self):
        self.model = normalize_dryer_model(self.model)
        if not self.fields:
            self.fields = build_field_descriptors(
                self.measurement_points, self.temperature_points, self.hmi_fields
            )
        self._by_key = {d.key: d for d in self.fields}
        self._by_header = {d.header.strip(): d for d in self.fields}
        self._points = {p.id: p for p in self.measurement_points}

    def get_point(self, point_id: str) -> Optional[MeasurementPoint]:
        return self._points.get(point_id)

    def get_descriptor(self, key: str) -> Optional[FieldDescriptor]:
        return self._by_key.get(key)

    def find_by_header(self, header: str) -> Optional[FieldDescriptor]:
        """Look up a descriptor by (trimmed) CSV header text."""
        return self._by_header.get(header.strip())

    def descriptors_for(self, record_type: RecordType) -> list[FieldDescriptor]:
        return [d for d in self.fields if d.applies_to(record_type)]

    def table_fields(self, record_type: RecordType) -> list[FieldDescriptor]:
        """Fields shown in the history table / main CSV export."""
        return [d for d in self.fields if d.in_table and d.applies_to(record_type)]

    def numeric_fields(self, record_type: RecordType) -> list[FieldDescriptor]:
        """Fields selectable in the numeric range filter."""
        return [d for d in self.descriptors_for(record_type) if d.is_numeric]

    def csv_headers(self) -> list[str]:
        return [d.header for d in self.fields]

    def accessor(self, key: str) -> FieldAccessor:
        """Accessor for a schema field, or a compiled ad-hoc path."""
        descriptor = self._by_key.get(key)
        return descriptor.accessor if descriptor else compile_accessor(key)

    def refresh_derived_fields(self, record: Record) -> None:
        """
        Recompute values derived from schema constants.

        Readings on points that are not measurable are cleared and every
        computed volume is recalculated from speed, temperature and area.
        """
        for point_id, reading in record.air_volumes.items():
            point = self._points.get(point_id)
            if point is None:
                reading.computed_volume = None
                continue
            reading.status = point.status
            if not point.is_measurable:
                reading.speed = None
                reading.temperature = None
                reading.computed_volume = None
                continue
            reading.computed_volume = calculate_air_volume(
                reading.speed, reading.temperature, point.area
            )


def build_field_descriptors(
    measurement_points: Iterable[MeasurementPoint],
    temperature_points: Iterable[TemperaturePoint],
    hmi_fields: Iterable[HmiField]
) -> list[FieldDescriptor]:
    """Build the ordered descriptor table for one model."""
    descriptors: list[FieldDescriptor] = []

    def add(
        key: str,
        label: str,
        kind: FieldKind,
        csv_header: str = "",
        is_calculated: bool = False,
        in_table: bool = True,
        record_types: tuple[RecordType, ...] = ALL_RECORD_TYPES
    ) -> None:
        descriptors.append(FieldDescriptor(
            key=key,
            label=label,
            kind=kind,
            accessor=compile_accessor(key),
            csv_header=csv_header or label,
            is_calculated=is_calculated,
            in_table=in_table,
            record_types=record_types,
            order=len(descriptors) + 1
        ))

    add("recordType", "類型", FieldKind.ENUM)
    add("dryerModel", "機台型號", FieldKind.ENUM)
    add("dateTime", "日期時間", FieldKind.DATETIME)
    add("rtoStatus", "RTO啟用狀態", FieldKind.STATUS)
    add("heatingStatus", "升溫狀態", FieldKind.STATUS)

    for point in measurement_points:
        if not point.is_measurable:
            continue
        base = f"airVolumes.{point.id}"
        add(f"{base}.speed", f"{point.label} 風速(m/s)", FieldKind.NUMBER)
        add(f"{base}.temperature", f"{point.label} 溫度(℃)", FieldKind.NUMBER)
        add(f"{base}.computedVolume", f"{point.label} 風量(Nm³/分)", FieldKind.NUMBER,
            is_calculated=True)

    evaluation_only = (RecordType.EVALUATION_TEAM,)
    for point in temperature_points:
        base = f"actualTemps.{point.id}"
        for line in range(1, RECORD_FIELD_COUNT + 1):
            add(f"{base}.val{line}", f"{point.label}_{line}", FieldKind.NUMBER,
                record_types=evaluation_only)
        add(f"{base}.diff", f"{point.label}_溫差", FieldKind.NUMBER,
            is_calculated=True, record_types=evaluation_only)

    condition_only = (RecordType.CONDITION_SETTING,)
    for hmi in hmi_fields:
        label = f"HMI_{hmi.label}({hmi.unit})" if hmi.unit else f"HMI_{hmi.label}"
        add(f"hmiData.{hmi.id}", label, FieldKind.NUMBER, record_types=condition_only)

    add("remark", "備註", FieldKind.TEXT)
    return descriptors


class SchemaRegistry:
    """Field Schema Provider: dryer model -> ModelSchema."""

    def __init__(self, schemas: Optional[Iterable[ModelSchema]] = None):
        self._schemas: dict[str, ModelSchema] = {}
        for schema in schemas or []:
            self.register(schema)

    def register(self, schema: ModelSchema) -> None:
        self._schemas[schema.model] = schema

    @property
    def supported_models(self) -> list[str]:
        return list(self._schemas)

    def supports(self, model: str) -> bool:
        return normalize_dryer_model(model) in self._schemas

    def find(self, model: str) -> Optional[ModelSchema]:
        return self._schemas.get(normalize_dryer_model(model))

    def get(self, model: str) -> ModelSchema:
        """Get the schema of a model, raising SchemaError if unknown."""
        schema = self.find(model)
        if schema is None:
            raise SchemaError(f"Unknown dryer model: {model!r}")
        return schema

    def refresh_derived_fields(self, record: Record) -> None:
        """Recompute derived values using the record's own model schema."""
        schema = self.find(record.dryer_model)
        if schema is not None:
            schema.refresh_derived_fields(record)
            return
        _LOG.debug("no schema for model %r, clearing computed volumes", record.dryer_model)
        for reading in record.air_volumes.values():
            reading.computed_volume = None


# --- built-in tables ------------------------------------------------------

def _round_duct(point_id: str, label: str, floor: str, diameter: float,
                depth: Optional[float] = None,
                status: PointStatus = PointStatus.NORMAL) -> MeasurementPoint:
    return MeasurementPoint(
        id=point_id,
        label=label,
        floor=floor,
        duct=diameter,
        area=round(math.pi * (diameter / 2) ** 2, 3),
        probe_depth=depth,
        status=status
    )


TECH_TEMP_POINTS = [
    TemperaturePoint(f"P{i}", f"{TEMP_POINT_LABEL_PREFIX}{name}")
    for i, name in enumerate(
        ["入口", "1區", "2區", "3區", "4區", "5區", "6區", "出口"], start=1
    )
]

# Placeholder point layouts; the plant survey tables are not available here.
_MEASUREMENT_TABLES: dict[str, list[MeasurementPoint]] = {
    "vt8": [
        _round_duct("vt8_7f_exhaust", "7F 排氣", "7F", 0.8, 40),
        _round_duct("vt8_6f_supply", "6F 供氣", "6F", 0.6, 30),
        _round_duct("vt8_5f_return", "5F 回風", "5F", 0.6, 30),
        _round_duct("vt8_4f_rto_inlet", "4F RTO入口", "4F", 0.7, 35),
        _round_duct("vt8_3f_fresh_air", "3F 外氣", "3F", 0.5, 25),
        _round_duct("vt8_2f_burner", "2F 燃燒機", "2F", 0.4, None, PointStatus.DANGEROUS),
        _round_duct("vt8_2f_bypass", "2F 旁通", "2F", 0.4, None, PointStatus.UNMEASURABLE),
    ],
    "vt7": [
        _round_duct("vt7_6f_exhaust", "6F 排氣", "6F", 0.7, 35),
        _round_duct("vt7_5f_supply", "5F 供氣", "5F", 0.6, 30),
        _round_duct("vt7_4f_return", "4F 回風", "4F", 0.6, 30),
        _round_duct("vt7_3f_fresh_air", "3F 外氣", "3F", 0.5, 25),
        _round_duct("vt7_2f_burner", "2F 燃燒機", "2F", 0.4, None, PointStatus.DANGEROUS),
    ],
    "vt6": [
        _round_duct("vt6_5f_exhaust", "5F 排氣", "5F", 0.7, 35),
        _round_duct("vt6_4f_supply", "4F 供氣", "4F", 0.5, 25),
        _round_duct("vt6_3f_return", "3F 回風", "3F", 0.5, 25),
        _round_duct("vt6_2f_bypass", "2F 旁通", "2F", 0.4, None, PointStatus.UNMEASURABLE),
    ],
    "vt5": [
        _round_duct("vt5_4f_exhaust", "4F 排氣", "4F", 0.6, 30),
        _round_duct("vt5_3f_supply", "3F 供氣", "3F", 0.5, 25),
        _round_duct("vt5_2f_return", "2F 回風", "2F", 0.5, 25),
    ],
    "vt1": [
        _round_duct("vt1_3f_exhaust", "3F 排氣", "3F", 0.5, 25),
        _round_duct("vt1_2f_supply", "2F 供氣", "2F", 0.4, 20),
    ],
}

# (id, label, unit) per panel
_HMI_TABLES: dict[str, dict[str, list[tuple[str, str, str]]]] = {
    "vt8": {
        "monitor1": [
            ("monitor_FT_C1", "FT C-1", "CCM"),
            ("monitor_LEL_C1", "LEL C-1", "%"),
            ("monitor_FTA_1_2", "FTA-1-2", "CCM"),
            ("monitor_XVA_1_2", "XVA-1-2", "%"),
            ("monitor_XV1_1_2", "XV1-1-2", "%"),
            ("monitor_PDT4_2", "PDT4-2", "mmAq"),
            ("monitor_FTA_2_2", "FTA-2-2", "CCM"),
            ("monitor_XVA_2_2", "XVA-2-2", "%"),
            ("monitor_PDT3_2", "PDT3-2", "mmAq"),
            ("monitor_XV1_2_2", "XV1-2-2", "%"),
            ("monitor_PDT1_2", "PDT1-2", "mmAq"),
            ("monitor_FT1_2", "FT1-2", "CCM"),
            ("monitor_TE1_2", "TE1-2", "℃"),
        ],
        "monitor2": [
            ("monitor_F4_4_relay", "F4-4中繼", "Hz"),
            ("monitor_PDT2_2", "PDT2-2", "mmAq"),
            ("monitor_XV2_2", "XV2-2", "%"),
            ("monitor_LEL1_2", "LEL1-2", "%"),
            ("monitor_TE7_2", "TE7-2", "℃"),
            ("monitor_F1_B_burn", "F1-B燃燒", "Hz"),
        ],
        "pid1": [
            ("pid_F1_B_burn_SV", "F1-B燃燒/SV", "mmAq"),
            ("pid_F1_B_burn_Min", "F1-B燃燒/Min", "%"),
            ("pid_F1_B_burn_Max", "F1-B燃燒/Max", "%"),
            ("pid_F4_B_burn_SV", "F4-B燃燒/SV", "mmAq"),
            ("pid_F4_B_burn_Min", "F4-B燃燒/Min", "%"),
            ("pid_F4_B_burn_Max", "F4-B燃燒/Max", "%"),
        ],
        "pid2": [
            ("pid_XV1_1_2_SV", "XV1-1-2/SV", "mmAq"),
            ("pid_XV1_1_2_Min", "XV1-1-2/Min", "%"),
            ("pid_XV1_1_2_Max", "XV1-1-2/Max", "%"),
            ("pid_XV1_2_2_SV", "XV1-2-2/SV", "mmAq"),
            ("pid_XV1_2_2_Min", "XV1-2-2/Min", "%"),
            ("pid_XV1_2_2_Max", "XV1-2-2/Max", "%"),
        ],
    },
    "vt7": {
        "monitor1": [
            ("vt7_monitor_1", "FT 1-2", "CCM"),
            ("vt7_monitor_2", "XVB-2", "mm/s"),
            ("vt7_monitor_3", "FB-2桶槽", "Hz"),
            ("vt7_monitor_4", "FTA-2-1", "CMM"),
            ("vt7_monitor_5", "XVA-2-1", "%"),
            ("vt7_monitor_6", "XV1-2-1", "%"),
            ("vt7_monitor_7", "PDT3-3", "mmAq"),
            ("vt7_monitor_8", "FTA-2-2", "CMM"),
            ("vt7_monitor_9", "XVA-2-2", "%"),
            ("vt7_monitor_10", "PDT3-4", "mmAq"),
            ("vt7_monitor_11", "XV1-2-2", "%"),
            ("vt7_monitor_12", "TE1-2", "℃"),
            ("vt7_monitor_13", "FT1-2", "CMM"),
        ],
        "monitor2": [
            ("vt7_monitor_14", "LEL1-2", "%"),
            ("vt7_monitor_15", "PDT2-2", "mmAq"),
            ("vt7_monitor_16", "XV2-2", "%"),
            ("vt7_monitor_17", "F1-B燃燒", "mm/s"),
            ("vt7_monitor_18", "F1-B燃燒", "Hz"),
            ("vt7_monitor_19", "TE7-2", "℃"),
        ],
        "pid1": [
            ("vt7_pid_20", "XV1-2-1/SV", "mmAq"),
            ("vt7_pid_21", "XV1-2-1/Min", "%"),
            ("vt7_pid_22", "XV1-2-1/Max", "%"),
            ("vt7_pid_23", "XV1-2-2/SV", "mmAq"),
            ("vt7_pid_24", "XV1-2-2/Min", "%"),
            ("vt7_pid_25", "XV1-2-2/Max", "%"),
        ],
    },
    "vt6": {
        "monitor1": [
            ("vt6_monitor_1", "FT 1-2", "CMM"),
            ("vt6_monitor_2", "XVA-1-1", "%"),
            ("vt6_monitor_3", "PDT3-1", "mmAq"),
            ("vt6_monitor_4", "XV1-1-1", "%"),
            ("vt6_monitor_5", "FTA-2-1", "CMM"),
            ("vt6_monitor_6", "XVA-1-2", "%"),
            ("vt6_monitor_7", "PDT3-2", "mmAq"),
            ("vt6_monitor_8", "XV1-1-2", "%"),
            ("vt6_monitor_9", "TE1-2", "℃"),
            ("vt6_monitor_10", "FT1-1", "CMM"),
        ],
        "monitor2": [
            ("vt6_monitor_11", "LEL1-1", "%"),
            ("vt6_monitor_12", "PDT2-1", "mmAq"),
            ("vt6_monitor_13", "XV2-1", "%"),
            ("vt6_monitor_14", "F1-A燃燒", "mm/s"),
            ("vt6_monitor_15", "F1-A燃燒", "Hz"),
            ("vt6_monitor_16", "TE7-1", "℃"),
        ],
        "pid1": [
            ("vt6_pid_17", "XV1-1-1/SV", "mmAq"),
            ("vt6_pid_18", "XV1-1-1/Min", "%"),
            ("vt6_pid_19", "XV1-1-1/Max", "%"),
            ("vt6_pid_20", "XV1-1-2/SV", "mmAq"),
            ("vt6_pid_21", "XV1-1-2/Min", "%"),
            ("vt6_pid_22", "XV1-1-2/Max", "%"),
        ],
    },
    "vt5": {
        "monitor1": [
            ("vt5_monitor_1", "FTA-1-2", "CMM"),
            ("vt5_monitor_2", "XVA-1-2", "%"),
            ("vt5_monitor_3", "XV1-1-2", "%"),
            ("vt5_monitor_4", "PDT1-2", "mmAq"),
            ("vt5_monitor_5", "FTA-2-2", "CMM"),
            ("vt5_monitor_6", "XVA-2-2", "%"),
            ("vt5_monitor_7", "PDT3-2", "mmAq"),
            ("vt5_monitor_8", "XV1-2-2", "%"),
            ("vt5_monitor_9", "FT1-2", "CMM"),
            ("vt5_monitor_10", "TE1-2", "℃"),
            ("vt5_monitor_11", "F-4-2中繼", "Hz"),
        ],
    },
    "vt1": {},
}


def _hmi_fields(model: str) -> list[HmiField]:
    fields: list[HmiField] = []
    for panel, entries in _HMI_TABLES.get(model, {}).items():
        # Panels reuse labels (e.g. two "F1-B燃燒" readings), so labels carry the panel
        for field_id, label, unit in entries:
            fields.append(HmiField(id=field_id, label=f"{panel}_{label}", unit=unit, panel=panel))
    return fields


def default_registry(models: Optional[Iterable[str]] = None) -> SchemaRegistry:
    """
    Build the built-in registry.

    Args:
        models: Restrict to these model codes (default: all built-in models)
    """
    wanted = [normalize_dryer_model(m) for m in models] if models else list(_MEASUREMENT_TABLES)
    registry = SchemaRegistry()
    for model in wanted:
        if model not in _MEASUREMENT_TABLES:
            raise SchemaError(f"No built-in schema for dryer model {model!r}")
        registry.register(ModelSchema(
            model=model,
            measurement_points=list(_MEASUREMENT_TABLES[model]),
            temperature_points=list(TECH_TEMP_POINTS),
            hmi_fields=_hmi_fields(model)
        ))
    return registry
