"""
Core module for the dryer record manager.
Contains the record model, field schema, storage, query pipeline, comparison,
merge/import logic and the session controller.
"""

from .results import (
    ErrorKind,
    MessageLevel,
    OperationResult,
)
from .models import (
    ActualTempReading,
    AirVolumeReading,
    FilterState,
    HeaderDiff,
    ImportReport,
    PageView,
    PointStatus,
    RawChartData,
    Record,
    RecordFormatError,
    RecordType,
    SkippedRow,
    SortDirection,
    SortState,
    ViewScope,
)
from .schema import (
    FieldDescriptor,
    FieldKind,
    MeasurementPoint,
    ModelSchema,
    SchemaError,
    SchemaRegistry,
    TemperaturePoint,
    calculate_air_volume,
    compile_accessor,
    default_registry,
)
from .storage import (
    JsonFileStorage,
    KeyValueStorage,
    MemoryStorage,
    StorageError,
)
from .record_store import (
    RecordStore,
    normalize_record,
    sort_by_date_desc,
)
from .filter_manager import (
    FilterManager,
    filter_records,
    paginate,
    sort_records,
)
from .comparison import (
    ChartSeries,
    ComparisonAnalysis,
    RecordComparer,
    SeriesDataset,
)
from .io_handler import (
    BatchRejectedError,
    CsvRecordParser,
    FileReader,
    UnrecognizedTypePolicy,
    apply_header_mapping,
    build_export_frame,
    build_full_export_frame,
    compute_header_diff,
)
from .merge_handler import (
    MasterBuild,
    RecordMerger,
    merge_snapshots,
)
from .golden_batch import GoldenBatchRegistry
from .session import RecordSession

__all__ = [
    # Results
    "ErrorKind",
    "MessageLevel",
    "OperationResult",
    # Models
    "ActualTempReading",
    "AirVolumeReading",
    "FilterState",
    "HeaderDiff",
    "ImportReport",
    "PageView",
    "PointStatus",
    "RawChartData",
    "Record",
    "RecordFormatError",
    "RecordType",
    "SkippedRow",
    "SortDirection",
    "SortState",
    "ViewScope",
    # Schema
    "FieldDescriptor",
    "FieldKind",
    "MeasurementPoint",
    "ModelSchema",
    "SchemaError",
    "SchemaRegistry",
    "TemperaturePoint",
    "calculate_air_volume",
    "compile_accessor",
    "default_registry",
    # Storage
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "StorageError",
    "RecordStore",
    "normalize_record",
    "sort_by_date_desc",
    # Query
    "FilterManager",
    "filter_records",
    "paginate",
    "sort_records",
    # Comparison
    "ChartSeries",
    "ComparisonAnalysis",
    "RecordComparer",
    "SeriesDataset",
    # IO
    "BatchRejectedError",
    "CsvRecordParser",
    "FileReader",
    "UnrecognizedTypePolicy",
    "apply_header_mapping",
    "build_export_frame",
    "build_full_export_frame",
    "compute_header_diff",
    # Merge
    "MasterBuild",
    "RecordMerger",
    "merge_snapshots",
    # Session
    "GoldenBatchRegistry",
    "RecordSession",
]
