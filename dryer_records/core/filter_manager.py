"""
Query pipeline: scope partition, filters, sorting and pagination of records.
"""
from __future__ import annotations

import locale
import logging
import math
from typing import Any, Iterable, Optional, Sequence, Union

import pandas as pd

from .models import FilterState, PageView, Record, RecordType, SortState, ViewScope
from .results import ErrorKind, OperationResult
from .schema import FieldAccessor, SchemaError, SchemaRegistry, compile_accessor

_LOG = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20


def scope_records(records: Iterable[Record], scope: ViewScope) -> list[Record]:
    """Hard partition on (record type, dryer model)."""
    return [r for r in records if scope.contains(r)]


def filter_records(
    records: Sequence[Record],
    filters: FilterState,
    range_accessor: Optional[FieldAccessor] = None
) -> list[Record]:
    """
    Apply every active filter as a conjunction.

    Args:
        records: Records already partitioned by scope
        filters: Active filter state
        range_accessor: Accessor of the numeric range field, if any

    Returns:
        Records passing all filters, in input order
    """
    if not records:
        return []

    frame = pd.DataFrame({
        "date": [r.date_prefix or "" for r in records],
        "rto": [r.rto_status for r in records],
        "heating": [r.heating_status for r in records],
        "remark": [(r.remark or "").lower() for r in records],
    })
    mask = pd.Series(True, index=frame.index)

    # Date range on the date prefix, inclusive
    if filters.start_date:
        mask &= (frame["date"] != "") & (frame["date"] >= filters.start_date)
    if filters.end_date:
        mask &= (frame["date"] != "") & (frame["date"] <= filters.end_date)

    # Status flags
    if filters.rto_status not in (None, "all"):
        mask &= frame["rto"] == filters.rto_status
    if filters.heating_status not in (None, "all"):
        mask &= frame["heating"] == filters.heating_status

    # Remark substring
    if filters.remark:
        mask &= frame["remark"].str.contains(filters.remark.lower(), regex=False)

    # Numeric range; non-numeric values fail the test
    if filters.has_range_filter and range_accessor is not None:
        values = pd.to_numeric(
            pd.Series([range_accessor.getter(r) for r in records], dtype=object),
            errors="coerce"
        )
        low = filters.min_value if filters.min_value is not None else -math.inf
        high = filters.max_value if filters.max_value is not None else math.inf
        mask &= values.notna() & (values >= low) & (values <= high)

    return [r for r, keep in zip(records, mask.tolist()) if keep]


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and pd.isna(pd.to_numeric(value, errors="coerce"))


def sort_records(
    records: Sequence[Record],
    sort: SortState,
    accessor: FieldAccessor
) -> list[Record]:
    """
    Stable sort on one field.

    Text values use a locale-aware collation key; anything else is compared
    numerically. Missing values (and values that are not numbers in numeric
    mode) always go last, whatever the direction.
    """
    if not records:
        return []

    values = pd.Series([accessor.getter(r) for r in records], dtype=object)
    present = values[values.notna()]

    if len(present) and all(_is_text(v) for v in present):
        keys = present.map(locale.strxfrm)
        order = list(keys.sort_values(ascending=sort.ascending, kind="stable").index)
        order += list(values.index[values.isna()])
    else:
        numbers = pd.to_numeric(values, errors="coerce")
        order = list(numbers.sort_values(
            ascending=sort.ascending, kind="stable", na_position="last"
        ).index)

    return [records[i] for i in order]


def paginate(
    records: Sequence[Record],
    page: int,
    page_size: int = DEFAULT_PAGE_SIZE
) -> tuple[list[Record], int, int]:
    """
    Slice one page out of the view.

    Returns:
        (page_records, current_page, total_pages); the page snaps back to 1
        when it is out of range.
    """
    total_pages = max(1, math.ceil(len(records) / page_size))
    if page < 1 or page > total_pages:
        page = 1
    start = (page - 1) * page_size
    return list(records[start:start + page_size]), page, total_pages


class FilterManager:
    """
    Owns the view state (scope, filters, sort, page, edit session) and
    produces pages of the record list.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        page_size: int = DEFAULT_PAGE_SIZE,
        scope: Optional[ViewScope] = None
    ):
        self._registry = registry
        self.page_size = page_size
        self.scope = scope or ViewScope()
        self.filters = FilterState()
        self.sort = SortState()
        self.current_page = 1
        self.editing_id: Optional[str] = None

    def _accessor(self, key: str) -> FieldAccessor:
        schema = self._registry.find(self.scope.dryer_model)
        return schema.accessor(key) if schema else compile_accessor(key)

    # --- view state ----------------------------------------------------------

    def set_scope(self, record_type: Union[RecordType, str], dryer_model: str) -> OperationResult:
        """Switch the (record type, model) partition and go back to page 1."""
        if isinstance(record_type, str):
            try:
                record_type = RecordType(record_type)
            except ValueError:
                return OperationResult.failure(
                    ErrorKind.VALIDATION, f"Unknown record type: {record_type!r}"
                )
        if not self._registry.supports(dryer_model):
            return OperationResult.failure(
                ErrorKind.VALIDATION, f"Unsupported dryer model: {dryer_model!r}"
            )
        self.scope = ViewScope(record_type=record_type, dryer_model=dryer_model)
        self.current_page = 1
        return OperationResult.info(f"Showing {record_type.value} / {self.scope.dryer_model}.")

    def apply_filters(self, filters: Union[FilterState, dict[str, Any]]) -> OperationResult:
        """Replace the active filters and go back to page 1."""
        if isinstance(filters, dict):
            filters = FilterState.from_dict(filters)
        if filters.range_field:
            try:
                self._accessor(filters.range_field)
            except SchemaError as exc:
                return OperationResult.failure(ErrorKind.VALIDATION, str(exc))
        self.filters = filters
        self.current_page = 1
        return OperationResult.info("Filters applied.")

    def clear_filters(self) -> None:
        self.filters = FilterState()
        self.current_page = 1

    def sort_by(self, key: str) -> OperationResult:
        """Sort on a field; repeating the same key flips the direction."""
        try:
            self._accessor(key)
        except SchemaError as exc:
            return OperationResult.failure(ErrorKind.VALIDATION, str(exc))
        self.sort = self.sort.toggled(key)
        self.current_page = 1
        return OperationResult.info(f"Sorted by {key} ({self.sort.direction.value}).")

    def change_page(self, page: int, records: Iterable[Record]) -> OperationResult:
        """Move to another page of the current view."""
        total = len(self.full_view(records))
        total_pages = max(1, math.ceil(total / self.page_size))
        if not 1 <= page <= total_pages:
            return OperationResult.failure(
                ErrorKind.VALIDATION, f"Page {page} is outside 1..{total_pages}."
            )
        self.current_page = page
        return OperationResult.info(f"Page {page} of {total_pages}.")

    # --- edit session --------------------------------------------------------

    def begin_edit(self, record_id: str, records: Iterable[Record]) -> OperationResult:
        """Mark a record as being edited."""
        for record in records:
            if record.id == record_id:
                self.editing_id = record_id
                return OperationResult.info("Editing record.", value=record)
        return OperationResult.failure(ErrorKind.NOT_FOUND, "The record to edit does not exist.")

    def cancel_edit(self) -> None:
        self.editing_id = None

    def forget(self, record_id: str) -> bool:
        """Drop the edit session if it points at a removed record."""
        if self.editing_id == record_id:
            self.editing_id = None
            return True
        return False

    # --- queries -------------------------------------------------------------

    def full_view(self, records: Iterable[Record]) -> list[Record]:
        """Scoped, filtered and sorted records (all pages)."""
        scoped = scope_records(records, self.scope)
        range_accessor = (
            self._accessor(self.filters.range_field) if self.filters.has_range_filter else None
        )
        filtered = filter_records(scoped, self.filters, range_accessor)
        return sort_records(filtered, self.sort, self._accessor(self.sort.key))

    def query(self, records: Iterable[Record]) -> PageView:
        """
        Produce the visible page.

        Also locates the record under edit in the new view so the edit
        session follows it across filter/sort/page changes.
        """
        records = list(records)
        view = self.full_view(records)
        page_records, page, total_pages = paginate(view, self.current_page, self.page_size)
        if page != self.current_page:
            _LOG.debug("page %d out of range, snapped to %d", self.current_page, page)
        self.current_page = page

        result = PageView(
            records=page_records,
            current_page=page,
            total_pages=total_pages,
            total_records=len(view),
            sort=self.sort
        )

        if self.editing_id is not None:
            if not any(r.id == self.editing_id for r in records):
                self.editing_id = None
            else:
                result.editing_id = self.editing_id
                position = next((i for i, r in enumerate(view) if r.id == self.editing_id), None)
                if position is not None:
                    result.editing_page = position // self.page_size + 1
                    if result.editing_page == page:
                        result.editing_row = position - (page - 1) * self.page_size

        return result
