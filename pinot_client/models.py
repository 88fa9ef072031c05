"""Typed broker response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _BrokerModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class DataSchema(_BrokerModel):
    """Column names and types of a result table."""

    column_data_types: tuple[str, ...] = ()
    column_names: tuple[str, ...] = ()


class ResultTable(_BrokerModel):
    """Tabular result returned for SQL queries."""

    data_schema: DataSchema = Field(default_factory=DataSchema)
    rows: tuple[tuple[Any, ...], ...] = ()

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.data_schema.column_names)

    def column_name(self, column_index: int) -> str:
        return self.data_schema.column_names[column_index]

    def column_data_type(self, column_index: int) -> str:
        return self.data_schema.column_data_types[column_index]

    def get(self, row_index: int, column_index: int) -> Any:
        return self.rows[row_index][column_index]

    def get_string(self, row_index: int, column_index: int) -> str:
        return str(self.get(row_index, column_index))

    def get_int(self, row_index: int, column_index: int) -> int:
        return int(self.get(row_index, column_index))

    # Python ints are unbounded; kept for parity with the typed getters.
    get_long = get_int

    def get_float(self, row_index: int, column_index: int) -> float:
        return float(self.get(row_index, column_index))

    get_double = get_float


class SelectionResults(_BrokerModel):
    """PQL selection result."""

    columns: tuple[str, ...] = ()
    results: tuple[tuple[Any, ...], ...] = ()


class GroupValue(_BrokerModel):
    """One group of a PQL group-by aggregation."""

    value: str = ""
    group: tuple[str, ...] = ()


class AggregationResult(_BrokerModel):
    """PQL aggregation result."""

    function: str = ""
    value: str | None = None
    group_by_columns: tuple[str, ...] = ()
    group_by_result: tuple[GroupValue, ...] = ()


class PinotException(_BrokerModel):
    """Error reported by the broker inside an otherwise successful response."""

    message: str = ""
    error_code: int = 0


class BrokerResponse(_BrokerModel):
    """Deserialized broker JSON payload."""

    result_table: ResultTable | None = None
    selection_results: SelectionResults | None = None
    aggregation_results: tuple[AggregationResult, ...] | None = None
    trace_info: dict[str, Any] | None = None
    exceptions: tuple[PinotException, ...] = ()
    num_segments_processed: int = 0
    num_servers_responded: int = 0
    num_segments_queried: int = 0
    num_servers_queried: int = 0
    num_segments_matched: int = 0
    num_consuming_segments_queried: int = 0
    num_docs_scanned: int = 0
    num_entries_scanned_in_filter: int = 0
    num_entries_scanned_post_filter: int = 0
    total_docs: int = 0
    time_used_ms: int = 0
    min_consuming_freshness_time_ms: int = 0
    num_groups_limit_reached: bool = False

    @property
    def has_exceptions(self) -> bool:
        return bool(self.exceptions)


__all__ = [
    "AggregationResult",
    "BrokerResponse",
    "DataSchema",
    "GroupValue",
    "PinotException",
    "ResultTable",
    "SelectionResults",
]
