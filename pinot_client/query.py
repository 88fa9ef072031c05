"""Query request values and parameter formatting."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from .errors import ArgumentCountMismatchError, UnsupportedParameterTypeError

PLACEHOLDER = "?"

_SQL_QUERY_OPTIONS = "groupByMode=sql;responseFormat=sql"


@dataclass(frozen=True, slots=True)
class QueryRequest:
    """Single broker request built fresh for every query."""

    query: str
    trace: bool = False
    use_multistage_engine: bool = False
    query_format: str = field(default="sql", init=False)

    def to_payload(self) -> dict[str, str]:
        """Render the JSON body accepted by the broker query endpoint."""

        payload = {"sql": self.query}
        options = _SQL_QUERY_OPTIONS
        if self.trace:
            payload["trace"] = "true"
        if self.use_multistage_engine:
            options = f"{options};useMultistageEngine=true"
        payload["queryOptions"] = options
        return payload


def format_query(pattern: str, *params: Any) -> str:
    """Substitute each ``?`` in ``pattern`` with the literal form of a parameter.

    Raises ``ArgumentCountMismatchError`` when the number of placeholders does
    not match ``params`` and ``UnsupportedParameterTypeError`` for values that
    have no literal encoding. Every argument is encoded before the result is
    assembled, so a failure never yields a partially substituted query.
    """

    placeholders = pattern.count(PLACEHOLDER)
    if placeholders != len(params):
        raise ArgumentCountMismatchError(
            f"Number of placeholders in query pattern ({placeholders}) does not match "
            f"number of parameters ({len(params)}): {pattern}"
        )
    literals = [format_arg(value) for value in params]
    parts = pattern.split(PLACEHOLDER)
    chunks: list[str] = []
    for part, literal in zip(parts, literals):
        chunks.append(part)
        chunks.append(literal)
    chunks.append(parts[-1])
    return "".join(chunks)


def format_arg(value: Any) -> str:
    """Encode a single parameter as a query literal."""

    # STRING and BIG_DECIMAL columns; embedded quotes are left to the caller.
    if isinstance(value, str):
        return f"'{value}'"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"'{bytes(value).hex().upper()}'"
    if isinstance(value, datetime):
        return f"'{_format_timestamp(value)}'"
    if isinstance(value, (bool, int, float, Decimal)):
        return str(value)
    raise UnsupportedParameterTypeError(f"Unsupported parameter type: {type(value).__name__}")


def _format_timestamp(value: datetime) -> str:
    millis = value.microsecond // 1000
    return (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}.{millis:03d}"
    )


__all__ = [
    "PLACEHOLDER",
    "QueryRequest",
    "format_arg",
    "format_query",
]
