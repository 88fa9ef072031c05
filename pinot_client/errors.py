"""Exception hierarchy shared by the client modules."""

from __future__ import annotations


class PinotClientError(RuntimeError):
    """Base class for every error raised by the client."""


class ConfigurationError(PinotClientError):
    """Raised when a client cannot be built from the supplied configuration."""


class QueryFormatError(PinotClientError):
    """Raised when a parameterized query cannot be rendered."""


class ArgumentCountMismatchError(QueryFormatError):
    """Placeholder count differs from the number of supplied parameters."""


class UnsupportedParameterTypeError(QueryFormatError):
    """A parameter has no literal encoding."""


class BrokerSelectionError(PinotClientError):
    """Raised when no broker address can be resolved for a table."""


class TableNotFoundError(BrokerSelectionError):
    """The table is missing from the current broker mapping."""

    def __init__(self, table: str) -> None:
        super().__init__(f"Unable to find table '{table}' in the broker mapping.")
        self.table = table


class NoBrokerAvailableError(BrokerSelectionError):
    """The table is known but has no candidate brokers."""

    def __init__(self, table: str) -> None:
        label = f"table '{table}'" if table else "any table"
        super().__init__(f"No broker available for {label}.")
        self.table = table


class DiscoverySourceUnavailableError(BrokerSelectionError):
    """The discovery source could not deliver an initial broker mapping."""


class EmptyBrokerListError(BrokerSelectionError):
    """A static selector was constructed without any broker."""


class TransportError(PinotClientError):
    """Raised when the broker request fails or returns an unusable payload."""

    def __init__(self, message: str, *, broker: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.broker = broker
        self.status_code = status_code


class QueryTimeoutError(TransportError):
    """The broker did not answer within the caller supplied timeout."""


__all__ = [
    "ArgumentCountMismatchError",
    "BrokerSelectionError",
    "ConfigurationError",
    "DiscoverySourceUnavailableError",
    "EmptyBrokerListError",
    "NoBrokerAvailableError",
    "PinotClientError",
    "QueryFormatError",
    "QueryTimeoutError",
    "TableNotFoundError",
    "TransportError",
    "UnsupportedParameterTypeError",
]
