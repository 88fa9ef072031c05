"""Pinot client routing SQL queries to the brokers serving each table."""

from __future__ import annotations

from .brokers import BrokerSelector, BrokerTable, SimpleBrokerSelector, TableAwareBrokerSelector
from .config import ClientConfig, ControllerConfig, ZookeeperConfig, load_config
from .connection import Connection
from .discovery import ControllerBrokerSelector, ZookeeperBrokerSelector
from .errors import (
    ArgumentCountMismatchError,
    BrokerSelectionError,
    ConfigurationError,
    DiscoverySourceUnavailableError,
    EmptyBrokerListError,
    NoBrokerAvailableError,
    PinotClientError,
    QueryFormatError,
    QueryTimeoutError,
    TableNotFoundError,
    TransportError,
    UnsupportedParameterTypeError,
)
from .factory import from_broker_list, from_config, from_controller, from_zookeeper
from .models import BrokerResponse, ResultTable
from .query import QueryRequest, format_query
from .transport import ClientTransport, JsonHttpTransport

__version__ = "0.1.0"

__all__ = [
    "ArgumentCountMismatchError",
    "BrokerResponse",
    "BrokerSelectionError",
    "BrokerSelector",
    "BrokerTable",
    "ClientConfig",
    "ClientTransport",
    "ConfigurationError",
    "Connection",
    "ControllerBrokerSelector",
    "ControllerConfig",
    "DiscoverySourceUnavailableError",
    "EmptyBrokerListError",
    "JsonHttpTransport",
    "NoBrokerAvailableError",
    "PinotClientError",
    "QueryFormatError",
    "QueryRequest",
    "QueryTimeoutError",
    "ResultTable",
    "SimpleBrokerSelector",
    "TableAwareBrokerSelector",
    "TableNotFoundError",
    "TransportError",
    "UnsupportedParameterTypeError",
    "ZookeeperBrokerSelector",
    "ZookeeperConfig",
    "__version__",
    "format_query",
    "from_broker_list",
    "from_config",
    "from_controller",
    "from_zookeeper",
    "load_config",
]
