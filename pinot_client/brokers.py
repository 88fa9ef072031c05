"""Broker selection strategies."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Protocol, Self, runtime_checkable

from .errors import (
    ConfigurationError,
    DiscoverySourceUnavailableError,
    EmptyBrokerListError,
    NoBrokerAvailableError,
    TableNotFoundError,
)

LOG = logging.getLogger(__name__)


@runtime_checkable
class BrokerSelector(Protocol):
    """Resolves a table name to a ``host:port`` broker address."""

    def start(self) -> None:
        """Prepare the selector for its first ``select`` call."""

    def stop(self) -> None:
        """Release background resources; further refreshes stop."""

    def select(self, table: str) -> str:
        """Return a broker address serving ``table``."""


class SelectorLifecycle:
    """Context manager plumbing shared by the selector implementations."""

    @property
    def ready(self) -> bool:
        """Whether ``select`` can answer without waiting for discovery."""

        return True

    def start(self) -> None:
        return None

    def stop(self) -> None:
        return None

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


class SimpleBrokerSelector(SelectorLifecycle):
    """Round-robins over a fixed broker list, ignoring the table name."""

    def __init__(self, broker_list: Iterable[str]) -> None:
        brokers = tuple(broker_list)
        if not brokers:
            raise EmptyBrokerListError("Broker list is empty.")
        if any(not broker or not broker.strip() for broker in brokers):
            raise ConfigurationError("Broker addresses must be non-empty strings.")
        self._brokers = brokers
        self._cursor = 0
        self._lock = threading.Lock()

    @property
    def brokers(self) -> tuple[str, ...]:
        return self._brokers

    def select(self, table: str) -> str:
        with self._lock:
            broker = self._brokers[self._cursor]
            self._cursor = (self._cursor + 1) % len(self._brokers)
        return broker


@dataclass(frozen=True, slots=True)
class BrokerTable:
    """Immutable table -> brokers snapshot produced by one discovery fetch."""

    tables: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))
    brokers: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Iterable[str]]) -> BrokerTable:
        """Build a snapshot, de-duplicating addresses while keeping their order."""

        tables: dict[str, tuple[str, ...]] = {}
        every_broker: dict[str, None] = {}
        for table, addresses in mapping.items():
            unique = tuple(dict.fromkeys(address for address in addresses if address))
            tables[table] = unique
            every_broker.update(dict.fromkeys(unique))
        return cls(tables=MappingProxyType(tables), brokers=tuple(every_broker))

    def __len__(self) -> int:
        return len(self.tables)


class TableAwareBrokerSelector(SelectorLifecycle):
    """Round-robins within the broker set of each table.

    The current ``BrokerTable`` is replaced wholesale by ``replace``; readers
    see either the previous or the new snapshot. Rotation cursors survive a
    swap for tables that are still present; cursors of removed tables are
    dropped so they do not linger.
    An empty table name selects among every broker known to the snapshot.
    """

    def __init__(self, *, ready_timeout: float = 10.0) -> None:
        self._lock = threading.Lock()
        self._snapshot: BrokerTable | None = None
        self._cursors: dict[str, int] = {}
        self._ready = threading.Event()
        self._ready_timeout = ready_timeout

    @property
    def snapshot(self) -> BrokerTable | None:
        """Snapshot currently used for selection, ``None`` before the first load."""

        with self._lock:
            return self._snapshot

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    def wait_ready(self, timeout: float | None = None) -> bool:
        """Block until a first snapshot is installed."""

        return self._ready.wait(self._ready_timeout if timeout is None else timeout)

    def update(self, mapping: Mapping[str, Iterable[str]]) -> BrokerTable:
        """Build a snapshot from a raw mapping and install it."""

        snapshot = BrokerTable.from_mapping(mapping)
        self.replace(snapshot)
        return snapshot

    def replace(self, snapshot: BrokerTable) -> None:
        with self._lock:
            self._snapshot = snapshot
            self._cursors = {
                table: cursor
                for table, cursor in self._cursors.items()
                if not table or table in snapshot.tables
            }
        self._ready.set()
        LOG.debug(
            "Installed broker mapping",
            extra={"tables": len(snapshot.tables), "brokers": len(snapshot.brokers)},
        )

    def select(self, table: str) -> str:
        if not self._ready.is_set() and not self.wait_ready():
            raise DiscoverySourceUnavailableError("Broker mapping has not been loaded yet.")
        with self._lock:
            snapshot = self._snapshot
            assert snapshot is not None
            if table:
                candidates = snapshot.tables.get(table)
                if candidates is None:
                    raise TableNotFoundError(table)
            else:
                candidates = snapshot.brokers
            if not candidates:
                raise NoBrokerAvailableError(table)
            index = self._cursors.get(table, 0) % len(candidates)
            self._cursors[table] = (index + 1) % len(candidates)
        return candidates[index]


__all__ = [
    "BrokerSelector",
    "BrokerTable",
    "SelectorLifecycle",
    "SimpleBrokerSelector",
    "TableAwareBrokerSelector",
]
