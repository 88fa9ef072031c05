"""Selectors fed by a live table -> broker mapping from the cluster."""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Sequence

import httpx
from kazoo.client import KazooClient
from kazoo.exceptions import KazooException
from kazoo.handlers.threading import KazooTimeoutError
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .brokers import BrokerTable, SelectorLifecycle, TableAwareBrokerSelector
from .errors import ConfigurationError, DiscoverySourceUnavailableError

LOG = logging.getLogger(__name__)

CONTROLLER_BROKERS_PATH = "/v2/brokers/tables?state=ONLINE"
DEFAULT_UPDATE_FREQUENCY_MS = 1000
BROKER_EXTERNAL_VIEW_PATH = "EXTERNALVIEW/brokerResource"
DEFAULT_SESSION_TIMEOUT_MS = 10_000

_TABLE_TYPE_SUFFIXES = ("_OFFLINE", "_REALTIME")
_BROKER_INSTANCE_PREFIX = "Broker_"


class BrokerInstance(BaseModel):
    """One broker entry of the controller ``/v2/brokers/tables`` response."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    host: str
    port: int
    instance_name: str | None = Field(default=None, alias="instanceName")

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


class ExternalView(BaseModel):
    """Subset of the Helix external view document stored in ZooKeeper."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    map_fields: dict[str, dict[str, str]] = Field(default_factory=dict, alias="mapFields")


_CONTROLLER_RESPONSE = TypeAdapter(dict[str, list[BrokerInstance]])


def parse_controller_brokers(payload: Any) -> dict[str, list[str]]:
    """Convert a controller broker listing into table -> addresses."""

    tables = _CONTROLLER_RESPONSE.validate_python(payload)
    return {table: [broker.address for broker in brokers] for table, brokers in tables.items()}


def parse_external_view(data: bytes | str) -> dict[str, list[str]]:
    """Convert the broker resource external view into table -> online addresses.

    Offline and realtime resources of the same table are merged under the
    logical table name.
    """

    view = ExternalView.model_validate_json(data)
    mapping: dict[str, list[str]] = {}
    for resource, instances in view.map_fields.items():
        brokers = mapping.setdefault(_logical_table_name(resource), [])
        for instance, state in instances.items():
            if state != "ONLINE":
                continue
            try:
                brokers.append(_instance_address(instance))
            except ValueError:
                LOG.warning("Skipping malformed broker instance", extra={"instance": instance})
    return mapping


def _logical_table_name(resource: str) -> str:
    for suffix in _TABLE_TYPE_SUFFIXES:
        if resource.endswith(suffix):
            return resource[: -len(suffix)]
    return resource


def _instance_address(instance: str) -> str:
    if not instance.startswith(_BROKER_INSTANCE_PREFIX):
        raise ValueError(f"Not a broker instance: {instance}")
    host, sep, port = instance[len(_BROKER_INSTANCE_PREFIX):].rpartition("_")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"Malformed broker instance: {instance}")
    return f"{host}:{port}"


def _controller_url(address: str) -> str:
    base = address.rstrip("/")
    if not base.startswith(("http://", "https://")):
        base = f"http://{base}"
    return f"{base}{CONTROLLER_BROKERS_PATH}"


class ControllerBrokerSelector(SelectorLifecycle):
    """Polls the controller for the broker mapping on a fixed interval."""

    def __init__(
        self,
        controller_address: str,
        *,
        update_frequency_ms: int = DEFAULT_UPDATE_FREQUENCY_MS,
        extra_headers: Mapping[str, str] | None = None,
        http_timeout: float | None = 5.0,
        client: httpx.Client | None = None,
        ready_timeout: float = 10.0,
    ) -> None:
        if not controller_address or not controller_address.strip():
            raise ConfigurationError("Controller address is required.")
        self._url = _controller_url(controller_address.strip())
        if update_frequency_ms <= 0:
            update_frequency_ms = DEFAULT_UPDATE_FREQUENCY_MS
        self._interval = update_frequency_ms / 1000
        self._headers = {"Accept": "application/json", **dict(extra_headers or {})}
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=http_timeout)
        self._brokers = TableAwareBrokerSelector(ready_timeout=ready_timeout)
        self._stop_event = threading.Event()
        self._lifecycle_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._closed = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def interval(self) -> float:
        """Seconds between two controller polls."""

        return self._interval

    @property
    def snapshot(self) -> BrokerTable | None:
        return self._brokers.snapshot

    @property
    def ready(self) -> bool:
        return self._brokers.ready

    def start(self) -> None:
        """Fetch the mapping once, then keep it fresh from a daemon thread."""

        with self._lifecycle_lock:
            if self._thread is not None:
                return
            if self._stop_event.is_set():
                raise DiscoverySourceUnavailableError("Selector has been stopped.")
            try:
                self.refresh()
            except (httpx.HTTPError, ValueError) as exc:
                self._stop_event.set()
                self._close_client()
                raise DiscoverySourceUnavailableError(
                    f"Unable to fetch broker mapping from controller {self._url}: {exc}"
                ) from exc
            self._thread = threading.Thread(
                target=self._refresh_loop,
                name="pinot-controller-refresh",
                daemon=True,
            )
            self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        with self._lifecycle_lock:
            thread = self._thread
            if thread is not None and thread is not threading.current_thread():
                thread.join()
            self._close_client()

    def _close_client(self) -> None:
        if self._owns_client and not self._closed:
            self._client.close()
        self._closed = True

    def refresh(self) -> BrokerTable:
        """Fetch the complete mapping and swap it in."""

        response = self._client.get(self._url, headers=self._headers)
        response.raise_for_status()
        return self._brokers.update(parse_controller_brokers(response.json()))

    def select(self, table: str) -> str:
        if not self._brokers.ready:
            self.start()
        return self._brokers.select(table)

    def _refresh_loop(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self.refresh()
            except Exception as exc:
                LOG.warning(
                    "Broker mapping refresh failed; keeping previous mapping",
                    extra={"url": self._url, "error": str(exc)},
                )


class ZookeeperBrokerSelector(SelectorLifecycle):
    """Watches the broker external view in ZooKeeper and refreshes on change."""

    def __init__(
        self,
        zk_hosts: Sequence[str] | str,
        path_prefix: str = "",
        *,
        session_timeout_ms: int = DEFAULT_SESSION_TIMEOUT_MS,
        client: KazooClient | None = None,
    ) -> None:
        hosts = zk_hosts if isinstance(zk_hosts, str) else ",".join(zk_hosts)
        if not hosts.strip():
            raise ConfigurationError("At least one ZooKeeper host is required.")
        if session_timeout_ms <= 0:
            session_timeout_ms = DEFAULT_SESSION_TIMEOUT_MS
        self._timeout = session_timeout_ms / 1000
        self._path = f"{path_prefix.rstrip('/')}/{BROKER_EXTERNAL_VIEW_PATH}"
        self._owns_client = client is None
        self._client = client or KazooClient(hosts=hosts, timeout=self._timeout)
        self._brokers = TableAwareBrokerSelector(ready_timeout=self._timeout)
        self._stopped = threading.Event()
        self._lifecycle_lock = threading.Lock()
        self._started = False

    @property
    def path(self) -> str:
        return self._path

    @property
    def snapshot(self) -> BrokerTable | None:
        return self._brokers.snapshot

    @property
    def ready(self) -> bool:
        return self._brokers.ready

    def start(self) -> None:
        """Connect, register the watch and wait for the first document."""

        with self._lifecycle_lock:
            if self._started:
                return
            if self._stopped.is_set():
                raise DiscoverySourceUnavailableError("Selector has been stopped.")
            try:
                self._client.start(timeout=self._timeout)
            except (KazooTimeoutError, KazooException) as exc:
                self._stopped.set()
                if self._owns_client:
                    self._client.close()
                raise DiscoverySourceUnavailableError(f"Unable to connect to ZooKeeper: {exc}") from exc
            self._started = True
            self._client.DataWatch(self._path, self._on_external_view)
        if not self._brokers.wait_ready(self._timeout):
            self.stop()
            raise DiscoverySourceUnavailableError(f"No broker mapping received from {self._path}.")

    def stop(self) -> None:
        self._stopped.set()
        with self._lifecycle_lock:
            if self._owns_client and self._started:
                self._client.stop()
                self._client.close()
            self._started = False

    def select(self, table: str) -> str:
        if not self._brokers.ready:
            self.start()
        return self._brokers.select(table)

    def _on_external_view(self, data: bytes | None, stat: Any, event: Any = None) -> bool | None:
        # Returning False unregisters the watch.
        if self._stopped.is_set():
            return False
        if data is None:
            LOG.warning("Broker external view is missing", extra={"path": self._path})
            self._brokers.update({})
            return None
        try:
            mapping = parse_external_view(data)
        except ValueError as exc:
            LOG.warning(
                "Unable to parse broker external view; keeping previous mapping",
                extra={"path": self._path, "error": str(exc)},
            )
            return None
        self._brokers.update(mapping)
        return None


__all__ = [
    "BROKER_EXTERNAL_VIEW_PATH",
    "BrokerInstance",
    "ControllerBrokerSelector",
    "ExternalView",
    "ZookeeperBrokerSelector",
    "parse_controller_brokers",
    "parse_external_view",
]
