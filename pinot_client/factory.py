"""Helpers building ready-to-use connections."""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence

from .brokers import BrokerSelector, SimpleBrokerSelector
from .config import ClientConfig, ControllerConfig, ZookeeperConfig
from .connection import Connection
from .discovery import ControllerBrokerSelector, ZookeeperBrokerSelector
from .errors import BrokerSelectionError, ConfigurationError, EmptyBrokerListError
from .transport import ClientTransport, JsonHttpTransport

LOG = logging.getLogger(__name__)


def from_broker_list(
    broker_list: Iterable[str],
    *,
    extra_headers: Mapping[str, str] | None = None,
    http_timeout_ms: int = 0,
) -> Connection:
    """Connection round-robining over a fixed set of brokers."""

    brokers = list(broker_list)
    if not brokers:
        raise EmptyBrokerListError("Broker list is empty.")
    return from_config(
        ClientConfig(
            broker_list=brokers,
            extra_http_header=dict(extra_headers or {}),
            http_timeout_ms=http_timeout_ms,
        )
    )


def from_controller(
    controller_address: str,
    *,
    update_frequency_ms: int = 1000,
    extra_controller_headers: Mapping[str, str] | None = None,
    extra_headers: Mapping[str, str] | None = None,
    http_timeout_ms: int = 0,
) -> Connection:
    """Connection whose broker mapping is polled from the controller."""

    return from_config(
        ClientConfig(
            controller_config=ControllerConfig(
                controller_address=controller_address,
                extra_controller_api_headers=dict(extra_controller_headers or {}),
                update_frequency_ms=update_frequency_ms,
            ),
            extra_http_header=dict(extra_headers or {}),
            http_timeout_ms=http_timeout_ms,
        )
    )


def from_zookeeper(
    zk_hosts: Sequence[str],
    path_prefix: str,
    session_timeout_ms: int = 0,
    *,
    extra_headers: Mapping[str, str] | None = None,
    http_timeout_ms: int = 0,
) -> Connection:
    """Connection whose broker mapping is watched in ZooKeeper."""

    return from_config(
        ClientConfig(
            zk_config=ZookeeperConfig(
                zookeeper_path=list(zk_hosts),
                path_prefix=path_prefix,
                session_timeout_ms=session_timeout_ms,
            ),
            extra_http_header=dict(extra_headers or {}),
            http_timeout_ms=http_timeout_ms,
        )
    )


def from_config(config: ClientConfig, *, transport: ClientTransport | None = None) -> Connection:
    """Build, start and wire the selector described by ``config``."""

    selector = build_broker_selector(config)
    try:
        selector.start()
    except BrokerSelectionError:
        selector.stop()
        raise
    if transport is None:
        transport = JsonHttpTransport(extra_headers=config.extra_http_header, timeout=config.http_timeout)
    return Connection(transport, selector, use_multistage_engine=config.use_multistage_engine)


def build_broker_selector(config: ClientConfig) -> BrokerSelector:
    """Pick the selector strategy; controller, then broker list, then ZooKeeper."""

    if config.controller_config is not None and config.controller_config.controller_address:
        controller = config.controller_config
        LOG.debug("Using controller broker selector", extra={"controller": controller.controller_address})
        return ControllerBrokerSelector(
            controller.controller_address,
            update_frequency_ms=controller.update_frequency_ms,
            extra_headers=controller.extra_controller_api_headers,
            http_timeout=config.http_timeout or 5.0,
        )
    if config.broker_list:
        return SimpleBrokerSelector(config.broker_list)
    if config.zk_config is not None and config.zk_config.zookeeper_path:
        zk = config.zk_config
        LOG.debug("Using ZooKeeper broker selector", extra={"zk_hosts": zk.zookeeper_path})
        return ZookeeperBrokerSelector(
            zk.zookeeper_path,
            zk.path_prefix,
            session_timeout_ms=zk.session_timeout_ms,
        )
    raise ConfigurationError("Configure a controller, a broker list or ZooKeeper to locate brokers.")


__all__ = [
    "build_broker_selector",
    "from_broker_list",
    "from_config",
    "from_controller",
    "from_zookeeper",
]
