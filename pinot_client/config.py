"""Client configuration models and loading helpers."""

from __future__ import annotations

import logging
from pathlib import Path

import tomllib

from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigurationError

LOG = logging.getLogger(__name__)

CONFIG_FILE = Path.home() / ".config" / "pinot-client" / "config.toml"


class ZookeeperConfig(BaseModel):
    """ZooKeeper connection used to watch the broker external view."""

    path_prefix: str = ""
    zookeeper_path: list[str] = Field(default_factory=list)
    session_timeout_ms: int = 0


class ControllerConfig(BaseModel):
    """Controller polled for the table -> broker mapping."""

    controller_address: str = ""
    extra_controller_api_headers: dict[str, str] = Field(default_factory=dict)
    update_frequency_ms: int = 1000


class ClientConfig(BaseModel):
    """Settings needed to build a connection.

    Exactly one broker source is used, in order of precedence: controller,
    static broker list, ZooKeeper.
    """

    extra_http_header: dict[str, str] = Field(default_factory=dict)
    zk_config: ZookeeperConfig | None = None
    controller_config: ControllerConfig | None = None
    broker_list: list[str] = Field(default_factory=list)
    http_timeout_ms: int = 0
    use_multistage_engine: bool = False

    @property
    def http_timeout(self) -> float | None:
        """HTTP timeout in seconds; ``None`` when unset."""

        if self.http_timeout_ms <= 0:
            return None
        return self.http_timeout_ms / 1000


def load_config(path: Path | None = None) -> ClientConfig:
    """Load configuration from a TOML file; fall back to defaults if missing."""

    config_path = path or CONFIG_FILE
    try:
        with config_path.open("rb") as handle:
            raw = tomllib.load(handle)
    except FileNotFoundError:
        return ClientConfig()
    except (tomllib.TOMLDecodeError, OSError) as exc:
        LOG.warning("Ignoring unreadable config file", extra={"path": str(config_path), "error": str(exc)})
        return ClientConfig()
    return parse_config(raw)


def parse_config(data: dict[str, object]) -> ClientConfig:
    """Validate a raw mapping into a ``ClientConfig``."""

    try:
        return ClientConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid client configuration: {exc}") from exc


__all__ = [
    "CONFIG_FILE",
    "ClientConfig",
    "ControllerConfig",
    "ZookeeperConfig",
    "load_config",
    "parse_config",
]
