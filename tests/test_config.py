"""Tests for client configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from pinot_client import config as config_module
from pinot_client.config import ClientConfig, ControllerConfig, load_config, parse_config
from pinot_client.errors import ConfigurationError


def test_defaults() -> None:
    config = ClientConfig()

    assert config.broker_list == []
    assert config.zk_config is None
    assert config.controller_config is None
    assert config.http_timeout is None
    assert config.use_multistage_engine is False


def test_controller_defaults_to_one_second_refresh() -> None:
    assert ControllerConfig(controller_address="controller:9000").update_frequency_ms == 1000


def test_http_timeout_converts_to_seconds() -> None:
    assert ClientConfig(http_timeout_ms=1500).http_timeout == 1.5


def test_load_config_returns_defaults_when_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "config.toml")

    result = load_config()

    assert result == ClientConfig()


def test_load_config_reads_values(tmp_path: Path) -> None:
    config_path = tmp_path / "pinot.toml"
    config_path.write_text(
        """
broker_list = ["broker-0:8099", "broker-1:8099"]
http_timeout_ms = 2500
use_multistage_engine = true

[extra_http_header]
Authorization = "Basic abc"

[controller_config]
controller_address = "controller:9000"
update_frequency_ms = 500

[controller_config.extra_controller_api_headers]
Authorization = "Basic def"

[zk_config]
path_prefix = "/pinot"
zookeeper_path = ["zk-0:2181"]
session_timeout_ms = 3000
"""
    )

    result = load_config(config_path)

    assert result.broker_list == ["broker-0:8099", "broker-1:8099"]
    assert result.http_timeout == 2.5
    assert result.use_multistage_engine is True
    assert result.extra_http_header == {"Authorization": "Basic abc"}
    assert result.controller_config is not None
    assert result.controller_config.update_frequency_ms == 500
    assert result.controller_config.extra_controller_api_headers == {"Authorization": "Basic def"}
    assert result.zk_config is not None
    assert result.zk_config.zookeeper_path == ["zk-0:2181"]


def test_load_config_handles_toml_errors(tmp_path: Path) -> None:
    config_path = tmp_path / "pinot.toml"
    config_path.write_text("broker_list = [unterminated")

    assert load_config(config_path) == ClientConfig()


def test_invalid_values_raise_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        parse_config({"http_timeout_ms": "soon"})
