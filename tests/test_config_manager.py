import json
import os

import pytest
from web3 import Web3

from config_manager import (
    ConfigError,
    ExporterConfig,
    MetricsSettings,
    load_config,
    parse_config,
    substitute_env_vars,
)


VAULT = "0x81598d5362eac63310e5719315497c5b8980c579"
BRIDGE = "0xf3c3b2d9e7a83a5f5b09d0a6cd26aa42c0f7c50d"


def minimal(**overrides):
    data = {"networks": [{"endpoint": "http://localhost:8545", "vaults": [{"address": VAULT}]}]}
    data.update(overrides)
    return data


def test_defaults():
    config = parse_config(minimal())
    assert isinstance(config, ExporterConfig)
    assert config.metrics_settings == MetricsSettings()
    assert config.metrics_settings.host == "0.0.0.0"
    assert config.metrics_settings.port == 10000
    assert config.bridge_scope == "network"
    assert config.request_timeout_sec == 15

    network = config.networks[0]
    assert network.bridge_proxy is None
    assert network.fallback_endpoints == ()
    assert network.vaults[0].address == Web3.to_checksum_address(VAULT)
    assert network.vaults[0].group is None


def test_full_network_entry():
    config = parse_config(minimal(
        networks=[{
            "endpoint": "http://a",
            "fallback_endpoints": ["http://b"],
            "vaults": [{"address": VAULT, "group": "usdt"}],
            "bridge_proxy": BRIDGE,
        }],
        metrics_settings={"listen_address": "127.0.0.1:9100", "collection_interval_sec": 30},
        logger_settings={"verbose": True, "loggers": {"web3": "ERROR"}},
        bridge_scope="process",
    ))
    network = config.networks[0]
    assert network.fallback_endpoints == ("http://b",)
    assert network.bridge_proxy == Web3.to_checksum_address(BRIDGE)
    assert network.vaults[0].group == "usdt"
    assert config.metrics_settings.port == 9100
    assert config.metrics_settings.collection_interval_sec == 30
    assert config.logger_settings.verbose is True
    assert config.logger_settings.loggers == {"web3": "error"}
    assert config.bridge_scope == "process"


@pytest.mark.parametrize("data", [
    minimal(extra=True),
    {"networks": []},
    {"networks": [{"endpoint": "http://a", "vaults": [{"address": VAULT, "label": "x"}]}]},
    {"networks": [{"endpoint": "http://a", "vaults": [{"address": "0x1234"}]}]},
    {"networks": [{"endpoint": "http://a", "bridge_proxy": "nope"}]},
    {"networks": [{"vaults": []}]},
    minimal(bridge_scope="global"),
    minimal(metrics_settings={"listen_address": "10000"}),
    minimal(metrics_settings={"listen_address": "[::]:10000"}),
    minimal(metrics_settings={"listen_address": "::1:10000"}),
    minimal(metrics_settings={"collection_interval_sec": 0}),
    minimal(metrics_settings={"metrics_path": "metrics"}),
    minimal(logger_settings={"loggers": {"web3": "loud"}}),
    minimal(request_timeout_sec="15"),
])
def test_invalid_configs(data):
    with pytest.raises(ConfigError):
        parse_config(data)


def test_env_substitution(monkeypatch):
    monkeypatch.setenv("ETH_RPC_URL", "https://rpc.example")
    assert substitute_env_vars('{"endpoint": "${ETH_RPC_URL}"}') == '{"endpoint": "https://rpc.example"}'


def test_missing_env_var(monkeypatch):
    monkeypatch.delenv("MISSING_RPC_URL", raising=False)
    with pytest.raises(ConfigError):
        substitute_env_vars("${MISSING_RPC_URL}")


def test_load_config_file(tmp_path, monkeypatch):
    monkeypatch.setenv("ETH_RPC_URL", "https://rpc.example")
    data = minimal()
    data["networks"][0]["endpoint"] = "${ETH_RPC_URL}"
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data))

    config = load_config(str(path))
    assert config.networks[0].endpoint == "https://rpc.example"


def test_load_config_reads_env_file(tmp_path, monkeypatch):
    monkeypatch.delenv("DOTENV_RPC_URL", raising=False)
    (tmp_path / ".env").write_text("DOTENV_RPC_URL=https://dotenv.example\n")
    data = minimal()
    data["networks"][0]["endpoint"] = "${DOTENV_RPC_URL}"
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data))

    try:
        assert load_config(str(path)).networks[0].endpoint == "https://dotenv.example"
    finally:
        os.environ.pop("DOTENV_RPC_URL", None)


def test_load_config_errors(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "missing.json"))

    path = tmp_path / "broken.json"
    path.write_text("{not json")
    with pytest.raises(ConfigError):
        load_config(str(path))


def test_ipv6_listen_address_is_rejected_clearly():
    with pytest.raises(ConfigError, match="IPv6"):
        parse_config(minimal(metrics_settings={"listen_address": "[::]:10000"}))
