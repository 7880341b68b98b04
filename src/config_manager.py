#!/usr/bin/env python3
"""
Configuration Manager for the Bridge Vaults Exporter

Loads the exporter configuration from a JSON file with:
1. .env loading (python-dotenv) before anything else
2. Environment variable substitution (${VAR} patterns)
3. Strict validation (unknown keys are rejected)
4. Defaults for everything except the network list
"""

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv
from web3 import Web3

from registry import BRIDGE_SCOPE_NETWORK, BRIDGE_SCOPES


DEFAULT_LISTEN_ADDRESS = "0.0.0.0:10000"
DEFAULT_METRICS_PATH = "/"
DEFAULT_COLLECTION_INTERVAL_SEC = 10
DEFAULT_REQUEST_TIMEOUT_SEC = 15
DEFAULT_PREFERENCE_RESET_MINUTES = 60

ENV_VAR_PATTERN = re.compile(r"\$\{([a-zA-Z_][0-9a-zA-Z_]*)\}")
LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


class ConfigError(ValueError):
    """Invalid or incomplete exporter configuration"""


@dataclass(frozen=True)
class VaultEntry:
    address: str
    group: Optional[str] = None


@dataclass(frozen=True)
class NetworkConfig:
    endpoint: str
    vaults: Tuple[VaultEntry, ...] = ()
    bridge_proxy: Optional[str] = None
    fallback_endpoints: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MetricsSettings:
    listen_address: str = DEFAULT_LISTEN_ADDRESS
    metrics_path: str = DEFAULT_METRICS_PATH
    collection_interval_sec: int = DEFAULT_COLLECTION_INTERVAL_SEC

    @property
    def host(self) -> str:
        return self.listen_address.rsplit(":", 1)[0]

    @property
    def port(self) -> int:
        return int(self.listen_address.rsplit(":", 1)[1])


@dataclass(frozen=True)
class LoggerSettings:
    verbose: bool = False
    no_color: bool = False
    loggers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ExporterConfig:
    networks: Tuple[NetworkConfig, ...]
    metrics_settings: MetricsSettings = field(default_factory=MetricsSettings)
    logger_settings: LoggerSettings = field(default_factory=LoggerSettings)
    bridge_scope: str = BRIDGE_SCOPE_NETWORK
    request_timeout_sec: int = DEFAULT_REQUEST_TIMEOUT_SEC
    preference_reset_minutes: int = DEFAULT_PREFERENCE_RESET_MINUTES


def substitute_env_vars(content: str) -> str:
    """Substitute ${VAR} patterns with environment variables"""
    def replace_var(match):
        var_name = match.group(1)
        env_value = os.getenv(var_name)
        if env_value is None:
            raise ConfigError(f"Environment variable {var_name} is not set")
        return env_value

    return ENV_VAR_PATTERN.sub(replace_var, content)


def load_config(config_file: str = "config.json", env_file: Optional[str] = None) -> ExporterConfig:
    """Read, substitute and validate the config file"""
    load_dotenv(env_file or Path(config_file).resolve().parent / ".env")

    config_path = Path(config_file)
    try:
        content = config_path.read_text()
    except FileNotFoundError:
        raise ConfigError(f"Config file {config_path} not found")

    try:
        data = json.loads(substitute_env_vars(content))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file {config_path}: {e}")

    return parse_config(data)


def parse_config(data: Dict[str, Any]) -> ExporterConfig:
    _expect_mapping(data, "config")
    _reject_unknown(
        data,
        {
            "networks",
            "metrics_settings",
            "logger_settings",
            "bridge_scope",
            "request_timeout_sec",
            "preference_reset_minutes",
        },
        "config",
    )

    networks = data.get("networks")
    if not isinstance(networks, list) or not networks:
        raise ConfigError("'networks' must be a non-empty list")

    bridge_scope = data.get("bridge_scope", BRIDGE_SCOPE_NETWORK)
    if bridge_scope not in BRIDGE_SCOPES:
        raise ConfigError(f"'bridge_scope' must be one of {BRIDGE_SCOPES}, got {bridge_scope!r}")

    return ExporterConfig(
        networks=tuple(_parse_network(network, i) for i, network in enumerate(networks)),
        metrics_settings=_parse_metrics_settings(data.get("metrics_settings", {})),
        logger_settings=_parse_logger_settings(data.get("logger_settings", {})),
        bridge_scope=bridge_scope,
        request_timeout_sec=_positive_int(
            data.get("request_timeout_sec", DEFAULT_REQUEST_TIMEOUT_SEC), "request_timeout_sec"
        ),
        preference_reset_minutes=_positive_int(
            data.get("preference_reset_minutes", DEFAULT_PREFERENCE_RESET_MINUTES),
            "preference_reset_minutes",
        ),
    )


def _parse_network(data: Any, index: int) -> NetworkConfig:
    where = f"networks[{index}]"
    _expect_mapping(data, where)
    _reject_unknown(data, {"endpoint", "fallback_endpoints", "vaults", "bridge_proxy"}, where)

    endpoint = data.get("endpoint")
    if not isinstance(endpoint, str) or not endpoint:
        raise ConfigError(f"{where}.endpoint must be a non-empty string")

    fallback_endpoints = data.get("fallback_endpoints", [])
    if not isinstance(fallback_endpoints, list) or not all(isinstance(u, str) and u for u in fallback_endpoints):
        raise ConfigError(f"{where}.fallback_endpoints must be a list of URLs")

    vaults = data.get("vaults", [])
    if not isinstance(vaults, list):
        raise ConfigError(f"{where}.vaults must be a list")

    bridge_proxy = data.get("bridge_proxy")
    if bridge_proxy is not None:
        bridge_proxy = _address(bridge_proxy, f"{where}.bridge_proxy")

    return NetworkConfig(
        endpoint=endpoint,
        vaults=tuple(_parse_vault(vault, f"{where}.vaults[{i}]") for i, vault in enumerate(vaults)),
        bridge_proxy=bridge_proxy,
        fallback_endpoints=tuple(fallback_endpoints),
    )


def _parse_vault(data: Any, where: str) -> VaultEntry:
    _expect_mapping(data, where)
    _reject_unknown(data, {"address", "group"}, where)

    group = data.get("group")
    if group is not None and not isinstance(group, str):
        raise ConfigError(f"{where}.group must be a string")

    return VaultEntry(address=_address(data.get("address"), f"{where}.address"), group=group)


def _parse_metrics_settings(data: Any) -> MetricsSettings:
    _expect_mapping(data, "metrics_settings")
    _reject_unknown(data, {"listen_address", "metrics_path", "collection_interval_sec"}, "metrics_settings")

    listen_address = data.get("listen_address", DEFAULT_LISTEN_ADDRESS)
    host, _, port = str(listen_address).rpartition(":")
    if not host or not port.isdigit() or not 0 < int(port) < 65536:
        raise ConfigError(f"metrics_settings.listen_address must be 'host:port', got {listen_address!r}")
    if ":" in host or host.startswith("["):
        raise ConfigError(f"metrics_settings.listen_address: IPv6 listen addresses are not supported, got {listen_address!r}")

    metrics_path = data.get("metrics_path", DEFAULT_METRICS_PATH)
    if not isinstance(metrics_path, str) or not metrics_path.startswith("/"):
        raise ConfigError(f"metrics_settings.metrics_path must start with '/', got {metrics_path!r}")

    return MetricsSettings(
        listen_address=listen_address,
        metrics_path=metrics_path,
        collection_interval_sec=_positive_int(
            data.get("collection_interval_sec", DEFAULT_COLLECTION_INTERVAL_SEC),
            "metrics_settings.collection_interval_sec",
        ),
    )


def _parse_logger_settings(data: Any) -> LoggerSettings:
    _expect_mapping(data, "logger_settings")
    _reject_unknown(data, {"verbose", "no_color", "loggers"}, "logger_settings")

    loggers = data.get("loggers", {})
    _expect_mapping(loggers, "logger_settings.loggers")
    for name, level in loggers.items():
        if str(level).lower() not in LOG_LEVELS:
            raise ConfigError(f"logger_settings.loggers.{name}: unknown level {level!r}")

    return LoggerSettings(
        verbose=bool(data.get("verbose", False)),
        no_color=bool(data.get("no_color", False)),
        loggers={name: str(level).lower() for name, level in loggers.items()},
    )


def _address(value: Any, where: str) -> str:
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ConfigError(f"{where} is not a valid address: {value!r}")
    return Web3.to_checksum_address(value)


def _positive_int(value: Any, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{where} must be a positive integer, got {value!r}")
    return value


def _expect_mapping(value: Any, where: str) -> None:
    if not isinstance(value, dict):
        raise ConfigError(f"{where} must be an object")


def _reject_unknown(data: Dict[str, Any], allowed: set, where: str) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ConfigError(f"Unknown field(s) in {where}: {', '.join(unknown)}")


def networks_summary(config: ExporterConfig) -> List[str]:
    return [
        f"{network.endpoint}: {len(network.vaults)} vault(s)"
        + (f", bridge {network.bridge_proxy}" if network.bridge_proxy else "")
        for network in config.networks
    ]
