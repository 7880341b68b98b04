#!/usr/bin/env python3
"""
Snapshot Renderer

Renders the published vault and bridge states as Prometheus text exposition
lines. On-chain integers are written through PrintedNum so the digits reach the
output exactly as decoded.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple, TYPE_CHECKING

from printed_num import PrintedNum

if TYPE_CHECKING:
    from service import NetworkGroup


LABEL_CHAIN_ID = "chain_id"
LABEL_VAULT = "vault"
LABEL_TOKEN = "token"
LABEL_SYMBOL = "symbol"
LABEL_GROUP = "group"
LABEL_PERIOD = "period"
LABEL_BRIDGE = "bridge"


def escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\"", "\\\"").replace("\n", "\\n")


def full_address(address: str) -> str:
    """Full lowercase 0x-prefixed hex form of an address"""
    address = address.lower()
    return address if address.startswith("0x") else f"0x{address}"


class MetricLine:
    """Builder for one `name{labels} value` line"""

    def __init__(self, out: List[str], name: str):
        self._out = out
        self._name = name
        self._labels: List[Tuple[str, str]] = []

    def label(self, name: str, value: Any) -> "MetricLine":
        self._labels.append((name, str(value)))
        return self

    def value(self, value: Any) -> None:
        if self._labels:
            labels = ",".join(f'{name}="{escape_label_value(v)}"' for name, v in self._labels)
            self._out.append(f"{self._name}{{{labels}}} {value}\n")
        else:
            self._out.append(f"{self._name} {value}\n")


class MetricsWriter:
    def __init__(self):
        self._lines: List[str] = []

    def begin_metric(self, name: str) -> MetricLine:
        return MetricLine(self._lines, name)

    def render(self) -> str:
        return "".join(self._lines)


def build_token_catalogue(groups: Iterable["NetworkGroup"]) -> str:
    """One token_decimals line per unique (chain id, token)"""
    tokens: Dict[Tuple[int, str], Any] = {}
    for group in groups:
        for vault in group.vaults:
            tokens.setdefault((group.chain_id, full_address(vault.token)), vault)

    writer = MetricsWriter()
    for (chain_id, token), vault in sorted(tokens.items()):
        line = (
            writer.begin_metric("token_decimals")
            .label(LABEL_CHAIN_ID, chain_id)
            .label(LABEL_TOKEN, token)
            .label(LABEL_SYMBOL, vault.token_info.symbol)
        )
        if vault.group is not None:
            line.label(LABEL_GROUP, vault.group)
        line.value(vault.token_info.decimals)
    return writer.render()


def render_metrics(groups: Iterable["NetworkGroup"], token_catalogue: Optional[str] = None) -> str:
    writer = MetricsWriter()

    for group in groups:
        for vault in group.vaults:
            state = vault.state
            if state.updated_at == 0:
                continue

            vault_address = full_address(vault.vault)
            token_address = full_address(vault.token)

            for name, value in (
                ("balance", state.balance),
                ("total_assets", state.total_assets),
                ("withdraw_limit_per_period", state.withdraw_limit),
            ):
                (
                    writer.begin_metric(name)
                    .label(LABEL_CHAIN_ID, group.chain_id)
                    .label(LABEL_VAULT, vault_address)
                    .label(LABEL_TOKEN, token_address)
                    .value(PrintedNum(value))
                )

            for name, value in (
                ("withdrawal_period_total", state.withdrawal_period_total),
                ("withdrawal_period_considered", state.withdrawal_period_considered),
            ):
                (
                    writer.begin_metric(name)
                    .label(LABEL_CHAIN_ID, group.chain_id)
                    .label(LABEL_VAULT, vault_address)
                    .label(LABEL_TOKEN, token_address)
                    .label(LABEL_PERIOD, state.withdrawal_period)
                    .value(PrintedNum(value))
                )

            (
                writer.begin_metric("updated_at")
                .label(LABEL_CHAIN_ID, group.chain_id)
                .label(LABEL_VAULT, vault_address)
                .value(state.updated_at)
            )

        if group.bridge is not None:
            state = group.bridge.state
            if state.updated_at == 0:
                continue

            bridge_address = full_address(group.bridge.bridge)
            for name, value in (("relay_round", state.current_round), ("relay_count", state.relay_count)):
                (
                    writer.begin_metric(name)
                    .label(LABEL_CHAIN_ID, group.chain_id)
                    .label(LABEL_BRIDGE, bridge_address)
                    .value(value)
                )

    return (token_catalogue or "") + writer.render()
