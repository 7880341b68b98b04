import threading

import pytest

from chain_client import InvalidOutput, TokenInfo
from registry import DuplicateVault, InconsistentGroup, InitializationRegistry
from refreshers import (
    BridgeRefresher,
    BridgeState,
    VaultRefresher,
    VaultState,
    withdrawal_period,
)

from conftest import address, wait_until


VAULT = address(0x1001)
TOKEN = address(0x2001)
BRIDGE = address(0x3001)


@pytest.mark.parametrize("timestamp,period", [
    (0, 0),
    (86399, 0),
    (86400, 1),
    (172799, 1),
    (172800, 2),
    (1_700_000_000, 19675),
])
def test_withdrawal_period_is_integer_division(timestamp, period):
    assert withdrawal_period(timestamp) == period


@pytest.fixture
def vault_client(fake_client):
    fake_client.add_vault(
        VAULT,
        TOKEN,
        symbol="USDT",
        decimals=6,
        balance=123456789012345678901234567890,
        total_assets=987654321098765432109876543210,
        withdraw_limit=10 ** 24,
        period=(5000, 4000),
    )
    return fake_client


@pytest.fixture
def vault(vault_client, clock):
    return VaultRefresher(vault_client, 1, VAULT, TOKEN, TokenInfo("USDT", 6), now_fn=clock)


def test_create_resolves_token_and_registers(vault_client):
    registry = InitializationRegistry()
    refresher = VaultRefresher.create(vault_client, 1, VAULT, "usdt", registry)

    assert refresher.token == TOKEN
    assert refresher.token_info == TokenInfo("USDT", 6)
    assert refresher.group == "usdt"
    registry.register_token_group(1, TOKEN, "usdt")
    with pytest.raises(InconsistentGroup):
        registry.register_token_group(1, TOKEN, None)
    assert refresher.state == VaultState()

    with pytest.raises(DuplicateVault):
        VaultRefresher.create(vault_client, 1, VAULT, "usdt", registry)


def test_create_fails_on_invalid_token_output(vault_client):
    vault_client.fail_next("get_token_info", InvalidOutput("Invalid getter output"))
    with pytest.raises(InvalidOutput):
        VaultRefresher.create(vault_client, 1, VAULT, None, InitializationRegistry())


def test_update_publishes_exact_values(vault, vault_client, clock):
    vault.update()

    state = vault.state
    assert state.updated_at == clock.value
    assert state.balance == "123456789012345678901234567890"
    assert state.total_assets == "987654321098765432109876543210"
    assert state.withdraw_limit == "1000000000000000000000000"
    assert state.withdrawal_period_total == "5000"
    assert state.withdrawal_period_considered == "4000"
    assert state.withdrawal_period == clock.value // 86400
    assert vault_client.period_requests == [clock.value // 86400]


@pytest.mark.parametrize("method", [
    "get_vault_balance",
    "get_vault_total_assets",
    "get_vault_withdraw_limit",
    "get_vault_withdrawal_period",
])
def test_failed_tick_keeps_previous_state(vault, vault_client, clock, method):
    vault.update()
    before = vault.state

    clock.value += 60
    vault_client.balances[(TOKEN, VAULT)] = 1
    vault_client.fail_next(method, InvalidOutput("Invalid getter output"))

    assert vault.tick() is False
    assert vault.state is before

    assert vault.tick() is True
    assert vault.state.updated_at == clock.value
    assert vault.state.balance == "1"


def test_tick_survives_unexpected_errors(vault, vault_client):
    vault_client.fail_next("get_vault_total_assets", RuntimeError("boom"))
    assert vault.tick() is False
    assert vault.state.updated_at == 0


def test_start_runs_first_update_and_then_loops(vault, vault_client, clock):
    assert vault.start(0.01)
    try:
        first = vault.state.updated_at
        assert first == clock.value

        vault_client.fail_next("get_vault_balance", InvalidOutput("Invalid getter output"), times=3)
        clock.value += 100
        assert wait_until(lambda: vault.state.updated_at == clock.value)
        assert vault_client.calls["get_vault_balance"] >= 5
    finally:
        vault.stop()
        vault.join(1)


def test_first_update_failure_is_raised_from_start(vault, vault_client):
    vault_client.fail_next("get_vault_total_assets", InvalidOutput("Invalid getter output"))
    with pytest.raises(InvalidOutput):
        vault.start(0.01)


def test_concurrent_start_spawns_one_loop(vault):
    spawned = []
    vault._spawn = lambda interval: spawned.append(interval)

    barrier = threading.Barrier(8)
    results = []

    def start():
        barrier.wait()
        results.append(vault.start(60))

    threads = [threading.Thread(target=start) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert spawned == [60]
    assert results.count(True) == 1
    assert vault.started


@pytest.fixture
def bridge_client(fake_client):
    fake_client.last_rounds[BRIDGE] = 10
    fake_client.relay_counts[(BRIDGE, 10)] = 4
    fake_client.relay_counts[(BRIDGE, 11)] = 7
    return fake_client


@pytest.fixture
def bridge(bridge_client, clock):
    return BridgeRefresher(bridge_client, 1, BRIDGE, now_fn=clock)


def test_bridge_first_update_fetches_relay_count(bridge, bridge_client):
    bridge.update()
    assert bridge.state.current_round == 10
    assert bridge.state.relay_count == 4
    assert bridge_client.calls["get_bridge_relay_count"] == 1


def test_bridge_unchanged_round_does_not_refetch_relay_count(bridge, bridge_client):
    bridge.update()
    bridge.update()
    bridge.update()

    assert bridge_client.calls["get_bridge_last_round"] == 3
    assert bridge_client.calls["get_bridge_relay_count"] == 1


def test_bridge_round_change_refetches_once(bridge, bridge_client):
    bridge.update()
    bridge_client.last_rounds[BRIDGE] = 11
    bridge.update()
    bridge.update()

    assert bridge.state == BridgeState(current_round=11, relay_count=7, updated_at=bridge.state.updated_at)
    assert bridge_client.calls["get_bridge_relay_count"] == 2


def test_bridge_relay_failure_keeps_new_round(bridge, bridge_client):
    bridge.update()
    bridge_client.last_rounds[BRIDGE] = 11
    bridge_client.fail_next("get_bridge_relay_count", InvalidOutput("Invalid getter output"))

    assert bridge.tick() is False
    assert bridge.state.current_round == 11
    assert bridge.state.relay_count == 4

    assert bridge.tick() is True
    assert bridge.state.relay_count == 7
    assert bridge_client.calls["get_bridge_relay_count"] == 3

    bridge.update()
    assert bridge_client.calls["get_bridge_relay_count"] == 3


def test_bridge_round_failure_changes_nothing(bridge, bridge_client):
    bridge.update()
    before = bridge.state
    bridge_client.fail_next("get_bridge_last_round")

    assert bridge.tick() is False
    assert bridge.state is before
