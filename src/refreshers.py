#!/usr/bin/env python3
"""
Vault and bridge refreshers

Each refresher owns the latest published state of one vault or one bridge
proxy. `start()` performs the first refresh and then keeps refreshing from a
daemon thread every `interval` seconds. A tick either publishes a complete new
state object or leaves the previous one visible.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from chain_client import ChainClient, ChainClientError, TokenInfo
from registry import InitializationRegistry
from state_cell import AtomicCell


logger = logging.getLogger(__name__)

WITHDRAWAL_PERIOD_SECONDS = 86400


def now() -> int:
    return int(time.time())


def withdrawal_period(timestamp: int) -> int:
    """Withdrawal period id for a unix timestamp (UTC day bucket)"""
    return timestamp // WITHDRAWAL_PERIOD_SECONDS


@dataclass(frozen=True)
class VaultState:
    updated_at: int = 0
    balance: str = "0"
    total_assets: str = "0"
    withdraw_limit: str = "0"
    withdrawal_period_total: str = "0"
    withdrawal_period_considered: str = "0"

    @property
    def withdrawal_period(self) -> int:
        return withdrawal_period(self.updated_at)


@dataclass(frozen=True)
class BridgeState:
    current_round: int = 0
    relay_count: int = 0
    updated_at: int = 0


class PeriodicRefresher:
    """Single-start polling loop around `update()`"""

    def __init__(self, now_fn: Optional[Callable[[], int]] = None):
        self.now_fn = now_fn or now
        self._started = AtomicCell(False)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._state_lock = threading.Lock()

    def describe(self) -> str:
        raise NotImplementedError

    def update(self) -> None:
        raise NotImplementedError

    @property
    def started(self) -> bool:
        return self._started.get()

    def start(self, interval: float) -> bool:
        """Refresh once, then keep refreshing in the background.

        Returns False without doing anything if the refresher was already started.
        A failure of the first refresh is raised to the caller.
        """
        if not self._started.compare_and_set(False, True):
            return False

        self.update()
        logger.info(f"Started listening {self.describe()}")

        self._spawn(interval)
        return True

    def stop(self) -> None:
        self._stop_event.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _spawn(self, interval: float) -> None:
        self._thread = threading.Thread(
            target=self._run, args=(interval,), name=f"refresher-{self.describe()}", daemon=True
        )
        self._thread.start()

    def _run(self, interval: float) -> None:
        while not self._stop_event.wait(interval):
            self.tick()

    def tick(self) -> bool:
        """One loop iteration; failures are logged and the previous state is kept"""
        try:
            self.update()
            return True
        except ChainClientError as e:
            logger.error(f"Failed to update {self.describe()}: {e}")
        except Exception as e:
            logger.exception(f"Unexpected error while updating {self.describe()}: {e}")
        return False


class VaultRefresher(PeriodicRefresher):
    def __init__(
        self,
        client: ChainClient,
        chain_id: int,
        vault: str,
        token: str,
        token_info: TokenInfo,
        group: Optional[str] = None,
        now_fn: Optional[Callable[[], int]] = None,
    ):
        super().__init__(now_fn)
        self.client = client
        self.chain_id = chain_id
        self.vault = vault
        self.token = token
        self.token_info = token_info
        self.group = group
        self._state = VaultState()

    @classmethod
    def create(
        cls,
        client: ChainClient,
        chain_id: int,
        vault: str,
        group: Optional[str],
        registry: InitializationRegistry,
        now_fn: Optional[Callable[[], int]] = None,
    ) -> "VaultRefresher":
        """Resolve vault token metadata and register it for this chain"""
        registry.register_vault(chain_id, vault)

        token = client.get_vault_token(vault)
        token_info = client.get_token_info(token)
        registry.register_token_group(chain_id, token, group)

        logger.info(
            f"Created listener for vault {vault} on chain {chain_id} "
            f"({token_info.symbol} / {token_info.decimals})"
        )
        return cls(client, chain_id, vault, token, token_info, group=group, now_fn=now_fn)

    def describe(self) -> str:
        return f"vault {self.vault} ({self.token_info.symbol})"

    @property
    def state(self) -> VaultState:
        with self._state_lock:
            return self._state

    def update(self) -> None:
        updated_at = self.now_fn()
        period_id = withdrawal_period(updated_at)

        balance = self.client.get_vault_balance(self.token, self.vault)
        total_assets = self.client.get_vault_total_assets(self.vault)
        withdraw_limit = self.client.get_vault_withdraw_limit(self.vault)
        period_total, period_considered = self.client.get_vault_withdrawal_period(self.vault, period_id)

        state = VaultState(
            updated_at=updated_at,
            balance=str(balance),
            total_assets=str(total_assets),
            withdraw_limit=str(withdraw_limit),
            withdrawal_period_total=str(period_total),
            withdrawal_period_considered=str(period_considered),
        )
        with self._state_lock:
            self._state = state
        logger.debug(f"Updated {self.describe()}: balance={state.balance} total_assets={state.total_assets}")


class BridgeRefresher(PeriodicRefresher):
    """Tracks the bridge's last round and the relay count of that round.

    The relay count is only queried when the round differs from the one the
    published count belongs to.
    """

    def __init__(
        self,
        client: ChainClient,
        chain_id: int,
        bridge: str,
        now_fn: Optional[Callable[[], int]] = None,
    ):
        super().__init__(now_fn)
        self.client = client
        self.chain_id = chain_id
        self.bridge = bridge
        self._round = AtomicCell(None)
        self._relay_round: Optional[int] = None
        self._state = BridgeState()

    @classmethod
    def create(
        cls,
        client: ChainClient,
        chain_id: int,
        bridge: str,
        registry: InitializationRegistry,
        now_fn: Optional[Callable[[], int]] = None,
    ) -> "BridgeRefresher":
        registry.register_bridge(chain_id, bridge)
        logger.info(f"Created listener for bridge {bridge} on chain {chain_id}")
        return cls(client, chain_id, bridge, now_fn=now_fn)

    def describe(self) -> str:
        return f"bridge {self.bridge}"

    @property
    def state(self) -> BridgeState:
        with self._state_lock:
            return self._state

    def update(self) -> None:
        current_round = self.client.get_bridge_last_round(self.bridge)
        previous_round = self._round.swap(current_round)

        if previous_round == current_round and self._relay_round == current_round:
            return

        if previous_round != current_round:
            logger.info(f"New round {current_round} for {self.describe()}")
            with self._state_lock:
                self._state = BridgeState(
                    current_round=current_round,
                    relay_count=self._state.relay_count,
                    updated_at=self.now_fn(),
                )

        relay_count = self.client.get_bridge_relay_count(self.bridge, current_round)
        with self._state_lock:
            self._state = BridgeState(
                current_round=current_round,
                relay_count=relay_count,
                updated_at=self.now_fn(),
            )
        self._relay_round = current_round
