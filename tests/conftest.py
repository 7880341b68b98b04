import threading
import time
from collections import Counter

import pytest

from chain_client import CallError, TokenInfo


def address(n: int) -> str:
    return "0x" + f"{n:040x}"


class Clock:
    def __init__(self, value: int = 1_700_000_000):
        self.value = value

    def __call__(self) -> int:
        return self.value


class FakeChainClient:
    """In-memory stand-in for ChainClient with per-method call counters"""

    def __init__(self, chain_id: int = 1):
        self._chain_id = chain_id
        self.vault_tokens = {}
        self.token_infos = {}
        self.balances = {}
        self.total_assets = {}
        self.withdraw_limits = {}
        self.withdrawal_periods = {}
        self.last_rounds = {}
        self.relay_counts = {}
        self.calls = Counter()
        self.period_requests = []
        self._failures = {}
        self._lock = threading.Lock()

    def add_vault(self, vault, token, symbol="USDT", decimals=6, balance=0, total_assets=0,
                  withdraw_limit=0, period=(0, 0)):
        self.vault_tokens[vault] = token
        self.token_infos[token] = TokenInfo(symbol=symbol, decimals=decimals)
        self.balances[(token, vault)] = balance
        self.total_assets[vault] = total_assets
        self.withdraw_limits[vault] = withdraw_limit
        self.withdrawal_periods[vault] = period

    def fail_next(self, method: str, error: Exception = None, times: int = 1):
        with self._lock:
            self._failures.setdefault(method, []).extend([error or CallError(f"{method} failed")] * times)

    def _record(self, method: str):
        with self._lock:
            self.calls[method] += 1
            pending = self._failures.get(method)
            error = pending.pop(0) if pending else None
        if error is not None:
            raise error

    def chain_id(self) -> int:
        self._record("chain_id")
        return self._chain_id

    def get_vault_token(self, vault):
        self._record("get_vault_token")
        return self.vault_tokens[vault]

    def get_token_info(self, token):
        self._record("get_token_info")
        return self.token_infos[token]

    def get_vault_balance(self, token, vault):
        self._record("get_vault_balance")
        return self.balances[(token, vault)]

    def get_vault_total_assets(self, vault):
        self._record("get_vault_total_assets")
        return self.total_assets[vault]

    def get_vault_withdraw_limit(self, vault):
        self._record("get_vault_withdraw_limit")
        return self.withdraw_limits[vault]

    def get_vault_withdrawal_period(self, vault, period_id):
        self._record("get_vault_withdrawal_period")
        self.period_requests.append(period_id)
        return self.withdrawal_periods[vault]

    def get_bridge_last_round(self, bridge):
        self._record("get_bridge_last_round")
        return self.last_rounds[bridge]

    def get_bridge_relay_count(self, bridge, round_number):
        self._record("get_bridge_relay_count")
        return self.relay_counts[(bridge, round_number)]


def wait_until(predicate, timeout: float = 5.0, step: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(step)
    return predicate()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def fake_client():
    return FakeChainClient(chain_id=1)
