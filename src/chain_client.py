#!/usr/bin/env python3
"""
Chain Client

Read-only access to one EVM network: chain id lookup plus `eth_call` against
the fixed set of vault, token and bridge getters the exporter needs. Input
encoding and output decoding go through the ABI table in `contracts`.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import requests
from web3 import Web3
from web3.exceptions import ContractLogicError

import contracts
from contracts import ContractFunction
from rpc_failover import EVMProviderPool


logger = logging.getLogger(__name__)


class ChainClientError(Exception):
    """Base class for chain client failures"""


class ConnectError(ChainClientError):
    """The RPC transport could not be created or reached"""


class CallError(ChainClientError):
    """A read call failed in transport or was reverted"""


class InvalidOutput(CallError):
    """The call returned data that does not match the expected output shape"""


class AbiEncodeError(ChainClientError):
    """Call input could not be encoded; the call site does not match the ABI"""


@dataclass(frozen=True)
class TokenInfo:
    symbol: str
    decimals: int


class ChainClient:
    def __init__(
        self,
        endpoint: str,
        fallback_endpoints: Sequence[str] = (),
        request_timeout_s: int = 15,
        preference_reset_minutes: int = 60,
    ):
        urls = [endpoint, *fallback_endpoints]
        for url in urls:
            parsed = urlparse(url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ConnectError(f"Failed to create http transport for {url!r}")

        self.endpoint = endpoint
        self.pool = EVMProviderPool(
            urls, request_timeout_s=request_timeout_s, preference_reset_minutes=preference_reset_minutes
        )
        self._chain_id: Optional[int] = None

    def chain_id(self) -> int:
        """Fetch the network chain id once and cache it"""
        if self._chain_id is None:
            try:
                chain_id = self.pool.with_provider(lambda w3: w3.eth.chain_id)
            except (ConnectionError, requests.exceptions.RequestException) as e:
                raise ConnectError(f"Failed to get chain id from {self.endpoint}: {e}") from e
            self._chain_id = int(chain_id)
        return self._chain_id

    def call(self, address: str, method: ContractFunction, args: Sequence[Any] = ()) -> Tuple[Any, ...]:
        try:
            data = method.encode_input(args)
        except Exception as e:
            raise AbiEncodeError(f"Failed to encode method input: {method.name}: {e}") from e

        tx = {"to": Web3.to_checksum_address(address), "data": Web3.to_hex(data)}
        try:
            output = self.pool.with_provider(lambda w3: w3.eth.call(tx))
        except ContractLogicError as e:
            raise CallError(f"Call method reverted: {method.name}: {e}") from e
        except Exception as e:
            raise CallError(f"Failed to execute call method: {method.name}: {e}") from e

        try:
            return method.decode_output(output)
        except Exception as e:
            raise InvalidOutput(f"Failed to decode method output: {method.name}: {e}") from e

    # ------------------------------------------------------------------
    # Typed getters
    # ------------------------------------------------------------------

    def get_vault_token(self, vault: str) -> str:
        token = self._single(vault, contracts.function("vault", "token"), str)
        return Web3.to_checksum_address(token)

    def get_token_info(self, token: str) -> TokenInfo:
        symbol = self._single(token, contracts.function("erc20", "symbol"), str)
        decimals = self._single(token, contracts.function("erc20", "decimals"), int)
        if not 0 <= decimals <= 255:
            raise InvalidOutput(f"Token decimals out of range: {decimals}")
        return TokenInfo(symbol=symbol, decimals=decimals)

    def get_vault_balance(self, token: str, vault: str) -> int:
        return self._single(
            token, contracts.function("erc20", "balanceOf"), int, [Web3.to_checksum_address(vault)]
        )

    def get_vault_total_assets(self, vault: str) -> int:
        return self._single(vault, contracts.function("vault", "totalAssets"), int)

    def get_vault_withdraw_limit(self, vault: str) -> int:
        return self._single(vault, contracts.function("vault", "withdrawLimitPerPeriod"), int)

    def get_vault_withdrawal_period(self, vault: str, period_id: int) -> Tuple[int, int]:
        values = self._expect(
            vault, contracts.function("vault", "withdrawalPeriods"), [int, int], [period_id]
        )
        return values[0], values[1]

    def get_bridge_last_round(self, bridge: str) -> int:
        return self._single(bridge, contracts.function("bridge", "lastRound"), int)

    def get_bridge_relay_count(self, bridge: str, round_number: int) -> int:
        values = self._expect(
            bridge, contracts.function("bridge", "rounds"), [int, int, int, int], [round_number]
        )
        return values[2]

    def _single(self, address: str, method: ContractFunction, kind: type, args: Sequence[Any] = ()):
        return self._expect(address, method, [kind], args)[0]

    def _expect(
        self, address: str, method: ContractFunction, kinds: List[type], args: Sequence[Any] = ()
    ) -> Tuple[Any, ...]:
        values = self.call(address, method, args)
        if len(values) != len(kinds):
            raise InvalidOutput(f"Invalid getter output: {method.name}")
        for value, kind in zip(values, kinds):
            if not isinstance(value, kind) or isinstance(value, bool):
                raise InvalidOutput(f"Invalid getter output: {method.name}")
        return values
