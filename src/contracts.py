#!/usr/bin/env python3
"""
Contract ABI table

Minimal ABI fragments for the contracts the exporter reads. Each function is
parsed into a ContractFunction descriptor the first time it is asked for and
cached for the lifetime of the process.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Sequence, Tuple

from eth_abi import decode, encode
from web3 import Web3


ERC20_ABI: List[Dict[str, Any]] = [
    {
        "name": "symbol",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "name": "decimals",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

VAULT_ABI: List[Dict[str, Any]] = [
    {
        "name": "token",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "name": "totalAssets",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "withdrawLimitPerPeriod",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "withdrawalPeriods",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "withdrawalPeriodId", "type": "uint256"}],
        "outputs": [
            {"name": "total", "type": "uint256"},
            {"name": "considered", "type": "uint256"},
        ],
    },
]

BRIDGE_ABI: List[Dict[str, Any]] = [
    {
        "name": "lastRound",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "rounds",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "roundNumber", "type": "uint256"}],
        "outputs": [
            {"name": "end", "type": "uint256"},
            {"name": "ttl", "type": "uint256"},
            {"name": "relays", "type": "uint256"},
            {"name": "requiredSignatures", "type": "uint256"},
        ],
    },
]

ABIS: Dict[str, List[Dict[str, Any]]] = {
    "erc20": ERC20_ABI,
    "vault": VAULT_ABI,
    "bridge": BRIDGE_ABI,
}


@dataclass(frozen=True)
class ContractFunction:
    name: str
    input_types: Tuple[str, ...]
    output_types: Tuple[str, ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.input_types)})"

    @property
    def selector(self) -> bytes:
        return bytes(Web3.keccak(text=self.signature)[:4])

    def encode_input(self, args: Sequence[Any]) -> bytes:
        if len(args) != len(self.input_types):
            raise ValueError(
                f"{self.name} expects {len(self.input_types)} arguments, got {len(args)}"
            )
        return self.selector + encode(list(self.input_types), list(args))

    def decode_output(self, data: bytes) -> Tuple[Any, ...]:
        return tuple(decode(list(self.output_types), bytes(data)))


@lru_cache(maxsize=None)
def function(contract: str, name: str) -> ContractFunction:
    """Look up a parsed function descriptor, e.g. function("vault", "token")"""
    try:
        abi = ABIS[contract]
    except KeyError:
        raise KeyError(f"Unknown contract ABI '{contract}'")

    for entry in abi:
        if entry.get("type") == "function" and entry.get("name") == name:
            return ContractFunction(
                name=name,
                input_types=tuple(arg["type"] for arg in entry["inputs"]),
                output_types=tuple(arg["type"] for arg in entry["outputs"]),
            )
    raise KeyError(f"Function '{name}' not found in {contract} ABI")
