#!/usr/bin/env python3
"""
Initialization Registry

Startup-only bookkeeping shared by all networks while vault listeners are being
created concurrently. Rejects a vault registered twice on the same chain, a
token reported with two different groups, and more than one bridge proxy per
scope. Nothing here is touched once the service has started.
"""

import logging
import threading
from typing import Dict, Optional, Set, Tuple


logger = logging.getLogger(__name__)

BRIDGE_SCOPE_NETWORK = "network"
BRIDGE_SCOPE_PROCESS = "process"
BRIDGE_SCOPES = (BRIDGE_SCOPE_NETWORK, BRIDGE_SCOPE_PROCESS)


class RegistryError(Exception):
    """Configuration conflict found while registering listeners"""


class DuplicateVault(RegistryError):
    def __init__(self, chain_id: int, vault: str):
        super().__init__(f"Duplicate vault {vault} on chain {chain_id}")
        self.chain_id = chain_id
        self.vault = vault


class InconsistentGroup(RegistryError):
    def __init__(self, chain_id: int, token: str, existing: Optional[str], new: Optional[str]):
        super().__init__(
            f"Token {token} on chain {chain_id} has inconsistent group: {existing!r} != {new!r}"
        )
        self.chain_id = chain_id
        self.token = token
        self.existing = existing
        self.new = new


class DuplicateBridge(RegistryError):
    def __init__(self, chain_id: int, bridge: str, scope: str):
        if scope == BRIDGE_SCOPE_PROCESS:
            message = f"Only one bridge proxy is allowed per process, got another one {bridge} on chain {chain_id}"
        else:
            message = f"Only one bridge proxy is allowed per network, got another one {bridge} on chain {chain_id}"
        super().__init__(message)
        self.chain_id = chain_id
        self.bridge = bridge


class InitializationRegistry:
    def __init__(self, bridge_scope: str = BRIDGE_SCOPE_NETWORK):
        if bridge_scope not in BRIDGE_SCOPES:
            raise ValueError(f"Unknown bridge scope '{bridge_scope}', expected one of {BRIDGE_SCOPES}")
        self.bridge_scope = bridge_scope

        self._vaults: Set[Tuple[int, str]] = set()
        self._vaults_lock = threading.Lock()

        self._token_groups: Dict[Tuple[int, str], Optional[str]] = {}
        self._token_groups_lock = threading.Lock()

        self._bridges: Dict[Tuple[int, ...], str] = {}
        self._bridges_lock = threading.Lock()

    def register_vault(self, chain_id: int, vault: str) -> None:
        key = (chain_id, vault.lower())
        with self._vaults_lock:
            if key in self._vaults:
                raise DuplicateVault(chain_id, vault)
            self._vaults.add(key)
        logger.debug(f"Registered vault {vault} on chain {chain_id}")

    def register_token_group(self, chain_id: int, token: str, group: Optional[str]) -> None:
        key = (chain_id, token.lower())
        with self._token_groups_lock:
            if key not in self._token_groups:
                self._token_groups[key] = group
                logger.debug(f"Registered token {token} on chain {chain_id} with group {group!r}")
                return
            existing = self._token_groups[key]
        if existing != group:
            raise InconsistentGroup(chain_id, token, existing, group)

    def register_bridge(self, chain_id: int, bridge: str) -> None:
        key = () if self.bridge_scope == BRIDGE_SCOPE_PROCESS else (chain_id,)
        with self._bridges_lock:
            if key in self._bridges:
                raise DuplicateBridge(chain_id, bridge, self.bridge_scope)
            self._bridges[key] = bridge
        logger.debug(f"Registered bridge {bridge} on chain {chain_id}")
