#!/usr/bin/env python3
"""
Exporter service

Owns one NetworkGroup per configured network. Startup resolves every vault's
token metadata concurrently (one task per network, one task per vault within
it) and registers everything in a shared InitializationRegistry; any failure
aborts startup. After that all refreshers are started concurrently and the
service only renders snapshots.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, TypeVar

from chain_client import ChainClient
from config_manager import (
    DEFAULT_PREFERENCE_RESET_MINUTES,
    DEFAULT_REQUEST_TIMEOUT_SEC,
    NetworkConfig,
)
from metrics import build_token_catalogue, render_metrics
from refreshers import BridgeRefresher, PeriodicRefresher, VaultRefresher
from registry import BRIDGE_SCOPE_NETWORK, InitializationRegistry


logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ClientFactory = Callable[[NetworkConfig], ChainClient]


class StartupError(Exception):
    """The service could not be created or started"""


def join_all(fn: Callable[[T], R], items: Sequence[T]) -> List[R]:
    """Run fn over items concurrently and return results in input order.

    Waits for every task; if any failed, the first failure in input order is
    raised.
    """
    if not items:
        return []

    with ThreadPoolExecutor(max_workers=len(items)) as executor:
        futures = [executor.submit(fn, item) for item in items]

    results = []
    for future in futures:
        results.append(future.result())
    return results


def default_client_factory(
    request_timeout_s: int = DEFAULT_REQUEST_TIMEOUT_SEC,
    preference_reset_minutes: int = DEFAULT_PREFERENCE_RESET_MINUTES,
) -> ClientFactory:
    def create(network: NetworkConfig) -> ChainClient:
        return ChainClient(
            network.endpoint,
            fallback_endpoints=network.fallback_endpoints,
            request_timeout_s=request_timeout_s,
            preference_reset_minutes=preference_reset_minutes,
        )

    return create


class NetworkGroup:
    def __init__(
        self,
        client: ChainClient,
        chain_id: int,
        vaults: List[VaultRefresher],
        bridge: Optional[BridgeRefresher] = None,
    ):
        self.client = client
        self.chain_id = chain_id
        self.vaults = vaults
        self.bridge = bridge

    @classmethod
    def create(
        cls,
        network: NetworkConfig,
        registry: InitializationRegistry,
        client_factory: ClientFactory,
        now_fn: Optional[Callable[[], int]] = None,
    ) -> "NetworkGroup":
        try:
            client = client_factory(network)
            chain_id = client.chain_id()
        except Exception as e:
            raise StartupError(f"Failed to connect to {network.endpoint}: {e}") from e

        def create_vault(entry):
            try:
                return VaultRefresher.create(client, chain_id, entry.address, entry.group, registry, now_fn=now_fn)
            except Exception as e:
                raise StartupError(f"Failed to create listener for vault {entry.address} on chain {chain_id}: {e}") from e

        vaults = join_all(create_vault, network.vaults)

        bridge = None
        if network.bridge_proxy is not None:
            try:
                bridge = BridgeRefresher.create(client, chain_id, network.bridge_proxy, registry, now_fn=now_fn)
            except Exception as e:
                raise StartupError(f"Failed to create listener for bridge {network.bridge_proxy}: {e}") from e

        logger.info(f"Network {network.endpoint} (chain {chain_id}): {len(vaults)} vault(s)" + (", bridge" if bridge else ""))
        return cls(client, chain_id, vaults, bridge)

    @property
    def refreshers(self) -> List[PeriodicRefresher]:
        refreshers: List[PeriodicRefresher] = list(self.vaults)
        if self.bridge is not None:
            refreshers.append(self.bridge)
        return refreshers


class Service:
    def __init__(self, groups: List[NetworkGroup]):
        self.groups = groups
        # tokens never change symbol or decimals, so the catalogue is rendered once
        self.token_catalogue = build_token_catalogue(groups)

    @classmethod
    def create(
        cls,
        networks: Sequence[NetworkConfig],
        bridge_scope: str = BRIDGE_SCOPE_NETWORK,
        client_factory: Optional[ClientFactory] = None,
        now_fn: Optional[Callable[[], int]] = None,
    ) -> "Service":
        registry = InitializationRegistry(bridge_scope=bridge_scope)
        client_factory = client_factory or default_client_factory()

        groups = join_all(
            lambda network: NetworkGroup.create(network, registry, client_factory, now_fn=now_fn),
            networks,
        )
        return cls(groups)

    @property
    def refreshers(self) -> List[PeriodicRefresher]:
        return [refresher for group in self.groups for refresher in group.refreshers]

    def start_listening(self, interval: float) -> None:
        def start(refresher: PeriodicRefresher):
            try:
                refresher.start(interval)
            except Exception as e:
                raise StartupError(f"Failed to start listener for {refresher.describe()}: {e}") from e

        join_all(start, self.refreshers)

    def stop(self) -> None:
        for refresher in self.refreshers:
            refresher.stop()

    def metrics(self) -> str:
        return render_metrics(self.groups, self.token_catalogue)
