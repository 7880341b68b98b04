#!/usr/bin/env python3
import threading
import time
from typing import Callable, Dict, List, Optional, TypeVar

import requests
from web3 import Web3
from web3.exceptions import ContractLogicError

T = TypeVar("T")

# raised by a reachable endpoint; retrying elsewhere gives the same answer
NON_TRANSPORT_ERRORS = (ContractLogicError,)


class EVMProviderPool:
    """Ordered list of RPC endpoints with a sticky preferred endpoint.

    Calls go to the sticky endpoint first; on failure the pool rescans from the
    most preferred endpoint. The preference is forgotten every
    `preference_reset_minutes` so a recovered primary gets picked up again.
    """

    def __init__(self, urls: List[str], request_timeout_s: int = 15, preference_reset_minutes: int = 60):
        if not urls:
            raise ValueError("EVMProviderPool requires at least one URL")
        self.urls = list(urls)
        self.request_timeout_s = request_timeout_s
        self.preference_reset_sec = max(1, int(preference_reset_minutes) * 60)
        self._last_reset_ts = 0.0
        self._sticky_index: Optional[int] = None
        self._providers: Dict[int, Web3] = {}
        self._lock = threading.Lock()

    def _should_reset_preferences(self) -> bool:
        now = time.time()
        if self._last_reset_ts == 0.0:
            self._last_reset_ts = now
            return False
        return (now - self._last_reset_ts) >= self.preference_reset_sec

    def _web3(self, index: int) -> Web3:
        with self._lock:
            w3 = self._providers.get(index)
            if w3 is None:
                session = requests.Session()
                w3 = Web3(
                    Web3.HTTPProvider(
                        self.urls[index],
                        request_kwargs={"timeout": self.request_timeout_s},
                        session=session,
                    )
                )
                self._providers[index] = w3
            return w3

    def _take_sticky(self) -> Optional[int]:
        with self._lock:
            if self._should_reset_preferences():
                self._last_reset_ts = time.time()
                self._sticky_index = None
            return self._sticky_index

    def _set_sticky(self, index: Optional[int]) -> None:
        with self._lock:
            self._sticky_index = index

    def with_provider(self, fn: Callable[[Web3], T]) -> T:
        """Run fn against the preferred endpoint, failing over in order.

        A contract revert is an answer from a working endpoint: it is raised
        as-is and the endpoint stays preferred.
        """
        last_error: Optional[Exception] = None

        # 1) Try sticky provider first if available
        sticky = self._take_sticky()
        if sticky is not None:
            try:
                return fn(self._web3(sticky))
            except NON_TRANSPORT_ERRORS:
                raise
            except Exception as e:
                last_error = e
                self._set_sticky(None)

        # 2) Scan from beginning to pick the most preferred working provider
        for i in range(len(self.urls)):
            if i == sticky:
                continue
            try:
                result = fn(self._web3(i))
            except NON_TRANSPORT_ERRORS:
                self._set_sticky(i)
                raise
            except Exception as e:
                last_error = e
                continue
            self._set_sticky(i)
            return result

        if last_error:
            raise ConnectionError(f"All EVM RPC endpoints failed: {last_error}") from last_error
        raise ConnectionError("All EVM RPC endpoints failed")
