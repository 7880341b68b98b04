#!/usr/bin/env python3
"""
Single-value cell with atomic swap / compare-and-set, used for start latches
and the bridge round tracker.
"""

import threading
from typing import Any


class AtomicCell:
    def __init__(self, value: Any = None):
        self._value = value
        self._lock = threading.Lock()

    def get(self) -> Any:
        with self._lock:
            return self._value

    def set(self, value: Any) -> None:
        with self._lock:
            self._value = value

    def swap(self, value: Any) -> Any:
        """Store value and return the previous one"""
        with self._lock:
            previous = self._value
            self._value = value
            return previous

    def compare_and_set(self, expected: Any, value: Any) -> bool:
        with self._lock:
            if self._value != expected:
                return False
            self._value = value
            return True

    def __repr__(self) -> str:
        return f"AtomicCell({self.get()!r})"
