# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/utils/cache.py
from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Tuple


class Cache:
    """
    Lock-guarded key/value scratch store.

    One instance is scoped to the whole run (shared between hosts) and one
    lives on every Host for values derived while that host is processed.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._data: Dict[str, Any] = {}

    def get(self, key: str) -> Tuple[Any, bool]:
        with self._lock:
            if key in self._data:
                return self._data[key], True
            return None, False

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def get_or_create(self, key: str, factory: Callable[[], Any]) -> Any:
        """Return the value under *key*, creating it with *factory* exactly once."""
        with self._lock:
            if key not in self._data:
                self._data[key] = factory()
            return self._data[key]

