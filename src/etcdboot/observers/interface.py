# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/observers/interface.py
from __future__ import annotations

from typing import Protocol, runtime_checkable

from .events import BaseEvent


@runtime_checkable
class Observer(Protocol):
    """
    Receives every etcd lifecycle event. notify() may be called from the
    manager's worker threads when host steps run in parallel.
    """

    def notify(self, event: BaseEvent) -> None: ...
