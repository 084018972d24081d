# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/observers/dispatcher.py
from __future__ import annotations
import logging
from typing import List, Optional
from .events import BaseEvent
from .interface import Observer

log = logging.getLogger("etcdboot")


class EventBus:
    def __init__(self, observers: Optional[List[Observer]] = None):
        observers = list(observers or [])
        for ob in observers:
            if not isinstance(ob, Observer):
                raise TypeError(f"{ob!r} has no notify(event) method")
        self._observers = observers

    def emit(self, event: BaseEvent) -> None:
        for ob in self._observers:
            try:
                ob.notify(event)
            except Exception:
                # observers must not break deploys
                log.debug("observer %r failed on %s", ob, event.__class__.__name__, exc_info=True)
