# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdboot/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single deploy invocation
    env: str          # dev/staging/prod
    context: Optional[str]  # cluster name

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def now_ts() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def new_ctx(env: str, context: Optional[str]) -> Dict[str, Any]:
    return {
        "ts": now_ts(),
        "run_id": str(uuid.uuid4()),
        "env": env,
        "context": context,
    }


# ---------------------------------------------------------------------
# etcd lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class EtcdStarted(BaseEvent):
    stage: str
    message: str

@dataclass(frozen=True)
class EtcdProgress(BaseEvent):
    stage: str
    host: str
    message: str

@dataclass(frozen=True)
class EtcdFailed(BaseEvent):
    stage: str
    host: Optional[str]
    error: str

@dataclass(frozen=True)
class EtcdSucceeded(BaseEvent):
    stage: str
    message: str

@dataclass(frozen=True)
class EtcdSummary(BaseEvent):
    status: str          # "OK" or "FAILED"
    members: List[str]
    error: Optional[str] = None
