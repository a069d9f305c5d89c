# src/sriovfec/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events of one reconciliation pass
    node: str         # node name the daemon runs on

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(node: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "node": node,
    }


# ---------------------------------------------------------------------
# Reconciliation lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ReconcileStarted(BaseEvent):
    key: str

@dataclass(frozen=True)
class NodeConfigCreated(BaseEvent):
    namespace: str

@dataclass(frozen=True)
class InventoryDriftDetected(BaseEvent):
    inventory: str

@dataclass(frozen=True)
class ConfigurationStarted(BaseEvent):
    generation: int
    physical_functions: int

@dataclass(frozen=True)
class RebootRequested(BaseEvent):
    generation: int

@dataclass(frozen=True)
class ConfigurationSucceeded(BaseEvent):
    generation: int
    duration_ms: int

@dataclass(frozen=True)
class ConfigurationFailed(BaseEvent):
    generation: int
    reason: str
    error: str


# ---------------------------------------------------------------------
# Status writes
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class StatusWriteFailed(BaseEvent):
    reason: str
    error: str
