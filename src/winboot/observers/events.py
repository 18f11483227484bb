# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/observers/events.py

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
    run_id: str       # correlates all events in a single invocation
    service: str      # host service name the event is about

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(service: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "service": service,
    }


# ---------------------------------------------------------------------
# Service lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ServiceInstalled(BaseEvent):
    command_line: str

@dataclass(frozen=True)
class ServiceUpdated(BaseEvent):
    command_line: str

@dataclass(frozen=True)
class ServiceStarted(BaseEvent):
    dependents: List[str]

@dataclass(frozen=True)
class ServiceStopped(BaseEvent):
    dependents: List[str]

@dataclass(frozen=True)
class ServiceRefreshed(BaseEvent):
    duration_ms: int

@dataclass(frozen=True)
class ServiceRemoved(BaseEvent):
    pass

@dataclass(frozen=True)
class DependentStartFailed(BaseEvent):
    dependent: str
    error: str
