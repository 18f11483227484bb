# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/service/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List


class ServiceState(IntEnum):
    """Windows SERVICE_STATUS.dwCurrentState values."""
    STOPPED = 1
    START_PENDING = 2
    STOP_PENDING = 3
    RUNNING = 4
    CONTINUE_PENDING = 5
    PAUSE_PENDING = 6
    PAUSED = 7


class StartType(str, Enum):
    AUTO = "auto"        # started again by the host after a reboot
    DEMAND = "demand"
    DISABLED = "disabled"


class LifecycleState(str, Enum):
    NOT_INSTALLED = "NotInstalled"
    STOPPED = "Stopped"
    RUNNING = "Running"


@dataclass
class ServiceDescriptor:
    """
    A service as recorded by the host service manager. command_line is the
    full binary path plus arguments, the only form the host stores.
    """
    name: str
    command_line: str
    display_name: str = ""
    description: str = ""
    start_type: StartType = StartType.AUTO
    dependencies: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RecoveryPolicy:
    """Restart after a failure; the failure count resets after reset_period_s."""
    restart_delay_ms: int = 5000
    reset_period_s: int = 600
