# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/observers/logger.py
from __future__ import annotations

import logging

from .events import BaseEvent, DependentStartFailed


class LoggerObserver:
    """Writes lifecycle events to the winboot logger."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("winboot")

    def notify(self, event: BaseEvent) -> None:
        fields = {k: v for k, v in event.dict().items() if k not in ("ts", "run_id")}
        # a failed dependent start is reported, not fatal; keep it off stderr
        level = logging.INFO if isinstance(event, DependentStartFailed) else logging.DEBUG
        self.logger.log(level, "[event] %s %s", type(event).__name__, fields)
