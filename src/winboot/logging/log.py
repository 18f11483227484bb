# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/logging/log.py

from __future__ import annotations

import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path


class _BelowWarning(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < logging.WARNING


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "winboot",
    verbose: bool = False,
) -> tuple[logging.Logger, str, Path | None]:
    """
    Initializes:
      - a full DEBUG trace file under base_dir (skipped if base_dir cannot be created)
      - console output split by level: progress on stdout, WARNING and above on stderr

    Whatever lands on stderr is read by the supervising operator as a failed
    bootstrap, so only real problems may be logged at WARNING or above.
    """
    run_id = str(uuid.uuid4())

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    out = logging.StreamHandler(sys.stdout)
    out.setLevel(logging.DEBUG if verbose else logging.INFO)
    out.addFilter(_BelowWarning())
    out.setFormatter(formatter)

    err = logging.StreamHandler(sys.stderr)
    err.setLevel(logging.WARNING)
    err.setFormatter(formatter)

    logger.addHandler(out)
    logger.addHandler(err)

    log_path = None
    if base_dir is not None:
        try:
            base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.debug("log directory %s unavailable, file logging disabled: %s", base_dir, exc)
        else:
            ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
            log_path = base_dir / f"{name}-{ts}-{run_id}.log"

            # File = FULL TRACE
            fh = logging.FileHandler(log_path)
            fh.setLevel(logging.DEBUG)
            fh.setFormatter(formatter)
            logger.addHandler(fh)

    logger.debug("=== winboot run started ===")
    logger.debug(f"run_id={run_id}")
    logger.debug(f"log_file={log_path}")

    return logger, run_id, log_path
