# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

import time
from typing import Callable


class WaitTimeoutError(TimeoutError):
    pass


def poll_until(
    condition: Callable[[], bool],
    *,
    interval: float,
    timeout: float,
    description: str = "condition",
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """
    Block until condition() returns True.

    interval: seconds between checks
    timeout: overall budget in seconds; WaitTimeoutError once it is spent
    sleep/clock: injectable for tests

    condition is checked once before the first sleep.
    """
    deadline = clock() + timeout
    while True:
        if condition():
            return
        if clock() >= deadline:
            raise WaitTimeoutError(f"timed out after {timeout}s waiting for {description}")
        sleep(interval)
