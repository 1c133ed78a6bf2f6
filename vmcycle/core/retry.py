# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
"""
Polling with deadline / attempt bounds.

One primitive, `wait_until`, backs every wait in the project: shutdown
confirmation, start confirmation and health-probe retries. A check that raises
counts as a failed check; it never aborts the wait.
"""

from __future__ import annotations

import contextlib
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn

from .logger import is_tty

Sleeper = Callable[[float], None]
Clock = Callable[[], float]


@dataclass(frozen=True)
class PollOutcome:
    ok: bool
    attempts: int
    elapsed_s: float

    def __bool__(self) -> bool:
        return self.ok


def wait_until(
    check: Callable[[], bool],
    *,
    interval_s: float,
    timeout_s: Optional[float] = None,
    max_attempts: Optional[int] = None,
    sleep: Sleeper = time.sleep,
    clock: Clock = time.monotonic,
    logger: Optional[logging.Logger] = None,
    description: str = "condition",
    show_progress: bool = False,
) -> PollOutcome:
    """
    Call `check` until it returns True.

    Args:
        check: Zero-arg callable; exceptions are logged and count as False.
        interval_s: Sleep between checks.
        timeout_s: Give up once this much time has passed (None: no deadline).
        max_attempts: Give up after this many checks (None: unbounded).
        sleep/clock: Injectable for tests.
        logger: Where to report failing checks (DEBUG for False, WARNING for raises).
        description: Used in log lines and the progress bar.
        show_progress: Draw a Rich spinner/bar while waiting (TTY only).

    Returns:
        PollOutcome(ok, attempts, elapsed_s). No sleep happens after the final
        check, and with a deadline the last sleep is clipped to the time left.
    """
    if interval_s < 0:
        raise ValueError("interval_s must be >= 0")
    if max_attempts is not None and max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    t0 = clock()
    attempts = 0

    progress_cm = (
        Progress(
            TextColumn("{task.description}"),
            BarColumn(),
            TimeElapsedColumn(),
            transient=True,
        )
        if show_progress and is_tty()
        else contextlib.nullcontext()
    )

    with progress_cm as progress:
        task = progress.add_task(f"⏳ {description}", total=timeout_s) if progress is not None else None

        while True:
            attempts += 1
            try:
                ok = bool(check())
            except Exception as e:
                ok = False
                if logger:
                    logger.warning("%s: check %d raised %s: %s", description, attempts, type(e).__name__, e)

            elapsed = clock() - t0
            if ok:
                return PollOutcome(True, attempts, elapsed)

            if logger:
                logger.debug("%s: not yet (attempt %d, %.1fs elapsed)", description, attempts, elapsed)

            if max_attempts is not None and attempts >= max_attempts:
                return PollOutcome(False, attempts, elapsed)

            delay = interval_s
            if timeout_s is not None:
                remaining = timeout_s - elapsed
                if remaining <= 0:
                    return PollOutcome(False, attempts, elapsed)
                delay = min(delay, remaining)

            sleep(delay)
            if task is not None:
                progress.update(task, completed=min(clock() - t0, timeout_s) if timeout_s else None)
