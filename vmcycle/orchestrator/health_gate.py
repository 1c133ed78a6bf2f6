# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmcycle/orchestrator/health_gate.py
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from ..core.logger import Log
from ..core.retry import Clock, Sleeper, wait_until
from ..core.utils import U
from .models import HealthCheckResult

# (target, count) -> reachable
Probe = Callable[[str, int], bool]


class PingProbe:
    """
    ICMP reachability via the system `ping`.

    One call sends `count` echo requests; it passes when ping exits 0, i.e.
    at least one reply came back.
    """

    def __init__(self, logger: logging.Logger, *, ping: str = "ping", reply_wait_s: int = 2):
        self.logger = logger
        self.ping = ping
        self.reply_wait_s = reply_wait_s

    def __call__(self, target: str, count: int) -> bool:
        cmd = [self.ping, "-c", str(count), "-W", str(self.reply_wait_s), target]
        timeout = count * (self.reply_wait_s + 1) + 5
        cp = U.run_cmd(self.logger, cmd, check=False, capture=True, timeout=timeout)
        if cp.returncode != 0:
            tail = (cp.stdout or "").strip().splitlines()
            self.logger.debug("ping %s: exit %s%s", target, cp.returncode, f" ({tail[-1]})" if tail else "")
        return cp.returncode == 0


class HealthGate:
    """
    Post-restart gate: fixed cool-down, then up to `max_retries` probe
    attempts spaced by `retry_interval_s`. A probe that raises is a failed
    attempt.
    """

    def __init__(
        self,
        logger: logging.Logger,
        probe: Optional[Probe] = None,
        *,
        cooldown_s: float,
        ping_count: int,
        max_retries: int,
        retry_interval_s: float,
        sleep: Sleeper = time.sleep,
        clock: Clock = time.monotonic,
    ):
        self.logger = logger
        self.probe: Probe = probe or PingProbe(logger)
        self.cooldown_s = cooldown_s
        self.ping_count = ping_count
        self.max_retries = max_retries
        self.retry_interval_s = retry_interval_s
        self._sleep = sleep
        self._clock = clock

    def await_healthy(self, vm: str, target: str) -> HealthCheckResult:
        self.logger.info("⏳ %s: cool-down %gs before probing %s", vm, self.cooldown_s, target)
        self._sleep(self.cooldown_s)

        outcome = wait_until(
            lambda: self.probe(target, self.ping_count),
            interval_s=self.retry_interval_s,
            max_attempts=self.max_retries,
            sleep=self._sleep,
            clock=self._clock,
            logger=self.logger,
            description=f"{vm}: health probe {target}",
        )

        if outcome.ok:
            Log.ok(self.logger, f"{vm}: {target} reachable (attempt {outcome.attempts}/{self.max_retries})")
        else:
            Log.warn(self.logger, f"{vm}: {target} unreachable after {outcome.attempts} attempt(s)")
        return HealthCheckResult(vm=vm, target=target, healthy=outcome.ok, attempts=outcome.attempts)
