# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmcycle/orchestrator/lifecycle.py
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional

from ..core.exceptions import (
    ExportFailure,
    PlatformCommandError,
    ShutdownTimeout,
    StartFailure,
    VmcycleError,
)
from ..core.logger import Log
from ..core.retry import Clock, Sleeper, wait_until
from ..libvirt.libvirt_utils import STATE_RUNNING, STATE_SHUT_OFF
from ..libvirt.virsh_client import VirshClient
from .destination import create_destination
from .models import LifecyclePhase, LifecycleResult

_OFF_REQUESTED = (LifecyclePhase.STOPPING_GRACEFUL, LifecyclePhase.STOPPING_FORCED)


class LifecycleController:
    """
    Drive one VM through stop → export → start.

        Running|Unknown → StoppingGraceful → [StoppingForced] → Stopped
                        → Exporting → Exported → Starting → Started → Succeeded

    Any failure ends in Failed. Failures after a shutdown or destroy request
    went out get exactly one best-effort `virsh start` if the VM is off.
    run() returns a LifecycleResult; per-VM errors never propagate out of it.
    """

    def __init__(
        self,
        logger: logging.Logger,
        virsh: VirshClient,
        *,
        shutdown_timeout_s: float,
        start_timeout_s: float,
        poll_interval_s: float,
        sleep: Sleeper = time.sleep,
        clock: Clock = time.monotonic,
    ):
        self.logger = logger
        self.virsh = virsh
        self.shutdown_timeout_s = shutdown_timeout_s
        self.start_timeout_s = start_timeout_s
        self.poll_interval_s = poll_interval_s
        self._sleep = sleep
        self._clock = clock
        self.phase = LifecyclePhase.UNKNOWN
        self.history: List[LifecyclePhase] = []

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _enter(self, vm: str, phase: LifecyclePhase) -> None:
        Log.trace(self.logger, "🔁 %s: %s → %s", vm, self.phase.value, phase.value)
        self.phase = phase
        self.history.append(phase)

    def _is_off(self, vm: str) -> bool:
        return self.virsh.domstate(vm) == STATE_SHUT_OFF

    def _is_running(self, vm: str) -> bool:
        return self.virsh.domstate(vm) == STATE_RUNNING

    def _poll(self, vm: str, check, *, timeout_s: Optional[float], description: str):
        return wait_until(
            lambda: check(vm),
            interval_s=self.poll_interval_s,
            timeout_s=timeout_s,
            sleep=self._sleep,
            clock=self._clock,
            logger=self.logger,
            description=description,
            show_progress=True,
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _await_graceful(self, vm: str) -> None:
        outcome = self._poll(vm, self._is_off, timeout_s=self.shutdown_timeout_s, description=f"{vm}: waiting for shut off")
        if not outcome:
            raise ShutdownTimeout(
                code=1,
                msg=f"{vm} still not off after {self.shutdown_timeout_s:g}s",
                context={"attempts": outcome.attempts},
            )

    def _request_off(self, vm: str, action: Callable[[str], None], what: str) -> None:
        """
        Send a power-off request. virsh rejects it once the guest has already
        finished shutting down; that counts as done, anything else re-raises.
        """
        try:
            action(vm)
        except PlatformCommandError as e:
            if not self._is_off(vm):
                raise
            self.logger.info("⏹️  %s: %s rejected, domain is already shut off (%s)", vm, what, e.msg)

    def _force_off(self, vm: str) -> None:
        self._enter(vm, LifecyclePhase.STOPPING_FORCED)
        Log.warn(self.logger, f"{vm}: forcing power-off (virsh destroy)")
        self._request_off(vm, self.virsh.destroy, "destroy")
        # No deadline: a hypervisor-level power cut is expected to land eventually.
        self._poll(vm, self._is_off, timeout_s=None, description=f"{vm}: waiting for forced power-off")

    def stop(self, vm: str) -> bool:
        """
        Bring `vm` to "shut off". Returns True when a forced power-off was needed.

        A graceful shutdown request is only sent to a running domain; any other
        state just waits for "shut off" (already-off VMs pass immediately).
        """
        state = self.virsh.domstate(vm)
        self._enter(vm, LifecyclePhase.RUNNING if state == STATE_RUNNING else LifecyclePhase.UNKNOWN)

        if state == STATE_RUNNING:
            self._enter(vm, LifecyclePhase.STOPPING_GRACEFUL)
            Log.step(self.logger, f"{vm}: graceful shutdown requested")
            self._request_off(vm, self.virsh.shutdown, "shutdown")
        else:
            self.logger.info("⏸️  %s: state is %r; no shutdown request sent", vm, state)

        forced = False
        try:
            self._await_graceful(vm)
        except ShutdownTimeout as e:
            Log.warn(self.logger, str(e))
            self._force_off(vm)
            forced = True

        self._enter(vm, LifecyclePhase.STOPPED)
        Log.ok(self.logger, f"{vm}: stopped")
        return forced

    def export(self, vm: str, destination: Path) -> int:
        self._enter(vm, LifecyclePhase.EXPORTING)
        try:
            create_destination(destination)
            manifest = self.virsh.export(vm, destination)
        except (OSError, PlatformCommandError) as e:
            raise ExportFailure(
                code=1,
                msg=f"export of {vm} to {destination} failed: {e}",
                cause=e,
                context={"destination": str(destination)},
            ) from e
        self._enter(vm, LifecyclePhase.EXPORTED)
        return manifest.total_bytes

    def start(self, vm: str) -> None:
        self._enter(vm, LifecyclePhase.STARTING)
        try:
            self.virsh.start(vm)
        except PlatformCommandError as e:
            raise StartFailure(code=1, msg=f"start of {vm} failed: {e.msg}", cause=e) from e

        outcome = self._poll(vm, self._is_running, timeout_s=self.start_timeout_s, description=f"{vm}: waiting for running")
        if not outcome:
            raise StartFailure(code=1, msg=f"{vm} not running {self.start_timeout_s:g}s after start")
        self._enter(vm, LifecyclePhase.STARTED)
        Log.ok(self.logger, f"{vm}: running")

    def _recover(self, vm: str) -> bool:
        """
        One best-effort start after a failure. Returns True when the VM is
        (probably) left powered off because this attempt failed.
        """
        try:
            state = self.virsh.domstate(vm)
            if state != STATE_SHUT_OFF:
                self.logger.info("🛟 %s: state is %r after failure; no recovery start needed", vm, state)
                return False
            Log.warn(self.logger, f"{vm}: attempting recovery start after failure")
            self.virsh.start(vm)
            return False
        except Exception as e:
            Log.fail(self.logger, f"{vm}: recovery start failed ({type(e).__name__}: {e}); VM may be left powered off")
            return True

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self, vm: str, destination: Path) -> LifecycleResult:
        self.phase = LifecyclePhase.UNKNOWN
        self.history = []

        try:
            forced = self.stop(vm)
        except VmcycleError as e:
            failed_in = self.phase
            Log.fail(self.logger, f"{vm}: {e}")
            # Once a power-off request went out the VM may be down; it gets its one restart.
            recovery_failed = failed_in in _OFF_REQUESTED and self._recover(vm)
            self._enter(vm, LifecyclePhase.FAILED)
            return LifecycleResult(
                vm=vm,
                ok=False,
                phase=failed_in,
                reason=str(e),
                error=e,
                recovery_failed=recovery_failed,
            )

        try:
            exported = self.export(vm, destination)
            self.start(vm)
        except Exception as e:
            failed_in = self.phase
            reason = str(e) if isinstance(e, VmcycleError) else f"{type(e).__name__}: {e}"
            Log.fail(self.logger, f"{vm}: {reason}")
            recovery_failed = self._recover(vm)
            self._enter(vm, LifecyclePhase.FAILED)
            return LifecycleResult(
                vm=vm,
                ok=False,
                phase=failed_in,
                reason=reason,
                error=e,
                recovery_failed=recovery_failed,
                forced_shutdown=forced,
            )

        self._enter(vm, LifecyclePhase.SUCCEEDED)
        return LifecycleResult(
            vm=vm,
            ok=True,
            phase=LifecyclePhase.SUCCEEDED,
            forced_shutdown=forced,
            exported_bytes=exported,
        )
