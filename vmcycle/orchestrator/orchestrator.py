# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmcycle/orchestrator/orchestrator.py

from __future__ import annotations

import logging
import time
from typing import Optional, Tuple

from ..config.settings import MaintenanceSettings
from ..core.exceptions import (
    EXIT_QUEUE_HALTED,
    EXIT_VM_FAILED,
    HealthCheckFailure,
    InsufficientSpace,
    NotElevated,
    VmNotFound,
)
from ..core.logger import ContextLoggerAdapter, Log
from ..core.retry import Clock, Sleeper
from ..core.utils import U
from ..libvirt.virsh_client import VirshClient
from .audit import AuditRecorder
from .capacity import CapacityChecker
from .destination import choose_destination
from .health_gate import HealthGate
from .lifecycle import LifecycleController
from .models import Outcome, RunSummary, VmRunRecord


class Orchestrator:
    """
    Sequential maintenance pipeline over the configured VM list.

    Per VM: existence → destination → capacity → lifecycle → one audit
    record → health gate (unless last or skipped). A failed health gate
    halts everything after it.
    """

    def __init__(
        self,
        logger: logging.Logger,
        settings: MaintenanceSettings,
        *,
        virsh: Optional[VirshClient] = None,
        capacity: Optional[CapacityChecker] = None,
        lifecycle: Optional[LifecycleController] = None,
        health_gate: Optional[HealthGate] = None,
        audit: Optional[AuditRecorder] = None,
        sleep: Sleeper = time.sleep,
        clock: Clock = time.monotonic,
    ):
        self.logger = logger
        self.settings = settings
        self.virsh = virsh or VirshClient(logger, settings.connect_uri)
        self.capacity = capacity or CapacityChecker(logger, self.virsh)
        self.lifecycle = lifecycle or LifecycleController(
            logger,
            self.virsh,
            shutdown_timeout_s=settings.shutdown_timeout_s,
            start_timeout_s=settings.start_timeout_s,
            poll_interval_s=settings.poll_interval_s,
            sleep=sleep,
            clock=clock,
        )
        self.health_gate = health_gate or HealthGate(
            logger,
            cooldown_s=settings.cooldown_s,
            ping_count=settings.ping_count,
            max_retries=settings.health_retries,
            retry_interval_s=settings.retry_interval_s,
            sleep=sleep,
            clock=clock,
        )
        self.audit = audit or AuditRecorder(settings.audit_log_path)

        Log.trace(
            self.logger,
            "🧠 Orchestrator init: vms=%r backup_root=%s uri=%s",
            list(settings.vms),
            settings.backup_root,
            settings.connect_uri,
        )

    # ------------------------------------------------------------------
    # Pre-flight
    # ------------------------------------------------------------------

    def preflight(self) -> None:
        """Root + reachable libvirt, checked once before anything is written."""
        if not U.is_root():
            raise NotElevated(msg="vmcycle must run as root (stop/start/export need full libvirt access)")
        canonical = self.virsh.ping()
        self.logger.info("🔌 libvirt reachable: %s", canonical)

    # ------------------------------------------------------------------
    # Per VM
    # ------------------------------------------------------------------

    def _require_vm(self, vm: str) -> None:
        if not self.virsh.exists(vm):
            raise VmNotFound(code=1, msg=f"{vm} not found on {self.settings.connect_uri}", context={"vm": vm})

    def _run_vm(self, vm: str, record: VmRunRecord, log: ContextLoggerAdapter) -> Tuple[Outcome, Optional[str]]:
        try:
            self._require_vm(vm)
        except VmNotFound as e:
            Log.warn(log, f"{e.msg}; skipping")
            return Outcome.SKIPPED_NOT_FOUND, e.msg

        dest = choose_destination(self.settings.backup_root, vm)
        estimate = self.capacity.estimate_size(vm)
        record.estimated_bytes = estimate.total_bytes
        try:
            self.capacity.check_free_space(dest, self.settings.min_free_bytes, estimate.total_bytes)
        except InsufficientSpace as e:
            Log.warn(log, f"{vm}: {e.msg}; skipping")
            return Outcome.SKIPPED_INSUFFICIENT_SPACE, e.msg

        record.export_path = dest
        log.info("📂 Export destination: %s", dest)

        result = self.lifecycle.run(vm, dest)
        if result.ok:
            Log.ok(log, f"{vm}: maintenance succeeded ({U.human_bytes(result.exported_bytes)} exported)")
        elif result.recovery_failed:
            Log.fail(log, f"{vm}: {result.reason}; VM was left powered off and needs manual start")
        else:
            Log.fail(log, f"{vm}: maintenance failed in {result.phase.value}: {result.reason}")
        return result.outcome, result.reason

    def process_vm(self, vm: str) -> VmRunRecord:
        """Run one VM and append exactly one audit record for it, whatever happens."""
        log = Log.bind(self.logger, vm=vm)
        Log.banner(self.logger, f"VM {vm}")
        record = VmRunRecord(vm=vm, host=self.audit.host, user=self.audit.user)
        try:
            record.finish(*self._run_vm(vm, record, log))
        except Exception as e:
            Log.fail(log, f"{vm}: unexpected {type(e).__name__}: {e}")
            self.logger.debug("Traceback:", exc_info=True)
            record.finish(Outcome.FAILURE, f"{type(e).__name__}: {e}")
        finally:
            if not record.is_final:
                record.finish(Outcome.FAILURE, "interrupted")
            self.audit.append(record)
        return record

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def _gate(self, vm: str, next_vm: str) -> None:
        target = self.settings.probe_target(vm)
        result = self.health_gate.await_healthy(vm, target)
        if not result.healthy:
            raise HealthCheckFailure(
                code=1,
                msg=(
                    f"Health check failed for {vm} ({target}) after {result.attempts} attempt(s); "
                    f"next VM {next_vm} will not be attempted"
                ),
                context={"vm": vm, "next_vm": next_vm, "target": target},
            )

    def process_queue(self) -> RunSummary:
        summary = RunSummary()
        vms = self.settings.vms

        for idx, vm in enumerate(vms):
            record = self.process_vm(vm)
            summary.records.append(record)

            next_vm = vms[idx + 1] if idx + 1 < len(vms) else None
            if next_vm is None:
                break
            if record.outcome is not None and record.outcome.is_skip:
                continue

            try:
                self._gate(vm, next_vm)
            except HealthCheckFailure as e:
                summary.halted_after = vm
                summary.withheld = list(vms[idx + 1 :])
                Log.fail(self.logger, e.msg)
                if len(summary.withheld) > 1:
                    Log.fail(self.logger, f"Queue halted; not processed: {', '.join(summary.withheld)}")
                self.audit.append_abort(vm, e.msg)
                break

        return summary

    def _log_summary(self, summary: RunSummary) -> None:
        Log.banner(self.logger, "Summary")
        for outcome in Outcome:
            n = summary.count(outcome)
            if n:
                self.logger.info("  %-26s %d", outcome.value, n)
        if summary.halted_after:
            Log.warn(self.logger, f"Halted after {summary.halted_after}; withheld: {', '.join(summary.withheld)}")

    # ------------------------------------------------------------------
    # Dry run
    # ------------------------------------------------------------------

    def plan(self) -> int:
        """Existence + capacity for every VM, logged; nothing is stopped or written."""
        Log.banner(self.logger, "Dry run")
        for vm in self.settings.vms:
            if not self.virsh.exists(vm):
                Log.warn(self.logger, f"{vm}: not found; would be skipped")
                continue
            dest = choose_destination(self.settings.backup_root, vm)
            est = self.capacity.estimate_size(vm)
            try:
                free = self.capacity.check_free_space(dest, self.settings.min_free_bytes, est.total_bytes)
            except InsufficientSpace as e:
                Log.warn(self.logger, f"{vm}: would be skipped: {e.msg}")
                continue
            self.logger.info(
                "📝 %s: state=%s → %s (%.2f GiB, %s free), probe %s",
                vm,
                self.virsh.domstate(vm),
                dest,
                est.gib,
                U.human_bytes(free),
                self.settings.probe_target(vm),
            )
        return 0

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.preflight()

        if self.settings.dry_run:
            return self.plan()

        transcript = Log.attach_file(self.logger, self.settings.transcript_path)
        try:
            Log.banner(self.logger, "vmcycle run")
            self.logger.info("📋 Queue: %s", ", ".join(self.settings.vms))
            self.logger.info("🧾 Audit log: %s", self.audit.path)
            with self.audit:
                summary = self.process_queue()
            self._log_summary(summary)
        finally:
            Log.detach(self.logger, transcript)

        if summary.halted_after:
            return EXIT_QUEUE_HALTED
        if summary.any_failed:
            return EXIT_VM_FAILED
        return 0
