# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmcycle/orchestrator/models.py
from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional


def now() -> _dt.datetime:
    return _dt.datetime.now().astimezone()


class Outcome(str, Enum):
    SUCCESS = "Success"
    FAILURE = "Failure"
    # Lifecycle failed and the recovery restart failed too: VM is powered off.
    FAILURE_VM_LEFT_OFF = "FailureVmLeftOff"
    SKIPPED_NOT_FOUND = "SkippedNotFound"
    SKIPPED_INSUFFICIENT_SPACE = "SkippedInsufficientSpace"

    @property
    def is_failure(self) -> bool:
        return self in (Outcome.FAILURE, Outcome.FAILURE_VM_LEFT_OFF)

    @property
    def is_skip(self) -> bool:
        return self in (Outcome.SKIPPED_NOT_FOUND, Outcome.SKIPPED_INSUFFICIENT_SPACE)


class LifecyclePhase(str, Enum):
    RUNNING = "Running"
    UNKNOWN = "Unknown"
    STOPPING_GRACEFUL = "StoppingGraceful"
    STOPPING_FORCED = "StoppingForced"
    STOPPED = "Stopped"
    EXPORTING = "Exporting"
    EXPORTED = "Exported"
    STARTING = "Starting"
    STARTED = "Started"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


@dataclass
class VmRunRecord:
    """One audit unit per VM per run; outcome must be set before it is written."""
    vm: str
    host: str
    user: str
    started_at: _dt.datetime = field(default_factory=now)
    finished_at: Optional[_dt.datetime] = None
    export_path: Optional[Path] = None
    outcome: Optional[Outcome] = None
    reason: Optional[str] = None
    estimated_bytes: Optional[int] = None

    def finish(self, outcome: Outcome, reason: Optional[str] = None) -> "VmRunRecord":
        self.outcome = outcome
        self.reason = reason
        self.finished_at = now()
        return self

    @property
    def is_final(self) -> bool:
        return self.outcome is not None and self.finished_at is not None


@dataclass(frozen=True)
class CapacityEstimate:
    vm: str
    total_bytes: int
    files: List[Path] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def gib(self) -> float:
        return round(self.total_bytes / 1024**3, 2)


@dataclass(frozen=True)
class HealthCheckResult:
    vm: str
    target: str
    healthy: bool
    attempts: int


@dataclass
class LifecycleResult:
    """Tagged result of one LifecycleController run; `ok` selects the branch."""
    vm: str
    ok: bool
    phase: LifecyclePhase
    reason: Optional[str] = None
    error: Optional[BaseException] = None
    # Set when a failure left the VM off and the single recovery start also failed.
    recovery_failed: bool = False
    forced_shutdown: bool = False
    exported_bytes: int = 0

    @property
    def outcome(self) -> Outcome:
        if self.ok:
            return Outcome.SUCCESS
        if self.recovery_failed:
            return Outcome.FAILURE_VM_LEFT_OFF
        return Outcome.FAILURE


@dataclass
class RunSummary:
    records: List[VmRunRecord] = field(default_factory=list)
    halted_after: Optional[str] = None
    withheld: List[str] = field(default_factory=list)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for r in self.records if r.outcome == outcome)

    @property
    def any_failed(self) -> bool:
        return any(r.outcome is not None and r.outcome.is_failure for r in self.records)
