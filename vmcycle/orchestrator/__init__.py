# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmcycle/orchestrator/__init__.py
"""
Maintenance pipeline components.

- Orchestrator: sequential loop over the VM queue
- LifecycleController: stop → export → start state machine for one VM
- CapacityChecker: size estimate + free-space gate
- HealthGate: post-restart reachability gate
- AuditRecorder: append-only key=value audit log
"""

from .audit import AuditRecorder
from .capacity import CapacityChecker
from .health_gate import HealthGate, PingProbe
from .lifecycle import LifecycleController
from .models import LifecyclePhase, Outcome, VmRunRecord
from .orchestrator import Orchestrator

__all__ = [
    "AuditRecorder",
    "CapacityChecker",
    "HealthGate",
    "PingProbe",
    "LifecycleController",
    "LifecyclePhase",
    "Outcome",
    "VmRunRecord",
    "Orchestrator",
]
