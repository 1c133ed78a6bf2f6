# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple

from vmcycle.core.exceptions import PlatformCommandError
from vmcycle.libvirt.libvirt_utils import sanitize_name
from vmcycle.libvirt.virsh_client import DiskSource, ExportedFile, ExportManifest

LIFECYCLE_CALLS = ("shutdown", "destroy", "start", "export")


class FakeClock:
    """Monotonic clock that only moves when sleep() is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def monotonic(self) -> float:
        return self.now


class FakeVirsh:
    """
    In-memory stand-in for VirshClient.

    domains: name -> state ("running" / "shut off" / ...)
    off_after_polls: graceful shutdown lands after this many domstate reads
                     (None: the guest ignores it, only destroy works)
    guest_beats_destroy: the guest is already down when destroy arrives, so
                     virsh rejects it with "domain is not running"
    """

    def __init__(
        self,
        domains: Dict[str, str],
        *,
        disks: Optional[Dict[str, List[DiskSource]]] = None,
        off_after_polls: Optional[int] = 0,
        export_error: Optional[Exception] = None,
        start_error: Optional[Exception] = None,
        start_reaches_running: bool = True,
        guest_beats_destroy: bool = False,
        uri: str = "qemu:///system",
    ):
        self.domains = dict(domains)
        self.disks = disks or {}
        self.off_after_polls = off_after_polls
        self.export_error = export_error
        self.start_error = start_error
        self.start_reaches_running = start_reaches_running
        self.guest_beats_destroy = guest_beats_destroy
        self.uri = uri
        self.calls: List[Tuple[str, str]] = []
        self._pending_off: Dict[str, int] = {}

    # inventory ---------------------------------------------------------

    def ping(self) -> str:
        return self.uri

    def list_domains(self) -> List[str]:
        return list(self.domains)

    def exists(self, vm: str) -> bool:
        self.calls.append(("exists", vm))
        return vm in self.domains

    def domstate(self, vm: str) -> str:
        if vm not in self.domains:
            raise PlatformCommandError(msg=f"virsh domstate failed: failed to get domain '{vm}'")
        if vm in self._pending_off:
            if self._pending_off[vm] <= 0:
                del self._pending_off[vm]
                self.domains[vm] = "shut off"
            else:
                self._pending_off[vm] -= 1
        return self.domains[vm]

    def disk_sources(self, vm: str) -> List[DiskSource]:
        return list(self.disks.get(vm, []))

    # control -----------------------------------------------------------

    def shutdown(self, vm: str) -> None:
        self.calls.append(("shutdown", vm))
        if self.off_after_polls is not None:
            self._pending_off[vm] = self.off_after_polls

    def destroy(self, vm: str) -> None:
        self.calls.append(("destroy", vm))
        self._pending_off.pop(vm, None)
        self.domains[vm] = "shut off"
        if self.guest_beats_destroy:
            raise PlatformCommandError(msg="virsh destroy failed: Requested operation is not valid: domain is not running")

    def start(self, vm: str) -> None:
        self.calls.append(("start", vm))
        if self.start_error is not None:
            raise self.start_error
        if self.start_reaches_running:
            self.domains[vm] = "running"

    def export(self, vm: str, destination: Path) -> ExportManifest:
        self.calls.append(("export", vm))
        if self.export_error is not None:
            raise self.export_error
        (destination / f"{sanitize_name(vm)}.xml").write_text(f"<domain><name>{vm}</name></domain>", encoding="utf-8")
        m = ExportManifest(vm=vm, uri=self.uri, destination=str(destination), exported_at="now")
        m.files.append(ExportedFile(path=f"{sanitize_name(vm)}.xml", source="virsh dumpxml", bytes=36))
        return m

    # assertions helpers ------------------------------------------------

    def lifecycle_calls(self, vm: str) -> List[str]:
        return [op for op, name in self.calls if name == vm and op in LIFECYCLE_CALLS]
