# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmcycle/libvirt/virsh_client.py
"""
Thin wrapper over the `virsh` CLI.

Every call goes through U.run_cmd with `-c <uri>` so the connection target is
explicit; failures surface as PlatformCommandError carrying virsh's stderr.
"""
from __future__ import annotations

import datetime as _dt
import json
import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set

from ..core.exceptions import PlatformCommandError, PlatformUnavailable
from ..core.utils import U
from .libvirt_utils import nvram_path_from_xml, sanitize_name

MANIFEST_NAME = "manifest.json"


@dataclass(frozen=True)
class DiskSource:
    """One row of `virsh domblklist --details`."""
    source_type: str  # file | block | network | volume
    device: str       # disk | cdrom | floppy | lun
    target: str       # vda, sda, ...
    path: Optional[str]

    @property
    def is_file_disk(self) -> bool:
        return self.source_type == "file" and self.device == "disk" and bool(self.path)


@dataclass
class ExportedFile:
    path: str
    source: str
    bytes: int


@dataclass
class ExportManifest:
    vm: str
    uri: str
    destination: str
    exported_at: str
    files: List[ExportedFile] = field(default_factory=list)

    @property
    def total_bytes(self) -> int:
        return sum(f.bytes for f in self.files)

    def to_dict(self) -> dict:
        return {
            "vm": self.vm,
            "uri": self.uri,
            "destination": self.destination,
            "exported_at": self.exported_at,
            "total_bytes": self.total_bytes,
            "files": [{"path": f.path, "source": f.source, "bytes": f.bytes} for f in self.files],
        }


def parse_domblklist(text: str) -> List[DiskSource]:
    """
    Parse `virsh domblklist --details` output:

         Type   Device   Target   Source
        ------------------------------------------------
         file   disk     vda      /var/lib/libvirt/images/ad01.qcow2
         file   cdrom    sda      -
    """
    out: List[DiskSource] = []
    for ln in (text or "").splitlines():
        s = ln.strip()
        if not s or s.startswith("-") or s.lower().startswith("type"):
            continue
        parts = s.split(None, 3)
        if len(parts) < 3:
            continue
        src_type, device, target = parts[0], parts[1], parts[2]
        path = parts[3].strip() if len(parts) == 4 else None
        if path in (None, "", "-"):
            path = None
        out.append(DiskSource(source_type=src_type, device=device, target=target, path=path))
    return out


class VirshClient:
    def __init__(self, logger: logging.Logger, uri: str = "qemu:///system", *, virsh: str = "virsh"):
        self.logger = logger
        self.uri = uri
        self.virsh = virsh

    def _virsh(self, *argv: str) -> str:
        cmd = [self.virsh, "-c", self.uri, *argv]
        try:
            cp = U.run_cmd(self.logger, cmd, check=True, capture=True)
        except subprocess.CalledProcessError as e:
            err = (e.stderr or e.stdout or "").strip() or f"exit status {e.returncode}"
            raise PlatformCommandError(
                code=1,
                msg=f"virsh {argv[0]} failed: {err}",
                cause=e,
                context={"argv": list(argv), "uri": self.uri},
            ) from e
        except OSError as e:
            raise PlatformCommandError(code=1, msg=f"virsh {argv[0]} could not run: {e}", cause=e) from e
        return cp.stdout or ""

    # ------------------------------------------------------------------
    # Pre-flight
    # ------------------------------------------------------------------

    def ping(self) -> str:
        """Return the canonical connection URI or raise PlatformUnavailable."""
        if U.which(self.virsh) is None:
            raise PlatformUnavailable(msg=f"{self.virsh} not found on PATH (install libvirt-client)")
        try:
            return self._virsh("uri").strip()
        except PlatformCommandError as e:
            raise PlatformUnavailable(
                msg=f"libvirt not reachable at {self.uri}: {e.msg}",
                cause=e,
                context={"uri": self.uri},
            ) from e

    # ------------------------------------------------------------------
    # Inventory / state
    # ------------------------------------------------------------------

    def list_domains(self) -> List[str]:
        out = self._virsh("list", "--all", "--name")
        return [ln.strip() for ln in out.splitlines() if ln.strip()]

    def exists(self, vm: str) -> bool:
        return vm in self.list_domains()

    def domstate(self, vm: str) -> str:
        return self._virsh("domstate", vm).strip().lower()

    def disk_sources(self, vm: str) -> List[DiskSource]:
        return parse_domblklist(self._virsh("domblklist", vm, "--details"))

    def dumpxml(self, vm: str) -> str:
        return self._virsh("dumpxml", "--security-info", vm)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def shutdown(self, vm: str) -> None:
        self._virsh("shutdown", vm)

    def destroy(self, vm: str) -> None:
        self._virsh("destroy", vm)

    def start(self, vm: str) -> None:
        self._virsh("start", vm)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export(self, vm: str, destination: Path) -> ExportManifest:
        """
        Export a shut-off domain into an existing, empty `destination`:

            <vm>.xml        domain definition (with security info)
            disks/<file>    copy of every file-backed disk
            nvram/<file>    UEFI variable store, when the domain has one
            manifest.json   what was copied, with sizes
        """
        manifest = ExportManifest(
            vm=vm,
            uri=self.uri,
            destination=str(destination),
            exported_at=_dt.datetime.now().astimezone().isoformat(timespec="seconds"),
        )

        xml_text = self.dumpxml(vm)
        xml_path = destination / f"{sanitize_name(vm)}.xml"
        xml_path.write_text(xml_text, encoding="utf-8")
        manifest.files.append(ExportedFile(path=xml_path.name, source="virsh dumpxml", bytes=len(xml_text.encode("utf-8"))))

        disks_dir = destination / "disks"
        disks_dir.mkdir()
        used: Set[str] = set()
        for disk in self.disk_sources(vm):
            if not disk.is_file_disk:
                self.logger.debug("Skipping %s %s %s (not a file-backed disk)", disk.source_type, disk.device, disk.target)
                continue
            src = Path(disk.path)  # type: ignore[arg-type]
            name = src.name if src.name not in used else f"{disk.target}-{src.name}"
            used.add(name)
            self.logger.info("💾 %s: copying %s (%s) → disks/%s", vm, disk.target, U.human_bytes(src.stat().st_size), name)
            n = U.copy_file(src, disks_dir / name, label=f"{vm}:{disk.target}")
            manifest.files.append(ExportedFile(path=f"disks/{name}", source=str(src), bytes=n))

        nvram = nvram_path_from_xml(xml_text)
        if nvram:
            nvram_dir = destination / "nvram"
            nvram_dir.mkdir()
            src = Path(nvram)
            n = U.copy_file(src, nvram_dir / src.name, label=f"{vm}:nvram")
            manifest.files.append(ExportedFile(path=f"nvram/{src.name}", source=str(src), bytes=n))

        (destination / MANIFEST_NAME).write_text(json.dumps(manifest.to_dict(), indent=2) + "\n", encoding="utf-8")
        self.logger.info("📦 %s: exported %d file(s), %s", vm, len(manifest.files), U.human_bytes(manifest.total_bytes))
        return manifest
