# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmcycle/config/settings.py
from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

GIB = 1024**3

DEFAULT_VMS: Tuple[str, ...] = ("AD01", "AD02")
DEFAULT_BACKUP_ROOT = Path("/var/backups/vmcycle")
DEFAULT_CONNECT_URI = "qemu:///system"

AUDIT_LOG_NAME = "vmcycle-audit.log"
TRANSCRIPT_NAME = "vmcycle-transcript.log"


def parse_target_pairs(pairs: Iterable[str]) -> Dict[str, str]:
    """
    Parse repeated `VM=HOST` CLI values into a mapping.

    Raises ValueError on a malformed pair.
    """
    out: Dict[str, str] = {}
    for raw in pairs:
        vm, sep, host = str(raw).partition("=")
        vm, host = vm.strip(), host.strip()
        if not sep or not vm or not host:
            raise ValueError(f"expected VM=HOST, got {raw!r}")
        out[vm] = host
    return out


def normalize_targets(value: Any) -> Dict[str, str]:
    """Accept either a YAML mapping or a list of `VM=HOST` strings."""
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return {str(k).strip(): str(v).strip() for k, v in value.items()}
    if isinstance(value, str):
        return parse_target_pairs([value])
    return parse_target_pairs(value)


def normalize_vms(value: Any) -> Tuple[str, ...]:
    if value is None:
        return DEFAULT_VMS
    if isinstance(value, str):
        value = [value]
    return tuple(str(v).strip() for v in value if str(v).strip())


@dataclass(frozen=True)
class MaintenanceSettings:
    """Resolved run settings (CLI flags over config files over defaults)."""

    vms: Tuple[str, ...] = DEFAULT_VMS
    health_targets: Mapping[str, str] = field(default_factory=dict)
    backup_root: Path = DEFAULT_BACKUP_ROOT
    shutdown_timeout_s: float = 600
    start_timeout_s: float = 300
    poll_interval_s: float = 5
    min_free_gb: float = 50
    cooldown_s: float = 1800
    ping_count: int = 4
    health_retries: int = 3
    retry_interval_s: float = 60
    connect_uri: str = DEFAULT_CONNECT_URI
    audit_log: Optional[Path] = None
    log_file: Optional[Path] = None
    dry_run: bool = False

    @property
    def min_free_bytes(self) -> int:
        return int(self.min_free_gb * GIB)

    @property
    def audit_log_path(self) -> Path:
        return self.audit_log or (self.backup_root / AUDIT_LOG_NAME)

    @property
    def transcript_path(self) -> Path:
        return self.log_file or (self.backup_root / TRANSCRIPT_NAME)

    def probe_target(self, vm: str) -> str:
        """Health probe target for `vm`; the VM name itself when unmapped."""
        return self.health_targets.get(vm, vm)

    @classmethod
    def from_args(cls, args: argparse.Namespace, conf: Optional[Dict[str, Any]] = None) -> "MaintenanceSettings":
        conf = conf or {}

        # List-valued knobs: a CLI value replaces the config value entirely.
        vms = getattr(args, "vms", None) or conf.get("vms")
        targets = dict(normalize_targets(conf.get("health_targets")))
        targets.update(normalize_targets(getattr(args, "health_targets", None)))

        def _path(key: str) -> Optional[Path]:
            v = getattr(args, key, None)
            return Path(v).expanduser() if v else None

        return cls(
            vms=normalize_vms(vms),
            health_targets=targets,
            backup_root=_path("backup_root") or DEFAULT_BACKUP_ROOT,
            shutdown_timeout_s=float(args.shutdown_timeout),
            start_timeout_s=float(args.start_timeout),
            poll_interval_s=float(args.poll_interval),
            min_free_gb=float(args.min_free_gb),
            cooldown_s=float(args.cooldown),
            ping_count=int(args.ping_count),
            health_retries=int(args.health_retries),
            retry_interval_s=float(args.retry_interval),
            connect_uri=str(args.connect or DEFAULT_CONNECT_URI),
            audit_log=_path("audit_log"),
            log_file=_path("log_file"),
            dry_run=bool(getattr(args, "dry_run", False)),
        )
