# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmcycle/orchestrator/capacity.py
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any, Callable, List

from ..core.exceptions import InsufficientSpace
from ..core.logger import Log
from ..core.utils import U
from ..libvirt.virsh_client import VirshClient
from .models import CapacityEstimate


class CapacityChecker:
    """
    Advisory pre-flight for one export: how big is the VM, and does the
    backup volume have room for it plus a reserve.

    Sizes are apparent file lengths, so sparse or thin images may consume
    less than estimated. Nothing is reserved; other writers on the same
    volume can still take the space.
    """

    def __init__(
        self,
        logger: logging.Logger,
        virsh: VirshClient,
        *,
        disk_usage: Callable[[str], Any] = shutil.disk_usage,
    ):
        self.logger = logger
        self.virsh = virsh
        self._disk_usage = disk_usage

    def estimate_size(self, vm: str) -> CapacityEstimate:
        total = 0
        files: List[Path] = []
        skipped: List[str] = []

        for disk in self.virsh.disk_sources(vm):
            if not disk.is_file_disk:
                self.logger.debug("%s: %s %s not counted (%s)", vm, disk.device, disk.target, disk.source_type)
                continue
            p = Path(disk.path)  # type: ignore[arg-type]
            try:
                size = p.stat().st_size
            except OSError as e:
                Log.warn(self.logger, f"{vm}: cannot stat disk {p}: {e}; left out of the size estimate")
                skipped.append(str(p))
                continue
            total += size
            files.append(p)

        est = CapacityEstimate(vm=vm, total_bytes=total, files=files, skipped=skipped)
        self.logger.info("📏 %s: estimated export size %.2f GiB over %d disk(s)", vm, est.gib, len(files))
        return est

    @staticmethod
    def _existing_anchor(path: Path) -> Path:
        # The export directory does not exist yet; measure the volume it will land on.
        p = Path(path).expanduser().absolute()
        while not p.exists() and p != p.parent:
            p = p.parent
        return p

    def check_free_space(self, path: Path, minimum_reserve_bytes: int, estimated_bytes: int) -> int:
        """Return free bytes on the volume holding `path`, or raise InsufficientSpace."""
        anchor = self._existing_anchor(path)
        free = int(self._disk_usage(str(anchor)).free)
        needed = int(minimum_reserve_bytes) + int(estimated_bytes)

        self.logger.debug(
            "Free space on %s: %s (need %s = reserve %s + estimate %s)",
            anchor,
            U.human_bytes(free),
            U.human_bytes(needed),
            U.human_bytes(minimum_reserve_bytes),
            U.human_bytes(estimated_bytes),
        )

        if free < needed:
            raise InsufficientSpace(
                code=1,
                msg=(
                    f"Not enough space on {anchor}: {U.human_bytes(free)} free, "
                    f"{U.human_bytes(needed)} needed ({U.human_bytes(estimated_bytes)} export "
                    f"+ {U.human_bytes(minimum_reserve_bytes)} reserve)"
                ),
                context={"path": str(path), "free": free, "needed": needed},
            )
        return free
