# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmcycle/orchestrator/destination.py
from __future__ import annotations

import datetime as _dt
from pathlib import Path
from typing import Optional

from ..libvirt.libvirt_utils import sanitize_name
from .models import now


def choose_destination(root: Path, vm: str, *, when: Optional[_dt.datetime] = None) -> Path:
    """
    Pick `<root>/<YYYY-MM-DD>/<vm>`, or a time-suffixed sibling if taken.

    Collisions go to `<vm>-HHMMSS`, then `<vm>-HHMMSS-2`, `-3`, ... The
    returned path does not exist at the time of the call.
    """
    when = when or now()
    day_dir = Path(root) / when.strftime("%Y-%m-%d")
    base = sanitize_name(vm)

    primary = day_dir / base
    if not primary.exists():
        return primary

    stamped = day_dir / f"{base}-{when.strftime('%H%M%S')}"
    candidate = stamped
    n = 2
    while candidate.exists():
        candidate = day_dir / f"{stamped.name}-{n}"
        n += 1
    return candidate


def create_destination(path: Path) -> Path:
    """Create the export directory; refuses to reuse an existing one."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.mkdir(exist_ok=False)
    return path
