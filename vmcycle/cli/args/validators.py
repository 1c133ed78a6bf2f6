# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
from __future__ import annotations

import argparse
from typing import Any, Dict

from ...config.settings import normalize_targets, normalize_vms
from .helpers import _merged_get


def _validate_queue(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    """
    Rules:
      - the VM list is non-empty after trimming
      - no VM appears twice (the health gate pairs each VM with the next one)
      - health targets parse as VM=HOST (CLI) or a mapping (YAML)
    """
    vms = normalize_vms(_merged_get(args, conf, "vms"))
    if not vms:
        raise SystemExit("VM list is empty (set `vms:` in config or pass --vm)")

    seen = set()
    for vm in vms:
        if vm in seen:
            raise SystemExit(f"VM listed twice: {vm}")
        seen.add(vm)

    try:
        normalize_targets(conf.get("health_targets"))
        normalize_targets(getattr(args, "health_targets", None))
    except ValueError as e:
        raise SystemExit(f"--health-target: {e}")


def _validate_numbers(args: argparse.Namespace) -> None:
    positive = ("shutdown_timeout", "start_timeout", "poll_interval", "ping_count", "health_retries")
    non_negative = ("cooldown", "retry_interval", "min_free_gb")

    for key in positive:
        v = getattr(args, key, None)
        if v is None or float(v) <= 0:
            raise SystemExit(f"--{key.replace('_', '-')} must be > 0 (got {v!r})")

    for key in non_negative:
        v = getattr(args, key, None)
        if v is None or float(v) < 0:
            raise SystemExit(f"--{key.replace('_', '-')} must be >= 0 (got {v!r})")

    show = getattr(args, "show_audit", None)
    if show is not None and int(show) <= 0:
        raise SystemExit(f"--show-audit must be > 0 (got {show!r})")


def _validate_systemd(args: argparse.Namespace) -> None:
    cal = getattr(args, "systemd_on_calendar", None)
    if cal is None or not str(cal).strip():
        raise SystemExit("--systemd-on-calendar must not be empty (e.g. \"Sun *-*-* 02:00:00\")")


def validate_args(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    _validate_numbers(args)
    if getattr(args, "generate_systemd", False):
        _validate_systemd(args)
        return
    if getattr(args, "show_audit", None):
        return
    _validate_queue(args, conf)
