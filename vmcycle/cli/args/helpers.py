# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmcycle/cli/args/helpers.py
from __future__ import annotations

import argparse
from typing import Any, Dict

# Config keys resolved by _merged_get instead of argparse defaults.
LIST_KEYS = ("vms", "health_targets")


def _require(v: Any) -> bool:
    """True if v is meaningfully present (treats empty/whitespace-only strings as missing)."""
    if v is None:
        return False
    if isinstance(v, str):
        return v.strip() != ""
    if isinstance(v, (list, tuple, dict)):
        return len(v) > 0
    return True


def _merged_get(args: argparse.Namespace, conf: Dict[str, Any], key: str) -> Any:
    """
    Prefer CLI override if present (non-empty), else config.
    """
    v = getattr(args, key, None)
    if _require(v):
        return v
    return conf.get(key)
