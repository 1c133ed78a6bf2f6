# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
from __future__ import annotations

import sys
import traceback
from typing import Optional, Sequence

from .cli.args.parser import parse_args_with_config
from .config.settings import MaintenanceSettings
from .config.systemd_template import generate_systemd_units
from .core.exceptions import Fatal
from .core.utils import U
from .orchestrator.audit import AuditRecorder
from .orchestrator.orchestrator import Orchestrator


def _print_stderr(msg: str) -> None:
    print(msg, file=sys.stderr)


def _safe_log(logger, level: str, msg: str) -> None:
    """
    Best-effort logging without assuming logger exists or has a given method.
    """
    if logger is None:
        _print_stderr(msg)
        return

    fn = getattr(logger, level, None)
    if callable(fn):
        fn(msg)
    else:
        _print_stderr(msg)


def main(argv: Optional[Sequence[str]] = None) -> int:
    logger: Optional[object] = None

    # Phase 1: parse (Fatal can happen here)
    try:
        args, conf, logger = parse_args_with_config(argv)
    except Fatal as e:
        # Config loader usually already logged via U.die(logger, ...).
        if logger is None:
            _print_stderr(f"💥 ERROR    {e}")
        return getattr(e, "code", 1)
    except KeyboardInterrupt:
        _safe_log(logger, "warning", "Interrupted by user (Ctrl+C).")
        return 130

    if args.generate_systemd:
        generate_systemd_units(args, logger)
        return 0

    settings = MaintenanceSettings.from_args(args, conf)

    if args.show_audit:
        print(U.json_dump(AuditRecorder.read_entries(settings.audit_log_path, limit=args.show_audit)))
        return 0

    # Phase 2: run pipeline
    try:
        rc = Orchestrator(logger, settings).run()
    except Fatal as e:
        _safe_log(logger, "error", f"💥 {e}")
        rc = getattr(e, "code", 1)
    except KeyboardInterrupt:
        _safe_log(logger, "warning", "Interrupted by user (Ctrl+C); the current VM may be left stopped.")
        rc = 130
    except Exception as e:
        # Unexpected exceptions should not fail silently.
        _safe_log(logger, "error", f"💥 UNHANDLED {type(e).__name__}: {e}")
        _safe_log(logger, "debug", traceback.format_exc())
        rc = 1

    return rc


def entrypoint() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    entrypoint()
