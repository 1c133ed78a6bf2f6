# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

import os
import shlex
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from ..core.utils import U

# Keep these templates in one place so both CLI help and generator use the same text.
SYSTEMD_SERVICE_TEMPLATE = """\
[Unit]
Description=vmcycle VM maintenance (stop, export, restart, health-gate)
After=libvirtd.service network-online.target
Wants=network-online.target
Requires=libvirtd.service

[Service]
Type=oneshot
ExecStart={python} -m vmcycle --config={config}
User=root
Group=root
Environment=PYTHONUNBUFFERED=1
EnvironmentFile=-{env_file}
# Maintenance runs can take hours (cool-down + exports).
TimeoutStartSec=infinity
StandardOutput=journal
StandardError=journal
"""

SYSTEMD_TIMER_TEMPLATE = """\
[Unit]
Description=Run vmcycle VM maintenance on a schedule

[Timer]
OnCalendar={on_calendar}
Persistent=true
RandomizedDelaySec=0

[Install]
WantedBy=timers.target
"""


def _q(s: str) -> str:
    """Shell-quote for systemd ExecStart arguments."""
    return shlex.quote(s)


@dataclass(frozen=True)
class SystemdUnitParams:
    python: str
    config: str
    on_calendar: str = "Sun *-*-* 02:00:00"
    env_file: str = "/etc/default/vmcycle"


def _infer_defaults(args: Any) -> SystemdUnitParams:
    # The unit runs the interpreter that generated it (where vmcycle is installed).
    python = sys.executable or "/usr/bin/python3"
    configs = getattr(args, "config", None) or []
    config = configs[-1] if isinstance(configs, list) and configs else (configs or "/etc/vmcycle/vmcycle.yaml")
    on_calendar = getattr(args, "systemd_on_calendar", None) or "Sun *-*-* 02:00:00"
    return SystemdUnitParams(
        python=_q(str(python)),
        config=_q(str(Path(str(config)).expanduser())),
        on_calendar=str(on_calendar).strip(),
    )


def _validate_params(p: SystemdUnitParams) -> None:
    if not p.python or not p.config:
        raise ValueError("python/config cannot be empty")
    if not p.on_calendar:
        raise ValueError("on_calendar cannot be empty")


def render_units(p: SystemdUnitParams) -> tuple[str, str]:
    service = SYSTEMD_SERVICE_TEMPLATE.format_map(
        {"python": p.python, "config": p.config, "env_file": p.env_file}
    )
    timer = SYSTEMD_TIMER_TEMPLATE.format_map({"on_calendar": p.on_calendar})
    return service, timer


def _atomic_write(path: Path, text: str) -> None:
    U.ensure_dir(path.parent)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(text, encoding="utf-8")
    with open(tmp, "rb") as f:
        os.fsync(f.fileno())
    tmp.replace(path)


def generate_systemd_units(args: Any, logger=None) -> Optional[Path]:
    """
    Print or write vmcycle.service + vmcycle.timer.

    With --systemd-output DIR both units are written atomically into DIR;
    otherwise they are printed to stdout.
    """
    params = _infer_defaults(args)
    _validate_params(params)
    service, timer = render_units(params)

    out = getattr(args, "systemd_output", None)
    if not out:
        print(service)
        print(timer)
        return None

    out_dir = Path(str(out)).expanduser()
    _atomic_write(out_dir / "vmcycle.service", service)
    _atomic_write(out_dir / "vmcycle.timer", timer)

    if logger:
        logger.info("Systemd units written to %s", out_dir)
        logger.info("Next steps:")
        logger.info("  sudo install -m 0644 %s/vmcycle.service %s/vmcycle.timer /etc/systemd/system/", out_dir, out_dir)
        logger.info("  sudo systemctl daemon-reload")
        logger.info("  sudo systemctl enable --now vmcycle.timer")
    return out_dir
