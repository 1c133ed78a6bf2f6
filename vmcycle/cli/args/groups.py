# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
from __future__ import annotations

import argparse

from ...config.settings import DEFAULT_BACKUP_ROOT, DEFAULT_CONNECT_URI


def _add_global_config_logging(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Global config/logging (two-phase parse relies on these)
    # ------------------------------------------------------------------
    from ... import __version__

    p.add_argument(
        "--config",
        action="append",
        default=[],
        help="YAML/JSON config file (repeatable; later overrides earlier).",
    )
    p.add_argument("--dump-config", action="store_true", help="Print merged normalized config and exit.")
    p.add_argument("--dump-args", action="store_true", help="Print final parsed args and exit.")
    p.add_argument("--version", action="version", version=__version__)
    p.add_argument("-v", "--verbose", action="count", default=0, help="Verbosity: -v, -vv, -vvv")
    p.add_argument("-q", "--quiet", action="count", default=0, help="Less console output: -q, -qq")
    p.add_argument(
        "--log-file",
        dest="log_file",
        default=None,
        help="Transcript file, appended to (default: <backup-root>/vmcycle-transcript.log).",
    )


def _add_queue(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # VM queue (list-valued: CLI replaces config, see Config.apply_as_defaults)
    # ------------------------------------------------------------------
    p.add_argument(
        "--vm",
        dest="vms",
        action="append",
        default=None,
        metavar="NAME",
        help="libvirt domain to process, in order (repeatable). Default: AD01, AD02.",
    )
    p.add_argument(
        "--health-target",
        dest="health_targets",
        action="append",
        default=None,
        metavar="VM=HOST",
        help="Probe HOST instead of the VM name for VM's health gate (repeatable).",
    )


def _add_platform(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-c",
        "--connect",
        dest="connect",
        default=DEFAULT_CONNECT_URI,
        help="libvirt connection URI passed to virsh.",
    )


def _add_backup(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Export destination / capacity / audit
    # ------------------------------------------------------------------
    p.add_argument(
        "--backup-root",
        dest="backup_root",
        default=str(DEFAULT_BACKUP_ROOT),
        help="Export root; each run writes <root>/<YYYY-MM-DD>/<vm>/.",
    )
    p.add_argument(
        "--min-free-gb",
        dest="min_free_gb",
        type=float,
        default=50,
        help="Free space (GiB) that must remain on the backup volume after the export.",
    )
    p.add_argument(
        "--audit-log",
        dest="audit_log",
        default=None,
        help="Append-only audit log (default: <backup-root>/vmcycle-audit.log).",
    )


def _add_lifecycle_timing(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--shutdown-timeout",
        dest="shutdown_timeout",
        type=float,
        default=600,
        help="Seconds to wait for a graceful shutdown before forcing power-off.",
    )
    p.add_argument(
        "--start-timeout",
        dest="start_timeout",
        type=float,
        default=300,
        help="Seconds to wait for a started VM to report running.",
    )
    p.add_argument(
        "--poll-interval",
        dest="poll_interval",
        type=float,
        default=5,
        help="Seconds between domain state polls.",
    )


def _add_health_gate(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--cooldown",
        dest="cooldown",
        type=float,
        default=1800,
        help="Seconds to wait after a restart before the first health probe.",
    )
    p.add_argument("--ping-count", dest="ping_count", type=int, default=4, help="Echo requests per probe attempt.")
    p.add_argument("--health-retries", dest="health_retries", type=int, default=3, help="Probe attempts before giving up.")
    p.add_argument(
        "--retry-interval",
        dest="retry_interval",
        type=float,
        default=60,
        help="Seconds between failed probe attempts.",
    )


def _add_operation_flags(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Global operation flags
    # ------------------------------------------------------------------
    p.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        help="Check VMs and capacity, log the plan, touch nothing.",
    )
    p.add_argument(
        "--show-audit",
        dest="show_audit",
        type=int,
        default=None,
        metavar="N",
        help="Print the last N audit log entries and exit.",
    )


def _add_systemd_gen(p: argparse.ArgumentParser) -> None:
    p.add_argument("--generate-systemd", dest="generate_systemd", action="store_true", help="Emit systemd service+timer and exit.")
    p.add_argument("--systemd-output", dest="systemd_output", default=None, help="Write systemd units into this directory instead of stdout.")
    p.add_argument(
        "--systemd-on-calendar",
        dest="systemd_on_calendar",
        default="Sun *-*-* 02:00:00",
        help="OnCalendar= expression for the generated timer.",
    )
