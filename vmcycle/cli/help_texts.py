# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmcycle/cli/help_texts.py
from __future__ import annotations

# NOTE:
# This module is pure help/documentation text used by argparse epilog rendering.
# Keep it "copy/paste runnable" and avoid importing heavy dependencies here.

YAML_EXAMPLE = r"""# vmcycle configuration (YAML)
#
# Run:
# sudo vmcycle --config /etc/vmcycle/vmcycle.yaml
#
# Merge multiple configs (later overrides earlier):
# sudo vmcycle --config base.yaml --config site.yaml
#
# CLI flags override config values. --vm / --health-target given on the CLI
# replace the config lists instead of extending them.

# Processed strictly in this order, one at a time.
vms:
  - AD01
  - AD02

# Probe target per VM (defaults to the VM name itself).
health_targets:
  AD01: ad01.corp.example.com
  AD02: 10.0.0.12

backup_root: /srv/backups/vms      # exports land in <root>/<YYYY-MM-DD>/<vm>/
min_free_gb: 50                    # headroom required on top of the disk estimate

shutdown_timeout: 600              # graceful shutdown budget before forced power-off
start_timeout: 300
poll_interval: 5

cooldown: 1800                     # wait after start before the first probe
ping_count: 4
health_retries: 3
retry_interval: 60

connect: qemu:///system
# audit_log: /srv/backups/vms/vmcycle-audit.log
# log_file: /srv/backups/vms/vmcycle-transcript.log
# dry_run: true
"""

FEATURE_SUMMARY = r"""
  • One VM at a time: graceful shutdown → forced power-off on timeout → export → start
  • Export = domain XML + copies of every file-backed disk (+ NVRAM) + manifest.json
  • Pre-flight: libvirt reachable, running as root (checked once, before any write)
  • Per-VM skips: unknown VM, not enough free space on the backup volume
  • Failed export/start triggers one best-effort restart of the powered-off VM
  • Health gate (ping with retries) after each VM; a failure halts the rest of the queue
  • Append-only key=value audit log, one line per VM plus abort lines
  • Exit codes: 0 ok · 2 a VM failed · 3 libvirt unavailable · 4 not root · 5 queue halted
"""

SYSTEMD_EXAMPLE = r"""
# Generate and install:
#   sudo vmcycle --config /etc/vmcycle/vmcycle.yaml --generate-systemd --systemd-output /tmp/units
#   sudo install -m 0644 /tmp/units/vmcycle.* /etc/systemd/system/
#   sudo systemctl enable --now vmcycle.timer
"""
