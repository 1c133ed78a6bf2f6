# SPDX-License-Identifier: LGPL-3.0-or-later
import argparse
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

from vmcycle.config.systemd_template import (
    SystemdUnitParams,
    _validate_params,
    generate_systemd_units,
    render_units,
)


class TestSystemdTemplate(unittest.TestCase):
    """Test systemd service/timer generation."""

    def test_renders_oneshot_service(self):
        service, _ = render_units(SystemdUnitParams(python="/usr/bin/python3", config="/etc/vmcycle/vmcycle.yaml"))

        self.assertIn("[Unit]", service)
        self.assertIn("Type=oneshot", service)
        self.assertIn("ExecStart=/usr/bin/python3 -m vmcycle --config=/etc/vmcycle/vmcycle.yaml", service)
        self.assertIn("Requires=libvirtd.service", service)

    def test_timer_uses_calendar_expression(self):
        _, timer = render_units(
            SystemdUnitParams(python="python3", config="/c.yaml", on_calendar="Sat *-*-* 23:30:00")
        )

        self.assertIn("OnCalendar=Sat *-*-* 23:30:00", timer)
        self.assertIn("WantedBy=timers.target", timer)

    def test_rejects_empty_calendar(self):
        with self.assertRaises(ValueError):
            _validate_params(SystemdUnitParams(python="python3", config="/c.yaml", on_calendar=""))

    def test_writes_units_to_directory(self):
        with tempfile.TemporaryDirectory() as td:
            args = argparse.Namespace(
                config=["/etc/vmcycle/base.yaml", "/etc/vmcycle/site.yaml"],
                systemd_output=str(Path(td) / "units"),
                systemd_on_calendar="daily",
            )

            out = generate_systemd_units(args, Mock())

            self.assertEqual(out, Path(td) / "units")
            service = (out / "vmcycle.service").read_text(encoding="utf-8")
            timer = (out / "vmcycle.timer").read_text(encoding="utf-8")
            self.assertIn("--config=/etc/vmcycle/site.yaml", service)
            self.assertIn("OnCalendar=daily", timer)
            self.assertFalse(list(out.glob("*.tmp")))

    def test_prints_without_output_dir(self):
        args = argparse.Namespace(config=[], systemd_output=None, systemd_on_calendar=None)
        self.assertIsNone(generate_systemd_units(args))

    @patch("vmcycle.config.systemd_template.sys.executable", "/opt/vmcycle/bin/python3")
    def test_service_runs_generating_interpreter(self):
        with tempfile.TemporaryDirectory() as td:
            args = argparse.Namespace(config=["/c.yaml"], systemd_output=td, systemd_on_calendar="daily")

            service = (generate_systemd_units(args, Mock()) / "vmcycle.service").read_text(encoding="utf-8")

        self.assertIn("ExecStart=/opt/vmcycle/bin/python3 -m vmcycle --config=/c.yaml\n", service)
