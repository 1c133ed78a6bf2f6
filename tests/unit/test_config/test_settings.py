# SPDX-License-Identifier: LGPL-3.0-or-later
import unittest
from pathlib import Path

import pytest

from vmcycle.config.settings import (
    DEFAULT_VMS,
    GIB,
    MaintenanceSettings,
    normalize_targets,
    normalize_vms,
    parse_target_pairs,
)


@pytest.mark.unit
class TestSettings(unittest.TestCase):
    def test_defaults(self):
        s = MaintenanceSettings()

        self.assertEqual(s.vms, ("AD01", "AD02"))
        self.assertEqual(s.min_free_bytes, 50 * GIB)
        self.assertEqual(s.audit_log_path, Path("/var/backups/vmcycle/vmcycle-audit.log"))
        self.assertEqual(s.transcript_path, Path("/var/backups/vmcycle/vmcycle-transcript.log"))

    def test_explicit_log_paths_win(self):
        s = MaintenanceSettings(audit_log=Path("/var/log/a.log"), log_file=Path("/var/log/t.log"))

        self.assertEqual(s.audit_log_path, Path("/var/log/a.log"))
        self.assertEqual(s.transcript_path, Path("/var/log/t.log"))

    def test_probe_target_defaults_to_vm_name(self):
        s = MaintenanceSettings(health_targets={"AD01": "10.0.0.5"})

        self.assertEqual(s.probe_target("AD01"), "10.0.0.5")
        self.assertEqual(s.probe_target("AD02"), "AD02")


@pytest.mark.unit
class TestNormalizers(unittest.TestCase):
    def test_target_pairs(self):
        self.assertEqual(parse_target_pairs(["AD01=10.0.0.5", " AD02 = dc2 "]), {"AD01": "10.0.0.5", "AD02": "dc2"})

    def test_target_pairs_reject_missing_host(self):
        for raw in ("AD01", "AD01=", "=host"):
            with self.subTest(raw=raw):
                with self.assertRaises(ValueError):
                    parse_target_pairs([raw])

    def test_normalize_targets_accepts_mapping_and_string(self):
        self.assertEqual(normalize_targets({"AD01": "h1"}), {"AD01": "h1"})
        self.assertEqual(normalize_targets("AD01=h1"), {"AD01": "h1"})
        self.assertEqual(normalize_targets(None), {})

    def test_normalize_vms(self):
        self.assertEqual(normalize_vms(None), DEFAULT_VMS)
        self.assertEqual(normalize_vms("AD01"), ("AD01",))
        self.assertEqual(normalize_vms([" A ", "", "B"]), ("A", "B"))
