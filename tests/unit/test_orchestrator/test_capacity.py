# SPDX-License-Identifier: LGPL-3.0-or-later
import tempfile
import unittest
from collections import namedtuple
from pathlib import Path
from unittest.mock import Mock

import pytest

from fakes.fake_virsh import FakeVirsh
from vmcycle.core.exceptions import InsufficientSpace
from vmcycle.libvirt.virsh_client import DiskSource
from vmcycle.orchestrator.capacity import CapacityChecker

Usage = namedtuple("Usage", "total used free")
GIB = 1024**3


@pytest.mark.unit
class TestEstimateSize(unittest.TestCase):
    def setUp(self):
        self.logger = Mock()
        self._td = tempfile.TemporaryDirectory()
        self.td = Path(self._td.name)

    def tearDown(self):
        self._td.cleanup()

    def test_sums_file_disks_only(self):
        d1 = self.td / "a.qcow2"
        d1.write_bytes(b"a" * 1000)
        d2 = self.td / "b.raw"
        d2.write_bytes(b"b" * 500)
        virsh = FakeVirsh(
            {"AD01": "running"},
            disks={
                "AD01": [
                    DiskSource("file", "disk", "vda", str(d1)),
                    DiskSource("file", "disk", "vdb", str(d2)),
                    DiskSource("block", "disk", "vdc", "/dev/vg0/lv"),
                    DiskSource("file", "cdrom", "sda", str(d1)),
                ]
            },
        )

        est = CapacityChecker(self.logger, virsh).estimate_size("AD01")

        self.assertEqual(est.total_bytes, 1500)
        self.assertEqual(est.files, [d1, d2])
        self.assertEqual(est.skipped, [])

    def test_unreadable_disk_is_skipped_with_warning(self):
        d1 = self.td / "a.qcow2"
        d1.write_bytes(b"a" * 10)
        gone = self.td / "gone.qcow2"
        virsh = FakeVirsh(
            {"AD01": "running"},
            disks={"AD01": [DiskSource("file", "disk", "vda", str(d1)), DiskSource("file", "disk", "vdb", str(gone))]},
        )

        est = CapacityChecker(self.logger, virsh).estimate_size("AD01")

        self.assertEqual(est.total_bytes, 10)
        self.assertEqual(est.skipped, [str(gone)])
        self.logger.warning.assert_called_once()

    def test_no_disks(self):
        est = CapacityChecker(self.logger, FakeVirsh({"AD01": "running"})).estimate_size("AD01")
        self.assertEqual(est.total_bytes, 0)


@pytest.mark.unit
class TestCheckFreeSpace(unittest.TestCase):
    def setUp(self):
        self.logger = Mock()
        self._td = tempfile.TemporaryDirectory()
        self.root = Path(self._td.name)
        self.seen = []

    def tearDown(self):
        self._td.cleanup()

    def _checker(self, free):
        def disk_usage(path):
            self.seen.append(path)
            return Usage(total=free * 2, used=free, free=free)

        return CapacityChecker(self.logger, FakeVirsh({}), disk_usage=disk_usage)

    def test_enough_space_returns_free(self):
        free = self._checker(100 * GIB).check_free_space(self.root / "2026-03-08" / "AD01", 50 * GIB, 40 * GIB)
        self.assertEqual(free, 100 * GIB)

    def test_exact_fit_passes(self):
        self._checker(90 * GIB).check_free_space(self.root / "x", 50 * GIB, 40 * GIB)

    def test_short_by_one_byte(self):
        with self.assertRaises(InsufficientSpace) as cm:
            self._checker(90 * GIB - 1).check_free_space(self.root / "x", 50 * GIB, 40 * GIB)
        self.assertEqual(cm.exception.context["needed"], 90 * GIB)

    def test_measures_nearest_existing_parent(self):
        self._checker(100 * GIB).check_free_space(self.root / "2026-03-08" / "AD01", 0, 0)
        self.assertEqual(self.seen, [str(self.root.absolute())])
