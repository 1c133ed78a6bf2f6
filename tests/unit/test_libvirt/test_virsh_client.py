# SPDX-License-Identifier: LGPL-3.0-or-later
import json
import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from vmcycle.core.exceptions import PlatformCommandError, PlatformUnavailable
from vmcycle.libvirt.virsh_client import MANIFEST_NAME, DiskSource, VirshClient, parse_domblklist

DOMBLKLIST = """\
 Type   Device   Target   Source
------------------------------------------------------------
 file   disk     vda      /var/lib/libvirt/images/ad01.qcow2
 file   disk     vdb      /var/lib/libvirt/images/ad01 data.qcow2
 block  disk     vdc      /dev/vg0/ad01-logs
 file   cdrom    sda      -
"""


def _cp(stdout="", rc=0):
    return subprocess.CompletedProcess(["virsh"], rc, stdout, "")


@pytest.mark.unit
class TestParseDomblklist(unittest.TestCase):
    def test_rows(self):
        disks = parse_domblklist(DOMBLKLIST)

        self.assertEqual(len(disks), 4)
        self.assertEqual(disks[0], DiskSource("file", "disk", "vda", "/var/lib/libvirt/images/ad01.qcow2"))
        self.assertEqual(disks[1].path, "/var/lib/libvirt/images/ad01 data.qcow2")
        self.assertIsNone(disks[3].path)

    def test_only_file_disks_count(self):
        flags = [d.is_file_disk for d in parse_domblklist(DOMBLKLIST)]
        self.assertEqual(flags, [True, True, False, False])

    def test_empty_output(self):
        self.assertEqual(parse_domblklist(""), [])


@pytest.mark.unit
class TestVirshClient(unittest.TestCase):
    def setUp(self):
        self.logger = Mock()
        self.client = VirshClient(self.logger, "qemu:///system")

    @patch("vmcycle.libvirt.virsh_client.U.run_cmd")
    def test_every_call_names_the_uri(self, mock_run):
        mock_run.return_value = _cp("running\n")

        self.assertEqual(self.client.domstate("AD01"), "running")

        cmd = mock_run.call_args[0][1]
        self.assertEqual(cmd, ["virsh", "-c", "qemu:///system", "domstate", "AD01"])

    @patch("vmcycle.libvirt.virsh_client.U.run_cmd")
    def test_domstate_is_lower_cased(self, mock_run):
        mock_run.return_value = _cp("Shut Off\n")
        self.assertEqual(self.client.domstate("AD01"), "shut off")

    @patch("vmcycle.libvirt.virsh_client.U.run_cmd")
    def test_exists(self, mock_run):
        mock_run.return_value = _cp("AD01\nAD02\n\n")

        self.assertTrue(self.client.exists("AD02"))
        self.assertFalse(self.client.exists("AD0"))

    @patch("vmcycle.libvirt.virsh_client.U.run_cmd")
    def test_failure_carries_stderr(self, mock_run):
        mock_run.side_effect = subprocess.CalledProcessError(
            1, ["virsh"], output="", stderr="error: Domain not found: no domain with matching name 'X'"
        )

        with self.assertRaises(PlatformCommandError) as cm:
            self.client.start("X")
        self.assertIn("Domain not found", cm.exception.msg)

    @patch("vmcycle.libvirt.virsh_client.U.which", return_value=None)
    def test_ping_without_virsh(self, _which):
        with self.assertRaises(PlatformUnavailable) as cm:
            self.client.ping()
        self.assertEqual(cm.exception.code, 3)

    @patch("vmcycle.libvirt.virsh_client.U.run_cmd")
    @patch("vmcycle.libvirt.virsh_client.U.which", return_value="/usr/bin/virsh")
    def test_ping_unreachable(self, _which, mock_run):
        mock_run.side_effect = subprocess.CalledProcessError(1, ["virsh"], stderr="failed to connect to the hypervisor")

        with self.assertRaises(PlatformUnavailable):
            self.client.ping()

    @patch("vmcycle.libvirt.virsh_client.U.run_cmd")
    @patch("vmcycle.libvirt.virsh_client.U.which", return_value="/usr/bin/virsh")
    def test_ping_returns_canonical_uri(self, _which, mock_run):
        mock_run.return_value = _cp("qemu:///system\n")
        self.assertEqual(self.client.ping(), "qemu:///system")


@pytest.mark.unit
class TestExport(unittest.TestCase):
    def setUp(self):
        self.logger = Mock()
        self.client = VirshClient(self.logger)
        self._td = tempfile.TemporaryDirectory()
        self.td = Path(self._td.name)
        self.images = self.td / "images"
        self.images.mkdir()
        self.dest = self.td / "backup" / "AD01"
        self.dest.mkdir(parents=True)

    def tearDown(self):
        self._td.cleanup()

    def test_export_copies_xml_disks_and_nvram(self):
        disk = self.images / "ad01.qcow2"
        disk.write_bytes(b"q" * 4096)
        nvram = self.images / "AD01_VARS.fd"
        nvram.write_bytes(b"v" * 128)
        xml = f"<domain><name>AD01</name><os><nvram>{nvram}</nvram></os></domain>"

        disks = [
            DiskSource("file", "disk", "vda", str(disk)),
            DiskSource("file", "cdrom", "sda", None),
        ]
        with patch.object(self.client, "dumpxml", return_value=xml), patch.object(
            self.client, "disk_sources", return_value=disks
        ):
            manifest = self.client.export("AD01", self.dest)

        self.assertEqual((self.dest / "AD01.xml").read_text(encoding="utf-8"), xml)
        self.assertEqual((self.dest / "disks" / "ad01.qcow2").read_bytes(), disk.read_bytes())
        self.assertEqual((self.dest / "nvram" / "AD01_VARS.fd").read_bytes(), nvram.read_bytes())

        on_disk = json.loads((self.dest / MANIFEST_NAME).read_text(encoding="utf-8"))
        self.assertEqual(on_disk["vm"], "AD01")
        self.assertEqual([f["path"] for f in on_disk["files"]], ["AD01.xml", "disks/ad01.qcow2", "nvram/AD01_VARS.fd"])
        self.assertEqual(manifest.total_bytes, len(xml) + 4096 + 128)

    def test_same_basename_disks_do_not_collide(self):
        a = self.images / "a"
        b = self.images / "b"
        a.mkdir()
        b.mkdir()
        (a / "disk.img").write_bytes(b"1")
        (b / "disk.img").write_bytes(b"22")
        disks = [
            DiskSource("file", "disk", "vda", str(a / "disk.img")),
            DiskSource("file", "disk", "vdb", str(b / "disk.img")),
        ]
        with patch.object(self.client, "dumpxml", return_value="<domain/>"), patch.object(
            self.client, "disk_sources", return_value=disks
        ):
            self.client.export("AD01", self.dest)

        self.assertEqual((self.dest / "disks" / "disk.img").read_bytes(), b"1")
        self.assertEqual((self.dest / "disks" / "vdb-disk.img").read_bytes(), b"22")

    def test_missing_disk_raises(self):
        disks = [DiskSource("file", "disk", "vda", str(self.images / "gone.qcow2"))]
        with patch.object(self.client, "dumpxml", return_value="<domain/>"), patch.object(
            self.client, "disk_sources", return_value=disks
        ):
            with self.assertRaises(OSError):
                self.client.export("AD01", self.dest)

    def test_xml_filename_is_sanitized(self):
        with patch.object(self.client, "dumpxml", return_value="<domain/>"), patch.object(
            self.client, "disk_sources", return_value=[]
        ):
            self.client.export("web 01/../x", self.dest)

        self.assertTrue((self.dest / "web-01-..-x.xml").is_file())
        self.assertEqual(sorted(p.name for p in self.dest.iterdir()), sorted(["disks", MANIFEST_NAME, "web-01-..-x.xml"]))
        on_disk = json.loads((self.dest / MANIFEST_NAME).read_text(encoding="utf-8"))
        self.assertEqual(on_disk["files"][0]["path"], "web-01-..-x.xml")
        self.assertEqual(on_disk["vm"], "web 01/../x")
