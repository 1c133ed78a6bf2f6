# SPDX-License-Identifier: LGPL-3.0-or-later
import unittest

from vmcycle.libvirt.libvirt_utils import nvram_path_from_xml, sanitize_name


class TestSanitizeName(unittest.TestCase):
    def test_keeps_safe_characters(self):
        self.assertEqual(sanitize_name("AD01"), "AD01")
        self.assertEqual(sanitize_name("web_01.prod+a"), "web_01.prod+a")

    def test_replaces_unsafe_characters(self):
        self.assertEqual(sanitize_name("My VM (test)"), "My-VM-test")
        self.assertEqual(sanitize_name("../etc"), "..-etc")

    def test_empty_falls_back(self):
        self.assertEqual(sanitize_name("   "), "vm")
        self.assertEqual(sanitize_name(".."), "vm")


class TestNvramPath(unittest.TestCase):
    def test_text_form(self):
        xml = "<domain><os><nvram>/var/lib/libvirt/qemu/nvram/AD01_VARS.fd</nvram></os></domain>"
        self.assertEqual(nvram_path_from_xml(xml), "/var/lib/libvirt/qemu/nvram/AD01_VARS.fd")

    def test_source_child_form(self):
        xml = "<domain><os><nvram type='file'><source file='/nv/AD01.fd'/></nvram></os></domain>"
        self.assertEqual(nvram_path_from_xml(xml), "/nv/AD01.fd")

    def test_absent_or_broken(self):
        self.assertIsNone(nvram_path_from_xml("<domain><os/></domain>"))
        self.assertIsNone(nvram_path_from_xml("<domain"))
