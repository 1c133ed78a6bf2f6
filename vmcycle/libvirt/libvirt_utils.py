# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmcycle/libvirt/libvirt_utils.py
"""Shared libvirt helpers: name sanitizing and domain XML lookups."""
from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from typing import Optional

_SAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._+-]+")

# `virsh domstate` output (lower-cased).
STATE_RUNNING = "running"
STATE_SHUT_OFF = "shut off"


def sanitize_name(s: str) -> str:
    """Sanitize name for libvirt-friendly identifiers and filenames.

    Behavior:
        - Keeps: A-Za-z0-9._+-
        - Replaces everything else with '-'
        - Strips '-' from edges
        - Returns 'vm' if result is empty, '.' or '..'

    Example:
        >>> sanitize_name("My VM (test)")
        'My-VM-test'
        >>> sanitize_name("   ")
        'vm'
    """
    s = (s or "").strip()
    s = _SAFE_NAME_RE.sub("-", s).strip("-")
    if s in (".", ".."):
        return "vm"
    return s or "vm"


def nvram_path_from_xml(xml_text: str) -> Optional[str]:
    """Return the <os><nvram> file of a domain, if it declares one."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError:
        return None
    node = root.find("./os/nvram")
    if node is None:
        return None
    text = (node.text or "").strip()
    if text:
        return text
    # libvirt >= 8.5 may put the path on a <source file=...> child instead.
    src = node.find("source")
    if src is not None and src.get("file"):
        return src.get("file")
    return None


__all__ = [
    "STATE_RUNNING",
    "STATE_SHUT_OFF",
    "sanitize_name",
    "nvram_path_from_xml",
]
