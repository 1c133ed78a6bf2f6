# SPDX-License-Identifier: LGPL-3.0-or-later
# vmcycle/libvirt/__init__.py
from .libvirt_utils import STATE_RUNNING, STATE_SHUT_OFF, sanitize_name
from .virsh_client import DiskSource, ExportManifest, VirshClient

__all__ = ["STATE_RUNNING", "STATE_SHUT_OFF", "sanitize_name", "DiskSource", "ExportManifest", "VirshClient"]
