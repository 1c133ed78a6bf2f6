# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmcycle/__init__.py
"""
vmcycle - sequential maintenance for libvirt VMs

For each VM in a fixed list: graceful shutdown (forced on timeout), export of
the domain XML and disks to a dated backup directory, restart, and a
reachability gate before moving to the next VM. Every VM run is recorded in an
append-only audit log.

Usage as a library:

    from vmcycle import MaintenanceSettings, Orchestrator
    from vmcycle.core.logger import Log

    logger = Log.setup(verbose=1)
    settings = MaintenanceSettings(vms=("web01", "db01"), backup_root=Path("/srv/backups"))
    rc = Orchestrator(logger, settings).run()
"""

__version__ = "0.1.0"

from .config.settings import MaintenanceSettings
from .orchestrator import Orchestrator

__all__ = [
    "__version__",
    "MaintenanceSettings",
    "Orchestrator",
]
