# SPDX-License-Identifier: LGPL-3.0-or-later
# vmcycle/core/__init__.py
from .exceptions import Fatal, VmcycleError
from .logger import Log

__all__ = ["Fatal", "VmcycleError", "Log"]
