# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the exception hierarchy."""
from __future__ import annotations

import pytest

from vmcycle.core.exceptions import (
    EXIT_NOT_ELEVATED,
    EXIT_PLATFORM_UNAVAILABLE,
    ExportFailure,
    Fatal,
    NotElevated,
    PlatformUnavailable,
    VmcycleError,
)


@pytest.mark.unit
class TestExceptionHierarchy:
    """Test exception class hierarchy and basic functionality."""

    def test_base_exception_creation(self):
        err = VmcycleError(code=1, msg="Test error")

        assert err.code == 1
        assert err.msg == "Test error"
        assert err.cause is None
        assert err.context == {}

    def test_fatal_positional_args(self):
        err = Fatal(2, "Fatal error")

        assert isinstance(err, VmcycleError)
        assert err.code == 2
        assert str(err) == "Fatal error"

    def test_preflight_errors_carry_their_exit_codes(self):
        assert PlatformUnavailable(msg="no libvirt").code == EXIT_PLATFORM_UNAVAILABLE
        assert NotElevated(msg="not root").code == EXIT_NOT_ELEVATED
        assert isinstance(NotElevated(msg="x"), Fatal)

    def test_explicit_code_wins_over_default(self):
        assert PlatformUnavailable(code=9, msg="x").code == 9

    def test_exit_code_is_clamped(self):
        assert VmcycleError(code=1000, msg="x").code == 255
        assert VmcycleError(code=-3, msg="x").code == 1
        assert VmcycleError(code="nope", msg="x").code == 1  # type: ignore[arg-type]

    def test_message_is_one_line(self):
        err = ExportFailure(msg="copy failed:\n  disk vda\n  no space")
        assert err.msg == "copy failed: disk vda no space"

    def test_exception_with_context(self):
        err = VmcycleError(code=1, msg="Error").with_context(vm="AD01", phase="Exporting")

        assert err.context["vm"] == "AD01"
        assert err.to_dict()["context"] == {"vm": "AD01", "phase": "Exporting"}

