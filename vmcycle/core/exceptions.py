# SPDX-License-Identifier: LGPL-3.0-or-later
# vmcycle/core/exceptions.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


def _safe_int(x: Any, default: int = 1) -> int:
    try:
        return int(x)
    except Exception:
        return default


def _clamp_exit_code(code: int) -> int:
    # Exit codes are typically 0..255; keep it safe and predictable.
    if code < 0:
        return 1
    if code > 255:
        return 255
    return code


def _one_line(s: str, limit: int = 600) -> str:
    s = (s or "").strip().replace("\r", " ").replace("\n", " ")
    s = " ".join(s.split())
    return s if len(s) <= limit else (s[: limit - 3] + "...")


def _format_context_compact(ctx: Dict[str, Any]) -> str:
    return ", ".join(f"{k}={ctx.get(k)!r}" for k in sorted(ctx.keys()))


# Exit codes used by the CLI.
EXIT_VM_FAILED = 2
EXIT_PLATFORM_UNAVAILABLE = 3
EXIT_NOT_ELEVATED = 4
EXIT_QUEUE_HALTED = 5


@dataclass(eq=False)
class VmcycleError(Exception):
    """
    Base project error with:
      - stable fields for reporting/JSON
      - readable __str__ (what users see)
      - safe code handling (never crashes on int())
    """
    code: int = 1
    msg: str = "error"
    cause: Optional[BaseException] = None
    context: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        self.code = _clamp_exit_code(_safe_int(self.code, default=1))
        self.msg = _one_line(self.msg) or self.__class__.__name__
        if self.context is None:
            self.context = {}
        super().__init__(self.msg)
        # Some tooling inspects Exception.args directly.
        self.args = (self.msg,)

    def with_context(self, **ctx: Any) -> "VmcycleError":
        if self.context is None:
            self.context = {}
        self.context.update(ctx)
        return self

    def user_message(self, *, include_context: bool = False, include_cause: bool = False) -> str:
        """
        Human-friendly message for CLI output/logs.
        """
        parts = [self.msg or self.__class__.__name__]

        if include_context and self.context:
            parts.append(f"[{_one_line(_format_context_compact(self.context), limit=600)}]")

        if include_cause and self.cause is not None:
            parts.append(f"(cause: {type(self.cause).__name__}: {_one_line(str(self.cause))})")

        return " ".join(parts)

    def __str__(self) -> str:
        return self.user_message(include_context=False, include_cause=False)

    def to_dict(self, *, include_cause: bool = False) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "type": self.__class__.__name__,
            "code": self.code,
            "message": self.msg,
            "context": self.context or {},
        }
        if include_cause and self.cause is not None:
            d["cause"] = {"type": type(self.cause).__name__, "message": _one_line(str(self.cause))}
        return d


class Fatal(VmcycleError):
    """
    User-facing fatal error (exit code should be honored by top-level main()).
    """
    pass


class PlatformUnavailable(Fatal):
    """libvirt management interface cannot be reached (pre-flight)."""

    def __post_init__(self) -> None:
        if self.code == 1:
            self.code = EXIT_PLATFORM_UNAVAILABLE
        super().__post_init__()


class NotElevated(Fatal):
    """Invoking user is not root (pre-flight)."""

    def __post_init__(self) -> None:
        if self.code == 1:
            self.code = EXIT_NOT_ELEVATED
        super().__post_init__()


class PlatformCommandError(VmcycleError):
    """
    A virsh invocation failed.
    Carries the command's stderr (one-lined) in msg.
    """
    pass


class VmNotFound(VmcycleError):
    pass


class InsufficientSpace(VmcycleError):
    pass


class ShutdownTimeout(VmcycleError):
    """Graceful shutdown did not finish in time; recovered by forced power-off."""
    pass


class ExportFailure(VmcycleError):
    pass


class StartFailure(VmcycleError):
    pass


class HealthCheckFailure(VmcycleError):
    pass
