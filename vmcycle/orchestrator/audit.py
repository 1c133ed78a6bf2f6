# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmcycle/orchestrator/audit.py
"""
Append-only key=value audit log.

One line per VM run:

    timestamp=… host=… user=… vm=… outcome=… exportPath=… start=… end=… [reason=…] [estimatedBytes=…]

and one reduced line when the health gate halts the queue:

    timestamp=… host=… user=… vm=… message=…

Each line is a single os.write() on an O_APPEND descriptor followed by fsync,
so readers tailing the file never see a partial line from this writer.
"""
from __future__ import annotations

import datetime as _dt
import getpass
import os
import re
import shlex
import socket
from collections import deque
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence, Tuple

from .models import VmRunRecord, now

_SAFE_VALUE_RE = re.compile(r"^[A-Za-z0-9._:/+@%,()-]+$")


def _ts(dt: Optional[_dt.datetime]) -> Optional[str]:
    return dt.isoformat(timespec="seconds") if dt is not None else None


def _quote(v: Any) -> str:
    if v is None:
        return "-"
    s = str(v).replace("\r", " ").replace("\n", " ")
    if _SAFE_VALUE_RE.match(s):
        return s
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


def format_line(fields: Sequence[Tuple[str, Any]]) -> str:
    return " ".join(f"{k}={_quote(v)}" for k, v in fields)


def parse_line(line: str) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for token in shlex.split(line, posix=True):
        k, sep, v = token.partition("=")
        if sep:
            out[k] = v
    return out


def current_identity() -> Tuple[str, str]:
    """(host, user) for audit lines."""
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = str(os.getuid())
    return socket.gethostname(), user


class AuditRecorder:
    def __init__(
        self,
        path: Path,
        *,
        host: Optional[str] = None,
        user: Optional[str] = None,
        clock: Callable[[], _dt.datetime] = now,
    ):
        self.path = Path(path)
        default_host, default_user = current_identity()
        self.host = host or default_host
        self.user = user or default_user
        self._clock = clock
        self._fd: Optional[int] = None

    # ------------------------------------------------------------------
    # Resource lifetime
    # ------------------------------------------------------------------

    def open(self) -> "AuditRecorder":
        if self._fd is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fd = os.open(str(self.path), os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o640)
        return self

    def close(self) -> None:
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None

    def __enter__(self) -> "AuditRecorder":
        return self.open()

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _write(self, fields: Sequence[Tuple[str, Any]]) -> str:
        if self._fd is None:
            raise RuntimeError(f"audit log {self.path} is not open")
        line = format_line(fields)
        data = (line + "\n").encode("utf-8")
        view = memoryview(data)
        while view:
            n = os.write(self._fd, view)
            view = view[n:]
        os.fsync(self._fd)
        return line

    def append(self, record: VmRunRecord) -> str:
        if not record.is_final:
            raise ValueError(f"audit record for {record.vm} has no outcome yet")

        fields: List[Tuple[str, Any]] = [
            ("timestamp", _ts(self._clock())),
            ("host", record.host),
            ("user", record.user),
            ("vm", record.vm),
            ("outcome", record.outcome.value),  # type: ignore[union-attr]
            ("exportPath", record.export_path),
            ("start", _ts(record.started_at)),
            ("end", _ts(record.finished_at)),
        ]
        if record.reason:
            fields.append(("reason", record.reason))
        if record.estimated_bytes is not None:
            fields.append(("estimatedBytes", record.estimated_bytes))
        return self._write(fields)

    def append_abort(self, vm: str, message: str) -> str:
        return self._write(
            [
                ("timestamp", _ts(self._clock())),
                ("host", self.host),
                ("user", self.user),
                ("vm", vm),
                ("message", message),
            ]
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def read_entries(path: Path, limit: Optional[int] = None) -> List[Dict[str, str]]:
        """Parse the audit log; with `limit`, only the last `limit` entries."""
        p = Path(path)
        if not p.exists():
            return []
        tail: Deque[Dict[str, str]] = deque(maxlen=limit)
        with open(p, "r", encoding="utf-8") as f:
            for ln in f:
                ln = ln.strip()
                if ln:
                    tail.append(parse_line(ln))
        return list(tail)
