# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmcycle/core/utils.py
from __future__ import annotations

import json
import logging
import os
import shlex
import subprocess
from pathlib import Path
from typing import Any, Iterable, List, Optional

from rich.progress import (
    BarColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from .exceptions import Fatal
from .logger import is_tty

_COPY_CHUNK = 4 * 1024 * 1024


class U:
    @staticmethod
    def die(logger: logging.Logger, msg: str, code: int = 1) -> None:
        logger.error(msg)
        raise Fatal(code, msg)

    @staticmethod
    def ensure_dir(p: Path) -> None:
        p.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def which(prog: str) -> Optional[str]:
        from shutil import which as _which
        return _which(prog)

    @staticmethod
    def json_dump(obj: Any) -> str:
        try:
            return json.dumps(obj, indent=2, sort_keys=True, default=str)
        except Exception:
            return repr(obj)

    @staticmethod
    def human_bytes(n: Optional[int]) -> str:
        if n is None:
            return "unknown"
        x = float(n)
        for unit in ["B", "KiB", "MiB", "GiB", "TiB", "PiB"]:
            if x < 1024 or unit == "PiB":
                return f"{x:.2f} {unit}" if unit != "B" else f"{int(x)} {unit}"
            x /= 1024
        return f"{n} B"

    @staticmethod
    def _pretty_cmd(cmd: List[str]) -> str:
        return " ".join(shlex.quote(x) for x in cmd)

    @staticmethod
    def run_cmd(
        logger: logging.Logger,
        cmd: List[str],
        *,
        check: bool = True,
        capture: bool = False,
        timeout: Optional[int] = None,
    ) -> subprocess.CompletedProcess:
        """
        Run a command (text mode). Subprocess exceptions are logged and re-raised.

        - capture=True uses subprocess.run(capture_output=True, text=True)
        """
        pretty = U._pretty_cmd(cmd)
        logger.debug("Running: %s", pretty)

        try:
            return subprocess.run(cmd, check=check, capture_output=capture, text=True, timeout=timeout)

        except subprocess.CalledProcessError as e:
            stdout = (e.stdout or e.output or "").strip()
            stderr = (e.stderr or "").strip()
            if stdout or stderr:
                logger.debug(
                    "Command failed: %s%s%s",
                    pretty,
                    f"\nstdout:\n{stdout}" if stdout else "",
                    f"\nstderr:\n{stderr}" if stderr else "",
                )
            else:
                logger.debug("Command failed: %s (no output)", pretty)
            raise

        except subprocess.TimeoutExpired:
            logger.error("Command timed out: %s (timeout=%ss)", pretty, timeout)
            raise

        except OSError as e:
            logger.error("Command error: %s (%s)", pretty, e)
            raise

    @staticmethod
    def is_root() -> bool:
        return os.geteuid() == 0

    @staticmethod
    def copy_file(src: Path, dst: Path, *, label: Optional[str] = None) -> int:
        """
        Copy `src` to `dst` in chunks and return the number of bytes written.

        Shows a Rich progress bar when stderr is a TTY; quiet otherwise so
        transcripts and CI logs stay line-based.
        """
        total_size = src.stat().st_size
        written = 0

        def _iter_blocks(f) -> Iterable[bytes]:
            while True:
                b = f.read(_COPY_CHUNK)
                if not b:
                    break
                yield b

        with open(src, "rb") as fin, open(dst, "xb") as fout:
            if not is_tty():
                for blk in _iter_blocks(fin):
                    fout.write(blk)
                    written += len(blk)
            else:
                with Progress(
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                    TransferSpeedColumn(),
                    TimeElapsedColumn(),
                    TimeRemainingColumn(),
                ) as progress:
                    task = progress.add_task(label or f"Copying {src.name}", total=total_size)
                    for blk in _iter_blocks(fin):
                        fout.write(blk)
                        written += len(blk)
                        progress.update(task, advance=len(blk))
            fout.flush()
            os.fsync(fout.fileno())
        return written
