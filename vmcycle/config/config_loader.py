# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmcycle/config/config_loader.py
from __future__ import annotations

import argparse
import glob
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

import yaml

from ..core.utils import U


class Config:
    """
    YAML/JSON config files feeding argparse defaults.

    Files are merged shallowly in the order given; later files win.
    """

    @staticmethod
    def expand_configs(logger: logging.Logger, configs: List[str]) -> List[Path]:
        out: List[Path] = []
        for raw in configs:
            pattern = str(Path(raw).expanduser())
            matches = sorted(glob.glob(pattern))
            if not matches:
                U.die(logger, f"Config not found: {raw}", 1)
            for m in matches:
                p = Path(m).resolve()
                if p not in out:
                    out.append(p)
        logger.debug("Config files: %s", ", ".join(str(p) for p in out))
        return out

    @staticmethod
    def load_one(logger: logging.Logger, path: Path) -> Dict[str, Any]:
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            U.die(logger, f"Cannot read config {path}: {e}", 1)

        try:
            if path.suffix.lower() == ".json":
                data = json.loads(raw)
            else:
                data = yaml.safe_load(raw)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            U.die(logger, f"Invalid config {path}: {e}", 1)

        if data is None:
            return {}
        if not isinstance(data, dict):
            U.die(logger, f"Config {path}: top-level must be a mapping, got {type(data).__name__}", 1)
        return {str(k).replace("-", "_"): v for k, v in data.items()}

    @staticmethod
    def load_many(logger: logging.Logger, paths: List[Path]) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for p in paths:
            part = Config.load_one(logger, p)
            logger.debug("Loaded %d key(s) from %s", len(part), p)
            merged.update(part)
        return merged

    @staticmethod
    def apply_as_defaults(
        logger: logging.Logger,
        parser: argparse.ArgumentParser,
        conf: Dict[str, Any],
        *,
        skip: Iterable[str] = (),
    ) -> None:
        """
        Push config values into the parser as defaults so explicit CLI flags win.
        Keys with no matching argparse dest are reported and ignored. Keys in
        `skip` are merged by the caller instead (append-style flags would
        otherwise extend the config list rather than replace it).
        """
        known = {a.dest for a in parser._actions}
        skipped = set(skip)
        defaults: Dict[str, Any] = {}
        for k, v in conf.items():
            if k in skipped:
                continue
            if k in known:
                defaults[k] = v
            else:
                logger.warning("Ignoring unknown config key: %s", k)
        if defaults:
            parser.set_defaults(**defaults)
