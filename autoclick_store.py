#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""YAML persistence for settings and recorded sequences.

Files (per user):
  $AUTOCLICK_HOME/ or ~/Documents/ or ~/
    autoclick_config.yaml
    autoclick_sequences.yaml

Loading is best-effort: a missing file gives defaults; an unreadable or
malformed file gives defaults too, with a warning and last_error set.
An unreadable sequences file is never overwritten: save_sequences() refuses
until it loads cleanly again.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, List, Optional

import yaml

from autoclick_core import AppConfig, ConfigFormatError, RecordedSequence

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "autoclick_config.yaml"
SEQUENCES_FILE_NAME = "autoclick_sequences.yaml"
HOME_ENV = "AUTOCLICK_HOME"


def default_base_dir() -> Path:
    env = os.environ.get(HOME_ENV)
    if env:
        return Path(env).expanduser()
    docs = Path.home() / "Documents"
    if docs.is_dir():
        return docs
    return Path.home()


class ConfigStore:
    def __init__(self, base_dir: Optional[Path] = None):
        self.base_dir = Path(base_dir) if base_dir is not None else default_base_dir()
        self.last_error: Optional[str] = None
        # set when the sequences file exists but could not be read
        self.sequences_unreadable = False

    @property
    def config_path(self) -> Path:
        return self.base_dir / CONFIG_FILE_NAME

    @property
    def sequences_path(self) -> Path:
        return self.base_dir / SEQUENCES_FILE_NAME

    def _read(self, path: Path) -> Any:
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f)

    def _write(self, path: Path, doc: Any) -> bool:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            with tmp.open("w", encoding="utf-8") as f:
                yaml.safe_dump(doc, f, allow_unicode=True, sort_keys=False)
            os.replace(tmp, path)
        except OSError as e:
            self._fail(f"failed to write {path}: {e}")
            return False
        return True

    def _fail(self, msg: str) -> None:
        self.last_error = msg
        logger.warning(msg)

    def load_config(self) -> AppConfig:
        self.last_error = None
        path = self.config_path
        if not path.exists():
            logger.info("config file %s does not exist; using defaults", path)
            return AppConfig()
        try:
            doc = self._read(path)
            if doc is None:
                return AppConfig()
            return AppConfig.from_dict(doc)
        except (OSError, UnicodeDecodeError, yaml.YAMLError, ConfigFormatError) as e:
            self._fail(f"failed to load config from {path}: {e}")
            return AppConfig()

    def save_config(self, config: AppConfig) -> bool:
        self.last_error = None
        return self._write(self.config_path, config.to_dict())

    def load_sequences(self) -> List[RecordedSequence]:
        path = self.sequences_path
        self.sequences_unreadable = False
        if not path.exists():
            return []
        try:
            doc = self._read(path) or {}
            if not isinstance(doc, dict):
                raise ConfigFormatError("sequences file must be a mapping")
            items = doc.get("sequences") or []
            if not isinstance(items, list):
                raise ConfigFormatError("sequences must be a list")
            return [RecordedSequence.from_dict(s, f"sequences[{i}]") for i, s in enumerate(items)]
        except (OSError, UnicodeDecodeError, yaml.YAMLError, ConfigFormatError) as e:
            self._fail(f"failed to load sequences from {path}: {e}")
            self.sequences_unreadable = True
            return []

    def save_sequences(self, sequences: List[RecordedSequence]) -> bool:
        """Write all sequences; refuses while the file on disk is unreadable."""
        if self.sequences_unreadable:
            self._fail(f"not overwriting unreadable {self.sequences_path}; fix or move it first")
            return False
        doc = {"sequences": [s.to_dict() for s in sequences]}
        return self._write(self.sequences_path, doc)
