from __future__ import annotations

import copy
import errno
import os
import threading
from pathlib import Path
from typing import Any

import yaml

from aion.models import AppConfig, default_app_config


CONFIG_SECTIONS = ("ai", "calendar", "layout", "workouts")
MASKED_FIELDS = (("ai", "api_key"),)
MASK = "***"


def _deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _check_sections(payload: dict[str, Any]) -> None:
    unknown = sorted(str(key) for key in payload if key not in CONFIG_SECTIONS)
    if unknown:
        raise ValueError(f"unknown config section(s): {', '.join(unknown)}")
    for key, value in payload.items():
        if not isinstance(value, dict):
            raise ValueError(f"config section '{key}' must be a mapping")


class ConfigManager:
    """YAML-backed AppConfig; sections are ai, calendar, layout and workouts."""

    def __init__(self, config_path: str | os.PathLike[str]) -> None:
        self.config_path = Path(config_path)
        self._lock = threading.RLock()
        if not self.config_path.exists():
            self.save(default_app_config())

    def load(self) -> AppConfig:
        with self._lock:
            with self.config_path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
            return AppConfig.from_dict(data)

    def _write_yaml(self, config_dict: dict[str, Any], path: Path) -> None:
        with path.open("w", encoding="utf-8") as handle:
            yaml.safe_dump(config_dict, handle, sort_keys=False, allow_unicode=True, default_flow_style=False)

    def save(self, config: AppConfig) -> None:
        with self._lock:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            config_dict = config.to_dict()
            tmp_path = self.config_path.with_suffix(self.config_path.suffix + ".tmp")
            self._write_yaml(config_dict, tmp_path)
            try:
                tmp_path.replace(self.config_path)
            except OSError as exc:
                # Bind-mounted single files in containers cannot be atomically replaced.
                if exc.errno != errno.EBUSY:
                    raise
                self._write_yaml(config_dict, self.config_path)
                tmp_path.unlink(missing_ok=True)

    def update(self, payload: dict[str, Any]) -> AppConfig:
        """Merge a partial config; unknown sections raise ValueError."""
        _check_sections(payload)
        with self._lock:
            merged = _deep_merge(self.load().to_dict(), payload)
            config = AppConfig.from_dict(merged)
            self.save(config)
            return config

    def masked(self) -> dict[str, Any]:
        config = self.load().to_dict()
        for section, key in MASKED_FIELDS:
            if config.get(section, {}).get(key):
                config[section][key] = MASK
        return config
