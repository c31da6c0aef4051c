from __future__ import annotations

import json
import os
from typing import Any

from .logger import get_logger

_logger = get_logger("settings")


class DispatcherSettings:
    """Dispatcher tuning loaded from an optional JSON file.

    Values never written back; a missing or malformed file means defaults.
    """

    DEFAULTS: dict[str, Any] = {
        "drain_batch_limit": 0,
        "slow_callback_ms": 50.0,
        "worker_name_prefix": "uibind-worker",
        "worker_daemon": True,
        "enforce_ui_affinity": True,
    }

    def __init__(self, settings_path: str | None = None, **overrides: Any):
        self.settings_path = settings_path
        self._settings: dict[str, Any] = {}
        self.load()
        for key, value in overrides.items():
            if key not in self.DEFAULTS:
                raise KeyError(f"unknown dispatcher setting: {key}")
            self._settings[key] = value

    def load(self) -> None:
        self._settings = {}
        if not self.settings_path:
            return
        try:
            if os.path.exists(self.settings_path):
                with open(self.settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    self._settings = {k: v for k, v in data.items() if k in self.DEFAULTS}
                    _logger.debug("settings loaded: %s", self.settings_path)
                else:
                    _logger.warning("settings ignored (not an object): %s", self.settings_path)
        except (OSError, ValueError) as e:
            _logger.warning("settings load failed: %s", e)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def has(self, key: str) -> bool:
        return key in self._settings

    @property
    def data(self) -> dict[str, Any]:
        return {**self.DEFAULTS, **self._settings}

    @property
    def drain_batch_limit(self) -> int:
        try:
            return max(0, int(self.get("drain_batch_limit")))
        except (TypeError, ValueError):
            _logger.warning("invalid drain_batch_limit: %r", self.get("drain_batch_limit"))
            return 0

    @property
    def slow_callback_ms(self) -> float:
        try:
            v = float(self.get("slow_callback_ms"))
        except (TypeError, ValueError):
            _logger.warning("invalid slow_callback_ms: %r", self.get("slow_callback_ms"))
            return float(self.DEFAULTS["slow_callback_ms"])
        return v if v > 0 else float(self.DEFAULTS["slow_callback_ms"])

    @property
    def worker_name_prefix(self) -> str:
        p = str(self.get("worker_name_prefix")).strip()
        return p or str(self.DEFAULTS["worker_name_prefix"])

    @property
    def worker_daemon(self) -> bool:
        return bool(self.get("worker_daemon"))

    @property
    def enforce_ui_affinity(self) -> bool:
        return bool(self.get("enforce_ui_affinity"))
