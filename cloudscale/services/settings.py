"""Persisted settings record (cloud name, upload preset, concurrency)."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ..exceptions import ConfigError
from ..models import clamp_concurrency

logger = logging.getLogger(__name__)

SETTINGS_ENV = "CLOUDSCALE_SETTINGS"
ENV_OVERRIDES = {
    "cloudName": "CLOUDSCALE_CLOUD_NAME",
    "uploadPreset": "CLOUDSCALE_UPLOAD_PRESET",
    "concurrency": "CLOUDSCALE_CONCURRENCY",
}


def default_settings_path() -> Path:
    env_path = os.getenv(SETTINGS_ENV)
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".config" / "cloudscale" / "settings.json"


class SettingsStore:
    """JSON file holding the single settings record."""

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path is not None else default_settings_path()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Dict[str, Any]:
        """Read the stored record; a missing or unreadable file yields ``{}``."""
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as exc:
            logger.warning(f"Ignoring unreadable settings file {self._path}: {exc}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring settings file {self._path}: expected an object")
            return {}
        return data

    def save(self, settings: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Validate and persist settings.

        Raises:
            ConfigError: if the cloud name or upload preset is empty.
        """
        record = {
            "cloudName": str(settings.get("cloudName") or "").strip(),
            "uploadPreset": str(settings.get("uploadPreset") or "").strip(),
            "concurrency": clamp_concurrency(settings.get("concurrency")),
        }
        if not record["cloudName"] or not record["uploadPreset"]:
            raise ConfigError("Fill in Cloud Name and Upload Preset.")

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(record, indent=2), encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"could not write settings file {self._path}: {exc}") from exc

        logger.info(f"Settings saved to {self._path}")
        return record


def resolve_settings(
    stored: Mapping[str, Any],
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Merge stored settings, environment variables and explicit overrides (highest wins)."""
    env = os.environ if env is None else env
    merged: Dict[str, Any] = dict(stored)
    for key, env_name in ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value:
            merged[key] = value
    for key, value in (overrides or {}).items():
        if value is not None and value != "":
            merged[key] = value
    return merged
