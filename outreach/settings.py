"""
Runtime settings for the guarded sender, read from config/settings.yaml.

Every key is optional; anything missing falls back to the defaults below.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from outreach.errors import SettingsError

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SETTINGS_FILE = PROJECT_ROOT / "config" / "settings.yaml"
ENV_FILE = PROJECT_ROOT / ".env"


@dataclass(frozen=True)
class SenderSettings:
    rate_limit_seconds: float = 30
    recipient_window_hours: float = 24
    log_dir: Path = PROJECT_ROOT / "logs"
    log_file: str = "email-log.json"
    lockout_file: str = "ABORT_FLAG"
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465
    default_display_name: str = ""

    @property
    def log_path(self) -> Path:
        return self.log_dir / self.log_file

    @property
    def lockout_path(self) -> Path:
        return self.log_dir / self.lockout_file


_COERCE = {
    "rate_limit_seconds": float,
    "recipient_window_hours": float,
    "smtp_port": int,
    "log_file": str,
    "lockout_file": str,
    "smtp_host": str,
    "default_display_name": str,
}


def load_settings(path: Optional[Path] = None) -> SenderSettings:
    """
    Load the ``sender`` section of the settings file.

    Raises SettingsError when the file is not valid YAML or a value has the
    wrong type.
    """
    if path is None:
        path = Path(os.getenv("SEND_EMAIL_SETTINGS", SETTINGS_FILE))
    path = Path(path)
    if not path.exists():
        logger.debug("No settings file at %s; using defaults", path)
        return SenderSettings()

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise SettingsError(path, f"not valid YAML ({exc})") from exc

    if not isinstance(data, dict):
        raise SettingsError(path, "expected a mapping at the top level")
    cfg = data.get("sender") or {}
    if not isinstance(cfg, dict):
        raise SettingsError(path, "the 'sender' section must be a mapping")

    known = {f.name for f in fields(SenderSettings)}
    unknown = set(cfg) - known
    if unknown:
        logger.warning("Ignoring unknown sender settings: %s", ", ".join(sorted(unknown)))

    values = {}
    for key, value in cfg.items():
        if key not in known or value is None:
            continue
        if key == "log_dir":
            log_dir = Path(str(value)).expanduser()
            if not log_dir.is_absolute():
                log_dir = PROJECT_ROOT / log_dir
            values[key] = log_dir
            continue
        try:
            values[key] = _COERCE[key](value)
        except (TypeError, ValueError) as exc:
            raise SettingsError(path, f"{key}: {value!r} is not a valid {_COERCE[key].__name__}") from exc

    for key in ("rate_limit_seconds", "recipient_window_hours"):
        if key in values and values[key] < 0:
            raise SettingsError(path, f"{key} must not be negative")
    return SenderSettings(**values)
