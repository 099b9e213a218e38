from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys

from invsys.domain.errors import ValidationError


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    db_path: Path
    logs_dir: Path


@dataclass(frozen=True)
class Settings:
    db_path: Optional[Path] = None
    low_stock_threshold: int = 10
    lock_timeout_seconds: float = 5.0


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "InventorySystem", db_override: Path | str | None = None) -> AppPaths:
    if sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    db = Path(db_override) if db_override else base / "inventory.db"
    logs = db.parent / "logs"

    db.parent.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=db.parent, db_path=db, logs_dir=logs)


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if env is None else env

    db_raw = env.get("INVSYS_DB_PATH", "").strip()
    threshold_raw = env.get("INVSYS_LOW_STOCK_THRESHOLD", "").strip()
    timeout_raw = env.get("INVSYS_LOCK_TIMEOUT", "").strip()

    try:
        threshold = int(threshold_raw) if threshold_raw else Settings.low_stock_threshold
    except ValueError as e:
        raise ValidationError(f"INVSYS_LOW_STOCK_THRESHOLD must be an integer. Received: {threshold_raw}") from e
    if threshold < 0:
        raise ValidationError("INVSYS_LOW_STOCK_THRESHOLD must be >= 0.")

    try:
        timeout = float(timeout_raw) if timeout_raw else Settings.lock_timeout_seconds
    except ValueError as e:
        raise ValidationError(f"INVSYS_LOCK_TIMEOUT must be a number. Received: {timeout_raw}") from e
    if timeout <= 0:
        raise ValidationError("INVSYS_LOCK_TIMEOUT must be > 0.")

    return Settings(
        db_path=Path(db_raw) if db_raw else None,
        low_stock_threshold=threshold,
        lock_timeout_seconds=timeout,
    )
