"""Application configuration: loads .env, then overrides from settings.json."""

import json
import os
from pathlib import Path

from dotenv import load_dotenv

# Find the project root (where .env lives)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# Runtime settings file for in-app configuration
_SETTINGS_FILE = _PROJECT_ROOT / "data" / "settings.json"


def _load_settings() -> dict:
    """Load saved runtime settings from JSON file."""
    if _SETTINGS_FILE.exists():
        try:
            return json.loads(_SETTINGS_FILE.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            pass
    return {}


def _save_settings(settings: dict):
    """Persist runtime settings to JSON file."""
    _SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    _SETTINGS_FILE.write_text(
        json.dumps(settings, indent=2), encoding="utf-8"
    )


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


# Load saved settings once at import time
_runtime = _load_settings()


class Config:
    """Central configuration: .env defaults, settings.json overrides."""

    # Paths
    PROJECT_ROOT: Path = _PROJECT_ROOT
    DATABASE_PATH: Path = Path(
        os.getenv("DATABASE_PATH", str(_PROJECT_ROOT / "data" / "fieldstock.db"))
    )
    BACKUP_PATH: Path = Path(
        os.getenv("DATABASE_BACKUP_PATH", str(_PROJECT_ROOT / "data" / "backups"))
    )
    EXPORT_DIRECTORY: str = _runtime.get(
        "export_directory",
        os.getenv("EXPORT_DIRECTORY", str(_PROJECT_ROOT / "data" / "exports")),
    )

    # Ledger store
    BUSY_TIMEOUT: float = float(_runtime.get(
        "busy_timeout",
        os.getenv("BUSY_TIMEOUT", "5.0"),
    ))

    # Stock ledger
    DEFAULT_UNIT_OF_MEASURE: str = _runtime.get(
        "default_unit_of_measure",
        os.getenv("DEFAULT_UNIT_OF_MEASURE", "each"),
    )
    TRANSACTION_HISTORY_LIMIT: int = int(_runtime.get(
        "transaction_history_limit",
        os.getenv("TRANSACTION_HISTORY_LIMIT", "50"),
    ))

    # Job allocations: give stock back when a material is detached from a job
    RESTOCK_ON_REMOVAL: bool = _as_bool(_runtime.get(
        "restock_on_removal",
        os.getenv("RESTOCK_ON_REMOVAL", "true"),
    ))

    # Tools
    MAINTENANCE_HORIZON_DAYS: int = int(_runtime.get(
        "maintenance_horizon_days",
        os.getenv("MAINTENANCE_HORIZON_DAYS", "30"),
    ))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def update_stock_settings(cls, restock_on_removal: bool,
                              unit_of_measure: str, history_limit: int):
        """Update stock ledger defaults at runtime and persist to disk."""
        cls.RESTOCK_ON_REMOVAL = restock_on_removal
        cls.DEFAULT_UNIT_OF_MEASURE = unit_of_measure
        cls.TRANSACTION_HISTORY_LIMIT = history_limit

        settings = _load_settings()
        settings["restock_on_removal"] = restock_on_removal
        settings["default_unit_of_measure"] = unit_of_measure
        settings["transaction_history_limit"] = history_limit
        _save_settings(settings)

    @classmethod
    def update_tool_settings(cls, horizon_days: int):
        """Update the maintenance look-ahead window and persist."""
        cls.MAINTENANCE_HORIZON_DAYS = horizon_days

        settings = _load_settings()
        settings["maintenance_horizon_days"] = horizon_days
        _save_settings(settings)

    @classmethod
    def update_storage_settings(cls, busy_timeout: float, export_dir: str):
        """Update SQLite lock wait and export location, then persist."""
        cls.BUSY_TIMEOUT = busy_timeout
        cls.EXPORT_DIRECTORY = export_dir

        settings = _load_settings()
        settings["busy_timeout"] = busy_timeout
        settings["export_directory"] = export_dir
        _save_settings(settings)
