import tomllib
import shutil
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv
import os

CONFIG_DIR = Path.home() / ".mathsmayhem"
CONFIG_PATH = CONFIG_DIR / "config.toml"
PROJECT_CONFIG_EXAMPLE = Path(__file__).parent / "config.toml"


def _as_bool(value: Any) -> bool:
    return str(value).lower() == "true"


def load_config() -> Dict[str, Any]:
    """Load config from ~/.mathsmayhem/config.toml, copy example if missing, load .env overrides."""
    load_dotenv()  # Load .env for overrides (e.g., OPENAI_API_KEY, SYNC_URL)
    if not CONFIG_PATH.exists():
        CONFIG_DIR.mkdir(exist_ok=True)
        shutil.copy(PROJECT_CONFIG_EXAMPLE, CONFIG_PATH)
    with open(CONFIG_PATH, "rb") as f:
        config = tomllib.load(f)
    # Support legacy flat keys while preferring nested tables
    legacy_backup = {
        "keep": config.get("backup_keep"),
        "interval_hours": config.get("backup_interval_hours"),
    }
    legacy_sync = {
        "url": config.get("sync_url"),
        "timeout": config.get("sync_timeout"),
    }

    store_cfg = config.get("store", {})
    config["store"] = {
        "backend": os.getenv("MATHSMAYHEM_STORE_BACKEND", store_cfg.get("backend", "sqlite")),
        "path": os.getenv("MATHSMAYHEM_STORE_PATH", store_cfg.get("path", str(CONFIG_DIR / "store.db"))),
        "quota_bytes": int(os.getenv("MATHSMAYHEM_STORE_QUOTA", store_cfg.get("quota_bytes", 5 * 1024 * 1024))),
    }
    backup_cfg = config.get("backup", {})
    config["backup"] = {
        "keep": int(os.getenv("BACKUP_KEEP", backup_cfg.get("keep", legacy_backup.get("keep") or 5))),
        "interval_hours": float(os.getenv(
            "BACKUP_INTERVAL_HOURS",
            backup_cfg.get("interval_hours", legacy_backup.get("interval_hours") or 24),
        )),
        "large_backup_threshold": int(os.getenv(
            "BACKUP_LARGE_THRESHOLD",
            backup_cfg.get("large_backup_threshold", 1024 * 1024),
        )),
        "directory": os.getenv("BACKUP_DIR", backup_cfg.get("directory", str(CONFIG_DIR / "backups"))),
    }
    sync_cfg = config.get("sync", {})
    config["sync"] = {
        "url": os.getenv("SYNC_URL", sync_cfg.get("url", legacy_sync.get("url") or "")) or None,
        "timeout": float(os.getenv("SYNC_TIMEOUT", sync_cfg.get("timeout", legacy_sync.get("timeout") or 10))),
        "interval_seconds": int(os.getenv("SYNC_INTERVAL_SECONDS", sync_cfg.get("interval_seconds", 120))),
    }
    migration_cfg = config.get("migration", {})
    config["migration"] = {
        "migrate_without_user": _as_bool(os.getenv(
            "MIGRATE_WITHOUT_USER",
            migration_cfg.get("migrate_without_user", False),
        )),
    }
    auth_cfg = config.get("auth", {})
    config["auth"] = {
        "session_minutes": int(os.getenv("SESSION_MINUTES", auth_cfg.get("session_minutes", 60 * 24))),
        "session_secret": os.getenv("SESSION_SECRET", auth_cfg.get("session_secret", "")),
    }
    tutor_cfg = config.get("tutor", {})
    config["tutor"] = {
        "api_key": os.getenv("OPENAI_API_KEY", tutor_cfg.get("api_key", "")) or None,
        "model": os.getenv("OPENAI_MODEL", tutor_cfg.get("model", "gpt-4")),
        "practice_model": os.getenv("OPENAI_PRACTICE_MODEL", tutor_cfg.get("practice_model", "gpt-3.5-turbo")),
        "timeout": float(os.getenv("OPENAI_TIMEOUT", tutor_cfg.get("timeout", 30))),
    }
    logging_cfg = config.get("logging", {})
    config["logging"] = {
        "level": os.getenv("LOG_LEVEL", logging_cfg.get("level", "INFO")).upper(),
    }
    return config


def get_config_value(section: str, key: str, default: Optional[Any] = None) -> Any:
    """Get nested config value, e.g., get_config_value('backup', 'keep')."""
    config = load_config()
    value = config.get(section, {}).get(key, default)
    return value
