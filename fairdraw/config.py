import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .db.utils import resolve_sqlite_url

# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[1]

DEFAULT_DB_URL = "sqlite:///./dev.db"
DEFAULT_MAX_HISTORY_RECORDS = 500


def _positive_int(name: str, raw: Optional[str], default: int) -> int:
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable '{name}' must be an integer") from exc
    if value <= 0:
        raise ValueError(f"Environment variable '{name}' must be positive")
    return value


@dataclass(frozen=True)
class Settings:
    """Runtime configuration read from the environment.

    Attributes
    ----------
    db_url : str
        SQLAlchemy URL. Relative SQLite paths are resolved against the project
        root.
    max_history_records : int
        Selection records kept per classroom; older ones are pruned.
    plugin_file : Optional[Path]
        JSON file holding strategy plugin configs, if any.
    """

    db_url: str
    max_history_records: int = DEFAULT_MAX_HISTORY_RECORDS
    plugin_file: Optional[Path] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``environ`` (defaults to ``os.environ``)."""
        env = os.environ if environ is None else environ
        plugin_file = env.get("FAIRDRAW_PLUGIN_FILE") or None
        return cls(
            db_url=resolve_sqlite_url(env.get("DB_URL") or DEFAULT_DB_URL, ROOT_DIR),
            max_history_records=_positive_int(
                "FAIRDRAW_MAX_HISTORY_RECORDS",
                env.get("FAIRDRAW_MAX_HISTORY_RECORDS"),
                DEFAULT_MAX_HISTORY_RECORDS,
            ),
            plugin_file=Path(plugin_file) if plugin_file else None,
        )


def get_settings() -> Settings:
    """Load ``.env`` (without overriding the environment) and return settings."""
    load_dotenv()
    return Settings.from_env()


__all__ = ["DEFAULT_DB_URL", "DEFAULT_MAX_HISTORY_RECORDS", "ROOT_DIR", "Settings", "get_settings"]
