import math
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        database_url: str,
        session_secret: str,
        default_account_id: Optional[int],
        db_pool_size: int,
        session_max_age_days: int,
        cookie_secure: bool,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.session_secret = session_secret
        self.default_account_id = default_account_id
        self.db_pool_size = db_pool_size
        self.session_max_age_days = session_max_age_days
        self.cookie_secure = cookie_secure
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def parse_account_id(raw: Optional[str]) -> Optional[int]:
    """Return a usable account id from an env value, or None if it is not one."""
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value) or value <= 0 or value != int(value):
        return None
    return int(value)


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "finance.db"
    database_url = os.getenv("FINANCE_DATABASE_URL", f"sqlite:///{default_db}")
    session_secret = os.getenv(
        "FINANCE_SESSION_SECRET",
        "3c0d5b1f6a9e47b2a8f1e6d4c7b9a2e05f8d3c6b1a4e7d0c9b2a5f8e1d4c7b0a",
    )
    default_account_id = parse_account_id(os.getenv("FINANCE_DEFAULT_ACCOUNT_ID"))
    db_pool_size = int(os.getenv("FINANCE_DB_POOL_SIZE", "10"))
    session_max_age_days = int(os.getenv("FINANCE_SESSION_MAX_AGE_DAYS", "7"))
    cookie_secure = _env_flag("FINANCE_COOKIE_SECURE")
    log_level = os.getenv("FINANCE_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        session_secret=session_secret,
        default_account_id=default_account_id,
        db_pool_size=db_pool_size,
        session_max_age_days=session_max_age_days,
        cookie_secure=cookie_secure,
        log_level=log_level,
    )
