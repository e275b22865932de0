import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        user_id: Optional[int],
        history_limit: int,
        maintenance_hour: int,
        maintenance_minute: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.user_id = user_id
        self.history_limit = history_limit
        self.maintenance_hour = maintenance_hour
        self.maintenance_minute = maintenance_minute


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("BUDGET_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "budget.db"
    database_url = os.getenv("BUDGET_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("BUDGET_TIMEZONE", "Europe/Berlin")
    raw_user = os.getenv("BUDGET_USER_ID")
    user_id = int(raw_user) if raw_user else None
    history_limit = int(os.getenv("BUDGET_HISTORY_LIMIT", "12"))
    maintenance_hour = int(os.getenv("BUDGET_MAINTENANCE_HOUR", "0"))
    maintenance_minute = int(os.getenv("BUDGET_MAINTENANCE_MINUTE", "5"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        user_id=user_id,
        history_limit=history_limit,
        maintenance_hour=maintenance_hour,
        maintenance_minute=maintenance_minute,
    )
