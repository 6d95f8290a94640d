import os
from typing import List

from pydantic import BaseModel, Field


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    storage: str = "sqlite"  # sqlite | memory
    db_path: str = "tips.db"
    rounding_minutes: int = Field(default=15, ge=0)
    seed_defaults: bool = True
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]  # React dev servers
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from TIPSPLIT_* environment variables."""
        origins = os.getenv("TIPSPLIT_CORS_ORIGINS")
        values = {
            "storage": os.getenv("TIPSPLIT_STORAGE", "sqlite").lower(),
            "db_path": os.getenv("TIPSPLIT_DB_PATH", "tips.db"),
            "rounding_minutes": int(os.getenv("TIPSPLIT_ROUNDING_MINUTES", "15")),
            "seed_defaults": _env_bool("TIPSPLIT_SEED_DEFAULTS", True),
            "log_level": os.getenv("TIPSPLIT_LOG_LEVEL", "INFO").upper(),
        }
        if origins:
            values["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]
        return cls(**values)
