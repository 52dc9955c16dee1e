"""Runtime settings read from the environment (and .env, if present)."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    db_path: str = "data/tasks.json"
    host: str = "0.0.0.0"
    port: int = 8080
    environment: str = "production"
    log_level: str = "INFO"
    auto_complete_parent: bool = True
    sort_tasks: bool = True
    sse_keepalive_seconds: float = 30.0

    @property
    def reload(self) -> bool:
        return self.environment == "development"


def load_settings() -> Settings:
    load_dotenv()
    return Settings(
        db_path=os.getenv("TASKS_DB_PATH", "data/tasks.json"),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", 8080)),
        environment=os.getenv("ENVIRONMENT", "production"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        auto_complete_parent=_env_bool("AUTO_COMPLETE_PARENT", True),
        sort_tasks=_env_bool("SORT_TASKS", True),
        sse_keepalive_seconds=float(os.getenv("SSE_KEEPALIVE_SECONDS", 30)),
    )
