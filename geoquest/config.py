# geoquest/config.py
import os


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    return float(raw) if raw else default


# Если у тебя psycopg3 (psycopg[binary]): оставляй так.
DEFAULT_DSN = "postgresql+psycopg://postgres:postgres@db:5432/postgres"
DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DSN)

# Единственный админский секрет процесса. Пустое значение = все админ-операции отклоняются.
ADMIN_KEY = os.getenv("ADMIN_KEY", "").strip()

FIND_RADIUS_M = _env_float("FIND_RADIUS_M", 5.0)
PLACEMENT_RADIUS_M = _env_float("PLACEMENT_RADIUS_M", 30.0)
DEFAULT_MIN_POINTS = int(os.getenv("DEFAULT_MIN_POINTS") or 3)
SAVE_RETRIES = int(os.getenv("SAVE_RETRIES") or 3)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
ADMIN_UI = _env_bool("ADMIN_UI", "true")
