import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"

INSECURE_DEV_SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    """Process-wide configuration, assembled once at startup and passed to components"""

    database_url: str = "sqlite:///./marketplace.db"

    # Shared secret the scheduler sends as a bearer token. None disables the check.
    cron_secret: Optional[str] = None

    secret_key: str = INSECURE_DEV_SECRET_KEY
    jwt_algorithm: str = "HS256"

    redis_url: Optional[str] = None
    rate_limit_enabled: bool = True
    csrf_enabled: bool = True
    allowed_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])

    # Connection pool (ignored for SQLite)
    db_pool_size: int = 20
    db_max_overflow: int = 30
    db_pool_timeout: int = 30
    db_pool_recycle: int = 300
    db_slow_query_threshold: float = 1.0

    # Role whose members are re-evaluated by the verification pass
    verification_role: str = "COMPANY"


def load_settings() -> Settings:
    """Read configuration from the environment (and .env) into a Settings object"""
    load_dotenv(dotenv_path=env_path)

    secret_key = os.getenv("SECRET_KEY")
    if not secret_key:
        warnings.warn(
            "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION",
            RuntimeWarning,
            stacklevel=2,
        )
        secret_key = INSECURE_DEV_SECRET_KEY

    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./marketplace.db"),
        cron_secret=os.getenv("CRON_SECRET") or None,
        secret_key=secret_key,
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        redis_url=os.getenv("REDIS_URL") or None,
        rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", "true"),
        # CSRF is ENABLED by default; set CSRF_ENABLED=false only for development/testing
        csrf_enabled=_env_bool("CSRF_ENABLED", "true"),
        allowed_origins=os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(","),
        db_pool_size=int(os.getenv("DB_POOL_SIZE", "20")),
        db_max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "30")),
        db_pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "30")),
        db_pool_recycle=int(os.getenv("DB_POOL_RECYCLE", "300")),
        db_slow_query_threshold=float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0")),
        verification_role=os.getenv("VERIFICATION_ROLE", "COMPANY"),
    )
