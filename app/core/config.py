import os
import logging
from pydantic import BaseModel, Field
from typing import List
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class LeaveSettings(BaseModel):
    # Python weekday numbers, Monday == 0
    weekend_days: List[int] = Field(
        default_factory=lambda: [
            int(d) for d in os.getenv("LEAVE_WEEKEND_DAYS", "5,6").split(",") if d.strip()
        ]
    )
    exclude_public_holidays: bool = Field(default=_env_bool("LEAVE_EXCLUDE_PUBLIC_HOLIDAYS", "true"))
    carry_forward_policy: str = Field(default=os.getenv("LEAVE_CARRY_FORWARD_POLICY", "none"))


class Config(BaseModel):
    app_name: str = "HR Ledger & Payroll"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./database.db")
    storage_retry_attempts: int = int(os.getenv("STORAGE_RETRY_ATTEMPTS", "3"))

    # Domain policies
    leave: LeaveSettings = LeaveSettings()
    seed_default_data: bool = _env_bool("SEED_DEFAULT_DATA", "true")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"

    # Comma-separated CORS origins
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if o.strip()
        ]
    )

    rate_limit_enabled: bool = _env_bool("RATE_LIMIT_ENABLED", "true")
    rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))


settings = Config()

_logger = logging.getLogger(__name__)
if settings.leave.carry_forward_policy not in ("none", "leave_type"):
    raise RuntimeError(
        f"FATAL: Unknown LEAVE_CARRY_FORWARD_POLICY '{settings.leave.carry_forward_policy}'. "
        f"Expected one of: none, leave_type."
    )
if settings.environment != "development" and settings.database_url.startswith("sqlite:///./"):
    _logger.warning("Using the local SQLite database outside development.")
