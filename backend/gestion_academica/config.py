from pydantic import BaseModel, Field
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


_ROOT_DIR = Path(__file__).resolve().parents[2]
load_dotenv(_ROOT_DIR / ".env")
load_dotenv()  # fallback al directorio de trabajo actual


def _normalize_env(value: Optional[str], default: str) -> str:
    if value is None:
        return default
    cleaned = value.strip().lower()
    return cleaned or default


def _resolve_access_token_expiry() -> Optional[int]:
    raw = os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES")
    if raw is None or not raw.strip():
        return None
    try:
        minutes = int(raw)
    except ValueError:
        return None
    return minutes if minutes > 0 else None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return Decimal(default)
    try:
        return Decimal(raw.strip())
    except InvalidOperation:
        return Decimal(default)


class RulesSettings(BaseModel):
    """Constantes de la política académica (escala vigesimal)."""

    passing_grade: Decimal = Decimal("11")
    min_grade: Decimal = Decimal("0")
    max_grade: Decimal = Decimal("20")
    practicum_min_credits: int = 140
    attendance_alert_threshold: Decimal = Decimal("70")
    max_academic_cycle: int = 10


def _load_rules_settings() -> RulesSettings:
    return RulesSettings(
        passing_grade=_env_decimal("RULES_PASSING_GRADE", "11"),
        min_grade=_env_decimal("RULES_MIN_GRADE", "0"),
        max_grade=_env_decimal("RULES_MAX_GRADE", "20"),
        practicum_min_credits=_env_int("RULES_PRACTICUM_MIN_CREDITS", 140),
        attendance_alert_threshold=_env_decimal("RULES_ATTENDANCE_ALERT_THRESHOLD", "70"),
        max_academic_cycle=_env_int("RULES_MAX_ACADEMIC_CYCLE", 10),
    )


class Settings(BaseModel):
    app_name: str = "Gestión Académica"
    secret_key: str = os.getenv("SECRET_KEY", "dev-secret-key-change")
    access_token_expire_minutes: Optional[int] = _resolve_access_token_expiry()
    algorithm: str = os.getenv("ALGORITHM", "HS256")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./data.db")
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"
    environment: str = _normalize_env(os.getenv("APP_ENV") or os.getenv("ENVIRONMENT"), "dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    rules: RulesSettings = Field(default_factory=_load_rules_settings)

    @property
    def is_production(self) -> bool:
        return self.environment in {"prod", "production"}


settings = Settings()
