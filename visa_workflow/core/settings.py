import logging
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


PROJECT_ROOT = Path(__file__).resolve().parents[2]
ROOT_ENV = PROJECT_ROOT / ".env"
ROOT_ENV_LOCAL = PROJECT_ROOT / ".env.local"


class Settings(BaseSettings):
    """
    Visa Workflow - Configuration Registry
    Centralizes the environment variables consumed by the workflow client.
    """

    model_config = SettingsConfigDict(
        env_file=(str(ROOT_ENV), str(ROOT_ENV_LOCAL)),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backend
    VISA_API_BASE_URL: str = "http://localhost:5000/api/"
    VISA_API_TIMEOUT_SECONDS: float = 30.0
    VISA_API_TOKEN: Optional[str] = None

    # Observability
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @field_validator("VISA_API_BASE_URL", mode="before")
    @classmethod
    def _normalize_base_url(cls, value: str | None) -> str:
        base = str(value or "").strip()
        if not base:
            raise ValueError("VISA_API_BASE_URL must not be empty")
        return base.rstrip("/") + "/"

    @field_validator("VISA_API_TIMEOUT_SECONDS", mode="before")
    @classmethod
    def _clamp_timeout(cls, value: float | str | None) -> float:
        timeout = float(value or 30.0)
        if timeout <= 0:
            logger.warning("VISA_API_TIMEOUT_SECONDS must be positive; using 30s")
            return 30.0
        return timeout

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str | None) -> str:
        return str(value or "INFO").strip().upper()


settings = Settings()  # type: ignore[call-arg]
