from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import field_validator
from typing import Annotated, Any, ClassVar
import json
from pathlib import Path
import os


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"

    # Remote profile + booking records.
    # Use an absolute path so running the app from different directories
    # (e.g., repo root or backend/) always resolves the same DB file.
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'nanny_booking.db'}"

    # Redis backs the local recovery cache. Empty/none/disabled turns it off.
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_CONNECT_TIMEOUT: float = 0.5
    REDIS_SOCKET_TIMEOUT: float = 0.5
    RECOVERY_CACHE_PREFIX: str = "booking"
    RECOVERY_CACHE_TTL_SECONDS: int = 30 * 24 * 3600

    # Debounce windows for remote profile writes (seconds)
    PERSIST_DEBOUNCE_SECONDS: float = 0.5
    COOKING_PERSIST_DEBOUNCE_SECONDS: float = 0.1

    # A recovered provider selection older than this is discarded
    SELECTED_PROVIDER_TTL_HOURS: int = 24

    # Booking sessions untouched for this long are dropped from the registry
    SESSION_IDLE_TIMEOUT_SECONDS: float = 3600

    # Default currency code used for preview pricing
    DEFAULT_CURRENCY: str = "ZAR"

    LOG_LEVEL: str = "INFO"

    # NoDecode lets the validator below accept a plain comma-separated value
    CORS_ORIGINS: Annotated[list[str], NoDecode] = ["http://localhost:3000", "http://localhost:5173"]

    model_config = SettingsConfigDict(
        extra="ignore",
        case_sensitive=True,
    )

    @field_validator("CORS_ORIGINS", mode="before")
    def split_origins(cls, v: Any) -> list[str]:
        """Parse comma-separated or JSON list of origins from environment."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                pass
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("PERSIST_DEBOUNCE_SECONDS", "COOKING_PERSIST_DEBOUNCE_SECONDS", mode="after")
    def non_negative_delay(cls, v: float) -> float:
        return max(0.0, v)

    @field_validator("DEFAULT_CURRENCY", mode="before")
    def upper_currency(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper() or "ZAR"
        return v


def load_settings() -> "Settings":
    return Settings(_env_file=os.getenv("ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")))


settings = load_settings()
