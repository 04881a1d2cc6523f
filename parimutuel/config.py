from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from pathlib import Path
from typing import Literal

BASE_DIR = Path(__file__).resolve().parent.parent


def _default_db_url() -> str:
    return f"sqlite:///{BASE_DIR}/data/parimutuel.db"


class Settings(BaseSettings):
    # --- STORAGE ---
    DATABASE_URL: str = _default_db_url()
    STORE_BACKEND: Literal["sql", "memory"] = "sql"

    # --- ACCOUNTS ---
    STARTING_BALANCE: int = 1000
    DEFAULT_USER_NAME: str = "Player"

    # --- CONCURRENCY ---
    LOCK_TIMEOUT_SECONDS: float = 5.0

    # --- REPORTING ---
    LEADERBOARD_SIZE: int = 10

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def _default_database_url(cls, v):
        # If .env contains an empty DATABASE_URL, fall back to the default
        if v is None or (isinstance(v, str) and v.strip() == ""):
            return _default_db_url()
        return v

    @field_validator("STARTING_BALANCE")
    @classmethod
    def _non_negative_balance(cls, v):
        if v < 0:
            raise ValueError("STARTING_BALANCE cannot be negative")
        return v

    @field_validator("LOCK_TIMEOUT_SECONDS")
    @classmethod
    def _bounded_wait(cls, v):
        # A non-positive wait would mean blocking forever
        if v <= 0:
            raise ValueError("LOCK_TIMEOUT_SECONDS must be positive")
        return v


settings = Settings()
