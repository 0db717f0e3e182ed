"""
Application configuration, loaded from ``GAMIFY_*`` environment variables
(or a local ``.env`` file).
"""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Storage
    data_dir: Path = Path("data")
    upload_dir: Path = Path("uploads")

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 4000
    api_title: str = "Gamify Ledger API"
    api_version: str = "1.0.0"
    api_description: str = "Balances, top-up approvals and orders over a JSON record store"
    cors_origins: list[str] = ["*"]

    # Auth
    bcrypt_rounds: int = 10

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console
    service_name: str = "gamify-ledger"

    model_config = SettingsConfigDict(
        env_prefix="GAMIFY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("bcrypt_rounds")
    @classmethod
    def _valid_rounds(cls, value: int) -> int:
        if not 4 <= value <= 31:
            raise ValueError("bcrypt_rounds must be between 4 and 31")
        return value

    @field_validator("log_format")
    @classmethod
    def _valid_format(cls, value: str) -> str:
        if value not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return value


settings = Settings()
