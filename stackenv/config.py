"""Application settings, loaded from the environment and <data_dir>/.env."""

import os
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = Path(os.environ.get("DATA_DIR", "/data"))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=DEFAULT_DATA_DIR / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    data_dir: Path = DEFAULT_DATA_DIR
    stacks_dir: Path = Path("/opt/stacks")
    database_path: Path | None = None
    env_file_name: str = ".env"

    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"

    auth_enabled: bool = False
    auth_username: str = "admin"
    auth_password: str = ""

    @property
    def db_path(self) -> Path:
        return self.database_path or self.data_dir / "stackenv.db"

    @property
    def is_auth_configured(self) -> bool:
        return self.auth_enabled and bool(self.auth_username) and bool(self.auth_password)


@lru_cache
def get_settings() -> Settings:
    return Settings()
