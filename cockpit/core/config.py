from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict  # type: ignore[import-not-found]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )

    app_name: str = Field(default="Amiseo Cockpit", alias="APP_NAME")
    app_env: str = Field(default="dev", alias="APP_ENV")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    session_secret: str = Field(default="amiseo-dashboard-secret", alias="SESSION_SECRET")
    # seven days
    session_max_age: int = Field(default=60 * 60 * 24 * 7, alias="SESSION_MAX_AGE")

    data_dir: Path = Field(default=Path("data"), alias="DATA_DIR")
    clients_file: str = Field(default="clients.json", alias="CLIENTS_FILE")
    users_file: str = Field(default="users.json", alias="USERS_FILE")

    store_backend: str = Field(default="json", alias="STORE_BACKEND")
    db_url: str = Field(default="sqlite:///./data/cockpit.db", alias="DB_URL")

    @field_validator("store_backend", mode="before")
    @classmethod
    def _lower_backend(cls, value: str | None) -> str:
        backend = str(value or "json").strip().lower()
        if backend not in ("json", "sql"):
            raise ValueError("STORE_BACKEND must be 'json' or 'sql'")
        return backend

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() in ("prod", "production")

    @property
    def clients_path(self) -> Path:
        return self.data_dir / self.clients_file

    @property
    def users_path(self) -> Path:
        return self.data_dir / self.users_file


@lru_cache()
def get_settings() -> Settings:
    return Settings()
