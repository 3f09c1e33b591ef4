from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./kbase.db"
    database_echo: bool = False
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Версионирование и автосохранение
    version_throttle_seconds: float = 60.0
    autosave_debounce_seconds: float = 2.0
    version_conflict_retries: int = 3
    editing_session_idle_seconds: float = 1800.0

    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
