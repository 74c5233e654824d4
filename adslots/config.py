# adslots/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/adslots.db"
    redis_url: str = "redis://localhost:6379/0"

    # Used to build claim links in invite e-mails
    public_base_url: str = "http://localhost:8000"

    waitlist_sweep_enabled: bool = True
    waitlist_sweep_interval_seconds: int = 1800
    waitlist_sweep_initial_delay_seconds: int = 120

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
