from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Library settings loaded from environment variables."""

    storage_backend: str = "file"  # memory | file | supabase
    storage_path: str = "splitsmart_trips.json"
    storage_key: str = "@splitsmart_trips"
    supabase_url: str = ""
    supabase_service_key: str = ""
    supabase_table: str = "kv_store"
    request_timeout: float = 10.0
    log_level: str = "INFO"

    @property
    def supabase_configured(self) -> bool:
        """Whether both Supabase URL and service key are set."""
        return bool(self.supabase_url and self.supabase_service_key)

    class Config:
        env_prefix = "SPLITSMART_"
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
