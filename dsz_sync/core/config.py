import os
from typing import Optional
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel


load_dotenv()


class Settings(BaseModel):
    # Dropshipzone supplier API
    dsz_api_base_url: str = os.getenv("DSZ_API_BASE_URL", "https://api.dropshipzone.com.au")
    dsz_api_email: Optional[str] = os.getenv("DSZ_API_EMAIL")
    dsz_api_password: Optional[str] = os.getenv("DSZ_API_PASSWORD")
    dsz_http_timeout: float = float(os.getenv("DSZ_HTTP_TIMEOUT", "30"))

    # Supabase (mapping table, local catalog, orders, media)
    supabase_url: str | None = os.getenv("SUPABASE_URL")
    supabase_service_role_key: str | None = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    supabase_storage_bucket: str = os.getenv("SUPABASE_STORAGE_BUCKET", "product-images")

    # Redis (settings KV store, leases)
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    dsz_key_prefix: str = os.getenv("DSZ_KEY_PREFIX", "dsz")

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    celery_result_backend: str = os.getenv("CELERY_RESULT_BACKEND", os.getenv("REDIS_URL", "redis://localhost:6379/0"))

    # Sync scheduler
    sync_enabled: bool = os.getenv("SYNC_ENABLED", "true").lower() == "true"
    sync_batch_size: int = int(os.getenv("SYNC_BATCH_SIZE", "100"))
    sync_frequency: str = os.getenv("SYNC_FREQUENCY", "hourly")
    scheduler_tick_seconds: int = int(os.getenv("SCHEDULER_TICK_SECONDS", "60"))
    auto_start_celery: bool = os.getenv("AUTO_START_CELERY", "false").lower() == "true"

    # Memory guard
    memory_limit_mb: Optional[int] = int(os.getenv("MEMORY_LIMIT_MB")) if os.getenv("MEMORY_LIMIT_MB") else None
    memory_threshold_percent: float = float(os.getenv("MEMORY_THRESHOLD_PERCENT", "85"))

    # API server
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Admin API key for the HTTP surface (unset = open, for local use)
    admin_api_key: Optional[str] = os.getenv("ADMIN_API_KEY")

    @property
    def memory_limit_bytes(self) -> Optional[int]:
        """Configured memory ceiling in bytes, if any."""
        if self.memory_limit_mb is None:
            return None
        return self.memory_limit_mb * 1024 * 1024


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = Settings()
