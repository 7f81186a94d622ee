import os
from pydantic import BaseModel

class Settings(BaseModel):
    # Basic
    ENV: str = os.getenv("ENV", "dev")
    CACHE_TTL_DAYS: int = int(os.getenv("CACHE_TTL_DAYS", "90"))

    # Price provider
    PRICE_PROVIDER: str = os.getenv("PRICE_PROVIDER", "openai")          # openai | mock (offline dev only)
    PROVIDER_STRATEGY: str = os.getenv("PROVIDER_STRATEGY", "free_text")  # strict | averaged | free_text
    PROVIDER_RETRY: bool = os.getenv("PROVIDER_RETRY", "true").lower() == "true"
    PROVIDER_TIMEOUT_SECONDS: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30"))

    # LLM
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_TEMPERATURE: float = float(os.getenv("OPENAI_TEMPERATURE", "0.1"))

    # Datastores
    CACHE_BACKEND: str = os.getenv("CACHE_BACKEND", "memory")            # memory | redis | supabase
    LEAD_STORE_BACKEND: str = os.getenv("LEAD_STORE_BACKEND", "memory")  # memory | supabase
    SUPABASE_URL: str | None = os.getenv("SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY: str | None = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

    # Security
    API_KEY: str | None = os.getenv("API_KEY") or os.getenv("API_GATEWAY_KEY")
    RATE_LIMIT_RPM: int = int(os.getenv("RATE_LIMIT_RPM", "60"))

    # CORS
    ALLOW_ORIGINS: str = os.getenv("ALLOW_ORIGINS", "*")

    # Redis (rate limiting and the redis cache backend)
    USE_REDIS: bool = os.getenv("USE_REDIS", "false").lower() == "true"
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Metrics
    PROMETHEUS_ENABLED: bool = os.getenv("PROMETHEUS_ENABLED", "true").lower() == "true"

settings = Settings()
