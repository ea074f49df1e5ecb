from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Annotated, Dict, List


class Settings(BaseSettings):
    # Basic environment settings
    ENVIRONMENT: str = "development"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS settings: Allowed origins should be provided as a comma-separated list in the env var.
    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = Field(default=["http://localhost", "http://127.0.0.1"])

    # Logging configuration
    LOG_LEVEL: str = "INFO"

    # Job processing settings
    WORKER_POOL_SIZE: int = Field(5, ge=1)
    SUFFICIENCY_THRESHOLD: int = 1
    STAGE_RETRIES: int = Field(2, ge=0)
    RETRY_BACKOFF_BASE: float = 0.25
    MAX_URLS_PER_REQUEST: int = 50
    CSV_MAX_ROWS: int = 1000

    # Per-request and per-stage timeouts (seconds)
    REQUEST_TIMEOUT: float = 8.0
    HOMEPAGE_TIMEOUT: float = 20.0
    CONTACT_PAGES_TIMEOUT: float = 45.0
    BROWSER_TIMEOUT: float = 60.0
    WHOIS_TIMEOUT: float = 20.0

    # Crawling behaviour
    USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    RESPECT_ROBOTS: bool = True
    MAX_CONTACT_PAGES: int = 5
    BROWSER_ENABLED: bool = True
    BROWSER_EXTRA_PATHS: int = 3

    # Subscription plans
    DEFAULT_PLAN: str = "free"
    PLAN_OVERRIDES: Dict[str, str] = Field(default_factory=dict)

    @field_validator("ALLOWED_ORIGINS", mode="before")
    def assemble_allowed_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

# Create a single instance of the settings that can be imported anywhere in the project.
settings = Settings()
