from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized runtime configuration loaded from environment variables.
    Frozen once loaded; components receive it through their constructors.
    """

    APP_NAME: str = "Review Portal API"
    API_PREFIX: str = "/api"
    ALLOWED_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    PORT: int = 3001
    LOG_LEVEL: str = "INFO"

    WORDPRESS_URL: str | None = None
    WORDPRESS_USER: str | None = None
    WORDPRESS_APP_PASSWORD: str | None = None
    WORDPRESS_TIMEOUT: float = 10.0
    WORDPRESS_UPLOAD_TIMEOUT: float = 30.0

    GHL_API_KEY: str | None = None
    GHL_BASE_URL: str = "https://services.leadconnectorhq.com"
    GHL_TIMEOUT: float = 10.0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True)

    @property
    def wordpress_configured(self) -> bool:
        return bool(self.WORDPRESS_URL and self.WORDPRESS_USER and self.WORDPRESS_APP_PASSWORD)

    @property
    def crm_configured(self) -> bool:
        return bool(self.GHL_API_KEY)


@lru_cache
def get_settings() -> Settings:
    return Settings()
