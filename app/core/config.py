from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    # Separate secrets so a leaked session secret can be rotated without
    # invalidating every account token.
    long_token_secret: str = Field(..., alias="LONG_TOKEN_SECRET")
    short_token_secret: str = Field(..., alias="SHORT_TOKEN_SECRET")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    account_token_expire_days: int = Field(1095, alias="ACCOUNT_TOKEN_EXPIRE_DAYS")
    session_token_expire_days: int = Field(365, alias="SESSION_TOKEN_EXPIRE_DAYS")
    bcrypt_rounds: int = Field(12, alias="BCRYPT_ROUNDS")

    rate_limit_max_requests: int = Field(100, alias="RATE_LIMIT_MAX_REQUESTS")
    rate_limit_window_seconds: int = Field(60, alias="RATE_LIMIT_WINDOW_SECONDS")
    rate_limit_cleanup_seconds: int = Field(300, alias="RATE_LIMIT_CLEANUP_SECONDS")
    redis_url: Optional[str] = Field(None, alias="REDIS_URL")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_file: Optional[str] = Field(None, alias="LOG_FILE")

    cors_origins: str = Field("*", alias="CORS_ORIGINS")
    create_tables_on_startup: bool = Field(True, alias="CREATE_TABLES_ON_STARTUP")

    superadmin_username: Optional[str] = Field(None, alias="SUPERADMIN_USERNAME")
    superadmin_email: Optional[str] = Field(None, alias="SUPERADMIN_EMAIL")
    superadmin_password: Optional[str] = Field(None, alias="SUPERADMIN_PASSWORD")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
