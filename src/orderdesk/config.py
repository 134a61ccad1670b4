from typing import List

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field("sqlite:///orderdesk.db")
    api_title: str = Field("Order Desk API")
    host: str = Field("0.0.0.0")
    port: int = Field(3001)
    jwt_secret: str = Field("secret")
    jwt_algorithm: str = Field("HS256")
    token_ttl_hours: int = Field(24)
    bcrypt_rounds: int = Field(10)
    rate_limit_enabled: bool = Field(False)
    auth_rate_limit: str = Field("5/minute")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    # 0 disables the per-statement timeout (PostgreSQL only)
    db_statement_timeout_ms: int = Field(0)
    log_level: str = Field("INFO")

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
