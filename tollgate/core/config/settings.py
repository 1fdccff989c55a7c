"""Application settings loaded from the environment.

Every value has a safe default so the library can be imported (and tested)
without a populated ``.env`` file. Deployments override through environment
variables with the same upper-case names.
"""

from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tollgate.core.config.enums import Environment


class Settings(BaseSettings):
    """Tollgate settings.

    Groups:
        - runtime: environment and logging
        - database: connection parts and pool sizing
        - credits: signup grant and referral bonuses
        - store access: timeouts and read retries
        - rate limiting: sweep interval, kill switch and tier overrides
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Runtime
    ENVIRONMENT: Environment = Environment.LOCAL
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "tollgate"
    POSTGRES_PASSWORD: str = "tollgate"
    POSTGRES_DB: str = "tollgate"
    DATABASE_URL: Optional[str] = None
    db_pool_size: int = 10
    db_pool_max_overflow: int = 20

    # Credits
    SIGNUP_FREE_CREDITS: int = Field(default=5, ge=0)
    REFERRAL_REFERRER_BONUS: int = Field(default=10, ge=0)
    REFERRAL_REFERRED_BONUS: int = Field(default=10, ge=0)
    REFERRAL_CODE_LENGTH: int = Field(default=8, ge=6, le=32)

    # Store access
    LEDGER_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)
    STORE_READ_RETRY_ATTEMPTS: int = Field(default=3, ge=1)

    # Rate limiting
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: float = Field(default=300.0, gt=0)
    DISABLE_RATE_LIMIT: bool = False
    RATE_LIMIT_TIER_OVERRIDES: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def SQLALCHEMY_ASYNC_DATABASE_URI(self) -> str:  # noqa: N802
        """Async SQLAlchemy URI; ``DATABASE_URL`` wins when set."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )
