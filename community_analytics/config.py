from typing import Optional

from pydantic import PostgresDsn, RedisDsn, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _reveal(secret: SecretStr) -> str:
    return secret.get_secret_value() if isinstance(secret, SecretStr) else secret


class Settings(BaseSettings):
    """
    Runtime configuration, read from the environment and `.env`.

    DATABASE_URL and REDIS_URL win when set; otherwise they are assembled
    from their host, port and credential parts.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        validate_default=True,
        extra="ignore",
    )

    # API
    API_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Community Analytics API"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    PORT: int = 8000
    CORS_ORIGINS: list[str] = ["*"]

    # Analytics store
    DB_HOST: str = "db"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: SecretStr = SecretStr("postgres")
    DB_NAME: str = "community"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DATABASE_URL: Optional[PostgresDsn] = None

    # Report cache and task broker
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: SecretStr = SecretStr("")
    REDIS_URL: Optional[RedisDsn] = None
    CACHE_TTL: int = 120  # seconds, for entries stored without a TTL
    INSIGHTS_CACHE_TTL: int = 300  # default report refresh interval, seconds

    # Reports and training
    TOP_CONTENT_LIMIT: int = 5
    TRAINING_SAMPLE_LIMIT: int = 1000

    # Worker
    TASK_TIME_LIMIT: int = 600  # seconds
    TASK_MAX_RETRIES: int = 3
    TASK_RETRY_DELAY: int = 60  # seconds

    @model_validator(mode="after")
    def assemble_connection_urls(self) -> "Settings":
        if not self.DATABASE_URL:
            self.DATABASE_URL = PostgresDsn.build(
                scheme="postgresql+asyncpg",
                username=self.DB_USER,
                password=_reveal(self.DB_PASSWORD),
                host=self.DB_HOST,
                port=self.DB_PORT,
                path=self.DB_NAME,
            )

        if not self.REDIS_URL:
            self.REDIS_URL = RedisDsn.build(
                scheme="redis",
                username="default",
                password=_reveal(self.REDIS_PASSWORD) or None,
                host=self.REDIS_HOST,
                port=self.REDIS_PORT,
                path="/0",
            )

        return self


settings = Settings()
