from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strongly-typed settings model loaded from env / .env.

    Notes:
        - Critical secrets and DSNs must be provided via environment variables.
        - No insecure defaults are shipped; application will fail-fast if missing.
        - The same model is shared by the assessment service, the quiz service
          and the grading worker; each reads only the fields it needs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        protected_namespaces=()
    )

    ENV: Literal["dev", "staging", "prod"] = Field(..., description="Deployment environment, e.g. dev/staging/prod")
    SERVICE_NAME: str = Field(default="qms", description="Service name")
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")

    POSTGRES_DSN: str = Field(..., description="Async SQLAlchemy DSN, e.g. postgresql+asyncpg://...")
    REDIS_URL: str = Field(..., description="Redis connection URL for the quiz cache")
    KAFKA_BOOTSTRAP: str = Field(..., description="Kafka bootstrap servers")

    JWT_PUBLIC_KEY: str = Field(..., description="JWT public key (must be provided)")
    OIDC_AUDIENCE: str = Field(..., description="OIDC audience")

    QUIZ_SERVICE_URL: str = Field(
        default="http://quiz-service:5002/api/quizzes",
        description="Base URL of the quiz service collection endpoint",
    )
    QUIZ_SERVICE_TIMEOUT: float = Field(default=5.0, gt=0, description="Quiz lookup timeout (seconds)")
    QUIZ_SERVICE_TOKEN: Optional[str] = Field(
        default=None,
        description="Bearer JWT the grading worker presents to the quiz service; it is checked for exp, so rotate it before it expires",
    )

    GRADING_TOPIC: str = Field(default="grading-jobs", description="Kafka topic for deferred grading jobs")
    GRADING_GROUP_ID: str = Field(default="grading-worker", description="Kafka consumer group of the worker")
    WORKER_METRICS_PORT: int = Field(default=9109, description="Prometheus port of the grading worker (0 disables)")

    QUIZ_CACHE_TTL: int = Field(default=300, ge=1, description="TTL of a cached single quiz (seconds)")
    QUIZ_LIST_CACHE_TTL: int = Field(default=60, ge=1, description="TTL of the cached published list (seconds)")
    QUIZ_BATCH_LIMIT: int = Field(default=100, ge=1, description="Max ids accepted by one batch lookup")

    HISTORY_LIMIT: int = Field(default=5, ge=1, description="Default number of history entries")
    CERTIFICATE_THRESHOLD: float = Field(default=70, description="Minimum score that earns a certificate")

    @model_validator(mode="after")
    def _no_empty_secrets(self) -> "Settings":
        if not self.JWT_PUBLIC_KEY.strip():
            raise ValueError("JWT_PUBLIC_KEY must be set and non-empty.")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Return a cached singleton `Settings` instance."""
    return Settings()
