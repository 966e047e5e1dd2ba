from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional

from pydantic_settings import BaseSettings

from .policy import RetryPolicy

ADMIN_USER = "admin"


@dataclass(frozen=True)
class ClusterConfig:
    """Immutable description of the cluster a process talks to."""

    endpoint: str
    region: str
    database: str = "postgres"
    username: str = ADMIN_USER
    api_client: Any = None  # boto3 "dsql" client used to sign auth tokens
    port: int = 5432

    @property
    def is_admin(self) -> bool:
        return self.username == ADMIN_USER

    def conninfo(self) -> dict:
        """Connection keywords, minus the password."""
        return {
            "host": self.endpoint,
            "port": self.port,
            "dbname": self.database,
            "user": self.username,
            "sslmode": "require",
        }


class Settings(BaseSettings):
    CLUSTER_ENDPOINT: str
    DB_USERNAME: str = ADMIN_USER
    DB_NAME: str = "postgres"
    DB_PORT: int = 5432
    AWS_REGION: str = "us-east-1"

    MAX_DB_RETRIES: int = 5
    JITTER_BASE_MS: float = 20.0
    JITTER_MAX_MS: float = 5000.0
    # 5 minutes less than the store's one hour session limit
    MAX_CONNECTION_AGE_SEC: float = 55 * 60
    TOKEN_EXPIRES_IN_SEC: int = 30
    CONNECT_TIMEOUT_SEC: int = 10

    IMAGE_REGION: Optional[str] = None  # falls back to AWS_REGION
    LOG_LEVEL: str = "INFO"

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.MAX_DB_RETRIES,
            base_delay_ms=self.JITTER_BASE_MS,
            max_delay_ms=self.JITTER_MAX_MS,
        )

    def cluster_config(self, api_client: Any = None) -> ClusterConfig:
        return ClusterConfig(
            endpoint=self.CLUSTER_ENDPOINT,
            region=self.AWS_REGION,
            database=self.DB_NAME,
            username=self.DB_USERNAME,
            api_client=api_client,
            port=self.DB_PORT,
        )

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
