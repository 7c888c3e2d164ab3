import re
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SECRETS_DIR = Path("/run/secrets")


def read_secret(name: str, fallback: str) -> str:
    """Docker secret file contents if mounted, else the env-provided fallback."""
    path = SECRETS_DIR / name
    return path.read_text().strip() if path.is_file() else fallback


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    port: int = 8082
    environment: str = "development"
    log_level: str = "info"
    cors_origins: str = "*"

    # Either a full URL or the parts it is assembled from.
    database_url: str = ""
    postgres_user: str = "trustgate"
    postgres_password: str = "password"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "trustgate"
    postgres_sslmode: str = "prefer"
    db_pool_min_size: int = Field(default=1, ge=1)
    db_pool_max_size: int = Field(default=10, ge=1)

    redis_url: str = ""
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""

    explore_first_screen_mix: bool = True
    explore_lane_nudges: bool = True
    explore_tier_precedence: bool = True
    explore_shuffle_seed: int | None = None

    badge_worker_enabled: bool = True
    badge_worker_interval_seconds: int = Field(default=86400, ge=60)

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        v = v.lower()
        if v not in {"debug", "info", "warning", "error", "critical"}:
            raise ValueError(f"unknown log level {v!r}")
        return v

    @model_validator(mode="after")
    def _assemble_urls(self) -> "Settings":
        if self.db_pool_min_size > self.db_pool_max_size:
            raise ValueError("db_pool_min_size must not exceed db_pool_max_size")

        if not self.database_url:
            password = read_secret("postgres_password", self.postgres_password)
            self.database_url = (
                f"postgres://{self.postgres_user}:{password}@{self.postgres_host}:"
                f"{self.postgres_port}/{self.postgres_db}?sslmode={self.postgres_sslmode}"
            )
        if not self.redis_url:
            password = read_secret("redis_password", self.redis_password)
            auth = f":{password}@" if password else ""
            self.redis_url = f"redis://{auth}{self.redis_host}:{self.redis_port}"
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def cors_rules(self) -> tuple[list[str], str | None]:
        """Split CORS_ORIGINS into exact origins and one regex for trailing-* patterns.

        "*" alone allows every origin.
        """
        exact: list[str] = []
        patterns: list[str] = []
        for origin in (o.strip() for o in self.cors_origins.split(",")):
            if not origin:
                continue
            if origin == "*":
                exact.append(origin)
            elif origin.endswith("*"):
                patterns.append(re.escape(origin[:-1]) + ".*")
            else:
                exact.append(origin)
        return exact, ("|".join(patterns) or None)


settings = Settings()
