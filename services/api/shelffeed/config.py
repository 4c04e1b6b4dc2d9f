"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── TiDB (MySQL-protocol compatible) ───────────────────────────────────
    tidb_host: str = "tidb"
    tidb_port: int = 4000
    tidb_user: str = "root"
    tidb_password: str = ""
    tidb_database: str = "shelf_feed"

    # Full SQLAlchemy URL; takes precedence over the tidb_* fields when set
    # (e.g. sqlite+aiosqlite:///./shelf.db for local runs).
    database_url: Optional[str] = None

    @property
    def tidb_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"mysql+aiomysql://{self.tidb_user}:{self.tidb_password}"
            f"@{self.tidb_host}:{self.tidb_port}/{self.tidb_database}"
        )

    # ── Redis ──────────────────────────────────────────────────────────────
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_generation_ttl: int = 300      # seconds a feed generation is tracked

    # ── Feed caps ──────────────────────────────────────────────────────────
    feed_window: int = 100               # posts considered per feed request
    reference_batch_cap: int = 1000      # max ids per reference lookup
    activity_like_cap: int = 1000        # likes scanned for "activity on me"
    activity_follow_cap: int = 50        # newest followers in "activity on me"
    user_posts_cap: int = 50             # own posts on the profile page
    search_result_cap: int = 50          # profiles returned by directory search

    # ── Observability ──────────────────────────────────────────────────────
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "shelf-feed-api"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
