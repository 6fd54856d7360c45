"""Application settings and configuration management."""

from functools import lru_cache
from typing import List

from pydantic import Field, ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    app_name: str = Field(default="German-English Dictionary")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    workers: int = Field(default=1)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080", "http://localhost:8000"]
    )

    # Remote resources
    dict_url: str = Field(
        default="https://ftp.tu-chemnitz.de/pub/Local/urz/ding/de-en-devel/de-en.txt.gz"
    )
    dict_version_url: str = Field(
        default="https://ftp.tu-chemnitz.de/pub/Local/urz/ding/de-en-devel/sha256sums.txt"
    )
    http_timeout: float = Field(default=60.0)

    # Cache store
    cache_dir: str = Field(default="./data/cache")
    dict_cache_name: str = Field(default="DeEnDict")
    asset_cache_prefix: str = Field(default="DeEnDict")
    update_check_delay: float = Field(default=0.5)  # seconds

    # Search
    result_cache_size: int = Field(default=10)
    max_results: int = Field(default=200)
    max_query_length: int = Field(default=100)
    max_suggestions: int = Field(default=5)
    suggestion_threshold: float = Field(default=0.6)

    # Progress reporting
    progress_check_interval_lines: int = Field(default=500)
    progress_initial_report_ms: int = Field(default=500)
    progress_report_interval_ms: int = Field(default=100)
    stats_scan_lines: int = Field(default=50)

    # Controller / worker protocol
    status_retries: int = Field(default=10)
    status_retry_backoff: float = Field(default=0.5)  # seconds
    search_timeout: float = Field(default=60.0)  # seconds
    random_timeout: float = Field(default=10.0)  # seconds

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra environment variables
    )

    @property
    def asset_cache_name(self) -> str:
        """Name of the versioned asset cache partition."""
        return f"{self.asset_cache_prefix}-{self.app_version}"


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
