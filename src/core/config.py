"""
Centralised application settings loaded from environment / .env file.
"""
from __future__ import annotations

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load .env from project root (two levels up from this file)
_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_ENV_PATH)

_DEFAULT_SCHEMA_PATH = Path(__file__).resolve().parents[2] / "schema_config" / "log_schema.yml"


class Settings(BaseSettings):
    # ── AWS / Athena ─────────────────────────────────────
    aws_region: str = "us-east-1"
    athena_bucket: str = "jfriend-logs"
    athena_output_prefix: str = "athena-queries/brodo"
    athena_workgroup: str = ""
    athena_database: str = ""
    athena_catalog: str = "AwsDataCatalog"

    # ── Query lifecycle ──────────────────────────────────
    poll_interval_ms: int = 1000
    schema_path: str = str(_DEFAULT_SCHEMA_PATH)

    # ── App ──────────────────────────────────────────────
    api_port: int = 13337
    api_base: str = "http://localhost:13337"
    log_level: str = "INFO"

    @property
    def output_location(self) -> str:
        return f"s3://{self.athena_bucket}/{self.athena_output_prefix}"

    @property
    def poll_interval(self) -> float:
        """Poll interval in seconds (always positive)."""
        return max(self.poll_interval_ms, 1) / 1000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
