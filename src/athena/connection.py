"""boto3 client factories.

One shared Athena client and one shared S3 client per process, created
lazily on first use.  boto3 low-level clients are thread-safe, so the
worker threads used by the lifecycle manager can share them.
"""
from __future__ import annotations

import boto3
from botocore.client import BaseClient
from botocore.config import Config

from src.core.config import get_settings
from src.core.logging import get_logger

logger = get_logger(__name__)

_athena_client: BaseClient | None = None
_s3_client: BaseClient | None = None

_RETRY_CONFIG = Config(retries={"max_attempts": 3, "mode": "standard"})


def get_athena_client() -> BaseClient:
    """Return the shared Athena client (lazy-created, cached)."""
    global _athena_client
    if _athena_client is None:
        settings = get_settings()
        _athena_client = boto3.client("athena", region_name=settings.aws_region, config=_RETRY_CONFIG)
        logger.info("Athena client created  region=%s", settings.aws_region)
    return _athena_client


def get_s3_client() -> BaseClient:
    """Return the shared S3 client (lazy-created, cached)."""
    global _s3_client
    if _s3_client is None:
        settings = get_settings()
        _s3_client = boto3.client("s3", region_name=settings.aws_region, config=_RETRY_CONFIG)
        logger.info("S3 client created  region=%s  bucket=%s", settings.aws_region, settings.athena_bucket)
    return _s3_client
