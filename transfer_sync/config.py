"""
Transfer Sync Configuration - Provider credentials and runtime tuning.

Provider credentials are loaded from environment variables (a .env file is
honoured) and never travel through the pipeline's own types.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Optional

from dotenv import load_dotenv

load_dotenv()


DEFAULT_BITQUERY_API_URL = "https://graphql.bitquery.io"
DEFAULT_CDP_SQL_API_URL = "https://api.cdp.coinbase.com/platform/v2/data/query/run"


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value else default


@dataclass
class RetrySettings:
    """Bounded exponential backoff applied around every provider call."""
    max_attempts: int = 4
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    jitter: float = 0.2  # +/- fraction of each delay

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "base_delay_seconds": self.base_delay_seconds,
            "max_delay_seconds": self.max_delay_seconds,
            "jitter": self.jitter,
        }


@dataclass
class TransferSyncSettings:
    """Process-level settings for the transfer sync pipeline."""

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"

    # BitQuery (GraphQL)
    bitquery_api_key: Optional[str] = None
    bitquery_api_url: str = DEFAULT_BITQUERY_API_URL

    # Coinbase CDP SQL API
    cdp_bearer_token: Optional[str] = None
    cdp_sql_api_url: str = DEFAULT_CDP_SQL_API_URL

    # HTTP
    request_timeout_seconds: float = 60.0

    # Concurrency override (None = derive from the compute-class hint)
    max_workers: Optional[int] = None

    retry: RetrySettings = field(default_factory=RetrySettings)

    @classmethod
    def from_env(cls) -> "TransferSyncSettings":
        """Build settings from environment variables."""
        max_workers = os.environ.get("SYNC_MAX_WORKERS")
        return cls(
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            log_format=os.environ.get("LOG_FORMAT", "text"),
            bitquery_api_key=os.environ.get("BITQUERY_API_KEY"),
            bitquery_api_url=os.environ.get("BITQUERY_API_URL", DEFAULT_BITQUERY_API_URL),
            cdp_bearer_token=os.environ.get("CDP_API_BEARER_TOKEN"),
            cdp_sql_api_url=os.environ.get("CDP_SQL_API_URL", DEFAULT_CDP_SQL_API_URL),
            request_timeout_seconds=_env_float("SYNC_REQUEST_TIMEOUT", 60.0),
            max_workers=int(max_workers) if max_workers else None,
            retry=RetrySettings(
                max_attempts=_env_int("SYNC_RETRY_MAX_ATTEMPTS", 4),
                base_delay_seconds=_env_float("SYNC_RETRY_BASE_DELAY", 1.0),
                max_delay_seconds=_env_float("SYNC_RETRY_MAX_DELAY", 30.0),
                jitter=_env_float("SYNC_RETRY_JITTER", 0.2),
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Safe representation, credentials reduced to presence flags."""
        return {
            "log_level": self.log_level,
            "log_format": self.log_format,
            "bitquery_api_url": self.bitquery_api_url,
            "bitquery_api_key_set": bool(self.bitquery_api_key),
            "cdp_sql_api_url": self.cdp_sql_api_url,
            "cdp_bearer_token_set": bool(self.cdp_bearer_token),
            "request_timeout_seconds": self.request_timeout_seconds,
            "max_workers": self.max_workers,
            "retry": self.retry.to_dict(),
        }


# Default settings instance
_settings: Optional[TransferSyncSettings] = None


def get_settings() -> TransferSyncSettings:
    """Get the process-wide settings, loading from the environment once."""
    global _settings
    if _settings is None:
        _settings = TransferSyncSettings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
