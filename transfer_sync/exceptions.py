"""
Transfer Sync Exceptions - Custom exception hierarchy.

Provider errors carry enough context (provider, chain, status, retry hint)
for the retry policy to decide whether another attempt is worthwhile.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class TransferSyncError(Exception):
    """Base exception for all transfer sync errors."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        chain: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.chain = chain
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "provider": self.provider,
            "chain": self.chain,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.provider:
            parts.append(f"[provider={self.provider}]")
        if self.chain:
            parts.append(f"[chain={self.chain}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


# ─────────────────────────────────────────────────────────────
# Provider errors
# ─────────────────────────────────────────────────────────────

class FetchError(TransferSyncError):
    """HTTP or transport failure while calling a provider."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        chain: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider, chain, original_error, context)
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url

    @property
    def is_transient(self) -> bool:
        """5xx and transport errors (no status) are worth retrying."""
        return self.status_code is None or self.status_code >= 500

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "response_body": self.response_body[:500] if self.response_body else None,
            "request_url": self.request_url,
        })
        return data


class RateLimitError(TransferSyncError):
    """Provider answered 429."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        chain: Optional[str] = None,
        retry_after_seconds: Optional[float] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider, chain, original_error, context)
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retry_after_seconds"] = self.retry_after_seconds
        return data


class ProviderTimeoutError(TransferSyncError):
    """Provider call exceeded the request timeout."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        chain: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider, chain, original_error, context)
        self.timeout_seconds = timeout_seconds


class ProviderResponseError(TransferSyncError):
    """Provider answered, but with an error payload or an unreadable envelope."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        chain: Optional[str] = None,
        errors: Optional[list[Any]] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider, chain, original_error, context)
        self.errors = errors or []

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["errors"] = [str(e)[:200] for e in self.errors]
        return data


class RetryExhaustedError(TransferSyncError):
    """All retry attempts for a provider call failed."""

    def __init__(
        self,
        message: str,
        attempts: int,
        provider: Optional[str] = None,
        chain: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider, chain, original_error, context)
        self.attempts = attempts

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["attempts"] = self.attempts
        return data


class ProviderNotRegisteredError(TransferSyncError):
    """No adapter is registered for the requested provider kind."""
    pass


# ─────────────────────────────────────────────────────────────
# Data errors
# ─────────────────────────────────────────────────────────────

class NormalizationError(TransferSyncError):
    """A raw row could not be mapped to the canonical shape."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        chain: Optional[str] = None,
        raw_data: Optional[Any] = None,
        field_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider, chain, original_error, context)
        self.raw_data = raw_data
        self.field_name = field_name

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "raw_data": str(self.raw_data)[:500] if self.raw_data else None,
            "field_name": self.field_name,
        })
        return data


class CursorModeMismatchError(TransferSyncError):
    """A cursor of one kind was used where the other kind is required."""

    def __init__(
        self,
        message: str,
        expected_kind: str,
        actual_kind: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, context=context)
        self.expected_kind = expected_kind
        self.actual_kind = actual_kind


# ─────────────────────────────────────────────────────────────
# Configuration errors
# ─────────────────────────────────────────────────────────────

class ConfigurationError(TransferSyncError):
    """Missing or invalid configuration."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        config_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider, None, original_error, context)
        self.config_key = config_key

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["config_key"] = self.config_key
        return data


class RegistryValidationError(ConfigurationError):
    """The static facilitator roster violates a registry invariant."""
    pass
