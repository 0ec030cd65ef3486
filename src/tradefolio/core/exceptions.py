"""Application-level exceptions."""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""

    def __init__(self, message: str, code: str = "APP_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(AppError):
    """Raised when input validation fails."""

    def __init__(self, message: str):
        super().__init__(message, code="VALIDATION_ERROR")


class NotFoundError(AppError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} not found: {identifier}", code="NOT_FOUND")


class InsufficientQuantityError(AppError):
    """Raised when attempting to sell more units than are open."""

    def __init__(self, instrument_id: str, requested: str, available: str):
        self.instrument_id = instrument_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient quantity of {instrument_id}: requested {requested}, available {available}",
            code="INSUFFICIENT_QUANTITY",
        )


class ProviderError(AppError):
    """Raised by a quote provider when it cannot deliver a usable quote."""

    def __init__(self, provider: str, message: str, retryable: bool = False):
        self.provider = provider
        self.retryable = retryable
        super().__init__(f"[{provider}] {message}", code="PROVIDER_ERROR")


class RateLimitedError(ProviderError):
    """Raised when a provider's per-minute request budget is exhausted."""

    def __init__(self, provider: str, limit: int):
        super().__init__(provider, f"rate limit of {limit}/min exceeded", retryable=True)
        self.code = "RATE_LIMITED"


class QuoteUnavailableError(AppError):
    """Raised when every provider in the waterfall failed for an instrument."""

    def __init__(self, instrument_id: str, attempts: Optional[list[tuple[str, str]]] = None):
        self.instrument_id = instrument_id
        self.attempts = attempts or []
        if self.attempts:
            detail = "; ".join(f"{name}: {reason}" for name, reason in self.attempts)
        else:
            detail = "no provider supports this instrument"
        super().__init__(
            f"No quote available for {instrument_id} ({detail})",
            code="QUOTE_UNAVAILABLE",
        )


class CacheError(AppError):
    """Raised by key-value stores; callers treat it as a soft failure."""

    def __init__(self, message: str):
        super().__init__(message, code="CACHE_ERROR")


class SnapshotJobError(AppError):
    """Raised when the snapshot job cannot even determine what to fetch."""

    def __init__(self, message: str):
        super().__init__(message, code="SNAPSHOT_JOB_ERROR")
