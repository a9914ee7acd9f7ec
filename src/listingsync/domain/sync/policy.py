"""Retry policy for sync jobs."""

from __future__ import annotations

from dataclasses import dataclass

from listingsync.domain.errors import ErrorKind, TransientProviderError, classify_error


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """Exponential backoff: ``base * 2 ** (attempt - 1)``, capped at ``max_delay``."""

    max_attempts: int = 4
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 60.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_seconds < 0 or self.max_delay_seconds < 0:
            raise ValueError("delays must not be negative")

    def delay_for(self, attempt: int, error: BaseException | None = None) -> float:
        """Seconds to wait after failed ``attempt`` (1-based) before the next one.

        A provider-supplied ``Retry-After`` is honoured when it asks for longer.
        """

        delay = min(self.base_delay_seconds * 2 ** (attempt - 1), self.max_delay_seconds)
        if isinstance(error, TransientProviderError) and error.retry_after is not None:
            delay = max(delay, min(error.retry_after, self.max_delay_seconds))
        return delay

    def should_retry(self, attempt: int, error: BaseException) -> bool:
        return classify_error(error) is ErrorKind.TRANSIENT and attempt < self.max_attempts


__all__ = ["BackoffPolicy"]
