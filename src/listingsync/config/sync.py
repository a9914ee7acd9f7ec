"""Synchronization and bulk-processing defaults."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, cast

from .env import env_float, env_int, env_json_object, env_str
from .errors import ConfigurationError

type SyncMode = Literal["full", "incremental"]

DEFAULT_MAX_ATTEMPTS = 4
DEFAULT_BASE_DELAY_SECONDS = 0.5
DEFAULT_MAX_DELAY_SECONDS = 60.0
DEFAULT_CALL_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_CONCURRENT_SYNCS = 4
DEFAULT_BULK_WORKERS = 5
DEFAULT_BULK_MAX_ITEMS = 50
DEFAULT_REPLY_MAX_LENGTH = 4096


@dataclass(frozen=True, slots=True)
class SyncConfig:
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS
    max_delay_seconds: float = DEFAULT_MAX_DELAY_SECONDS
    call_timeout_seconds: float = DEFAULT_CALL_TIMEOUT_SECONDS
    max_concurrent_syncs: int = DEFAULT_MAX_CONCURRENT_SYNCS
    bulk_workers: int = DEFAULT_BULK_WORKERS
    bulk_max_items: int = DEFAULT_BULK_MAX_ITEMS
    reply_max_length: int = DEFAULT_REPLY_MAX_LENGTH
    mode: SyncMode = "full"
    completeness_weights: dict[str, int] = field(default_factory=dict[str, int])


def _parse_weights(raw: dict[str, object] | None) -> dict[str, int]:
    if raw is None:
        return {}
    weights: dict[str, int] = {}
    for key, value in raw.items():
        if not isinstance(value, int) or isinstance(value, bool):
            raise ConfigurationError(f"Completeness weight {key!r} must be an integer")
        weights[key] = value
    return weights


def get_sync_config() -> SyncConfig:
    mode = env_str("LISTINGSYNC_SYNC_MODE", "full")
    if mode not in {"full", "incremental"}:
        raise ConfigurationError(f"LISTINGSYNC_SYNC_MODE must be full or incremental, got {mode!r}")
    return SyncConfig(
        max_attempts=env_int("LISTINGSYNC_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS, minimum=1),
        base_delay_seconds=env_float("LISTINGSYNC_BASE_DELAY_SECONDS", DEFAULT_BASE_DELAY_SECONDS),
        max_delay_seconds=env_float("LISTINGSYNC_MAX_DELAY_SECONDS", DEFAULT_MAX_DELAY_SECONDS),
        call_timeout_seconds=env_float(
            "LISTINGSYNC_CALL_TIMEOUT_SECONDS", DEFAULT_CALL_TIMEOUT_SECONDS, minimum=0.001
        ),
        max_concurrent_syncs=env_int(
            "LISTINGSYNC_MAX_CONCURRENT_SYNCS", DEFAULT_MAX_CONCURRENT_SYNCS, minimum=1
        ),
        bulk_workers=env_int("LISTINGSYNC_BULK_WORKERS", DEFAULT_BULK_WORKERS, minimum=1),
        bulk_max_items=env_int("LISTINGSYNC_BULK_MAX_ITEMS", DEFAULT_BULK_MAX_ITEMS, minimum=1),
        reply_max_length=env_int(
            "LISTINGSYNC_REPLY_MAX_LENGTH", DEFAULT_REPLY_MAX_LENGTH, minimum=1
        ),
        mode=cast("SyncMode", mode),
        completeness_weights=_parse_weights(env_json_object("LISTINGSYNC_COMPLETENESS_WEIGHTS")),
    )
