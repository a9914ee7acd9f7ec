"""Google Business Profile configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, require_env_vars
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy

GBP_REVIEWS_BASE_URL = "https://mybusiness.googleapis.com/v4"
GBP_INFO_BASE_URL = "https://mybusinessbusinessinformation.googleapis.com/v1"
GBP_TIMEOUT_SECONDS = 20.0
# Location reads are cached briefly so an account sync followed by per-location
# syncs does not hit the provider twice for the same payload.
GBP_CACHE_TTL_SECONDS = 60.0


@dataclass(frozen=True, slots=True)
class GbpConfig:
    """Holds provider credentials and transport settings.

    The access token is produced by the (external) OAuth flow and handed over
    through the environment.
    """

    access_token: str
    account_id: str
    info_base_url: str
    reviews_base_url: str
    resilience: ResilienceConfig


def _is_cacheable(payload: object) -> bool:
    return not (isinstance(payload, dict) and "error" in payload)


def default_gbp_resilience(*, timeout_seconds: float = GBP_TIMEOUT_SECONDS) -> ResilienceConfig:
    return ResilienceConfig(
        name="gbp",
        timeout_seconds=timeout_seconds,
        retry=RetryPolicy(total=2),
        ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        cache=CacheConfig(
            backend="memory",
            default_ttl_seconds=GBP_CACHE_TTL_SECONDS,
            should_cache=_is_cacheable,
        ),
    )


def get_gbp_config(*, resilience: ResilienceConfig | None = None) -> GbpConfig:
    values = require_env_vars(("GBP_ACCESS_TOKEN", "GBP_ACCOUNT_ID"))
    timeout = env_float("GBP_TIMEOUT_SECONDS", GBP_TIMEOUT_SECONDS, minimum=0.1)
    return GbpConfig(
        access_token=values["GBP_ACCESS_TOKEN"],
        account_id=values["GBP_ACCOUNT_ID"],
        info_base_url=GBP_INFO_BASE_URL,
        reviews_base_url=GBP_REVIEWS_BASE_URL,
        resilience=resilience or default_gbp_resilience(timeout_seconds=timeout),
    )
