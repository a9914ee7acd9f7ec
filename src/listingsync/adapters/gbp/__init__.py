"""Public interface for the Google Business Profile adapter."""

from __future__ import annotations

from .client import GbpAPIError, GbpClient, raise_for_provider_status
from .schema import ListLocationsResponse, ListReviewsResponse, LocationPayload, ReviewPayload
from .translator import parse_location, parse_review

__all__ = [
    "GbpAPIError",
    "GbpClient",
    "ListLocationsResponse",
    "ListReviewsResponse",
    "LocationPayload",
    "ReviewPayload",
    "parse_location",
    "parse_review",
    "raise_for_provider_status",
]
