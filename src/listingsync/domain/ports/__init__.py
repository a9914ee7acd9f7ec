"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import (
    DirectoryFetcher,
    FetchedReview,
    LocationPage,
    ReplyAck,
    ReplySubmitter,
    ReviewFetcher,
    ReviewFetchPage,
)
from .persistence import LocationRepository, Repository, ReviewRepository
from .suggestions import ReplySuggester
from .unit_of_work import (
    ListingRepositories,
    ListingUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "DirectoryFetcher",
    "FetchedReview",
    "ListingRepositories",
    "ListingUnitOfWork",
    "LocationPage",
    "LocationRepository",
    "ReplyAck",
    "ReplySubmitter",
    "ReplySuggester",
    "Repository",
    "RepositoryCollection",
    "ReviewFetchPage",
    "ReviewFetcher",
    "ReviewRepository",
    "UnitOfWork",
]
