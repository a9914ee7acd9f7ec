"""Review lifecycle, feed queries and bulk actions."""

from __future__ import annotations

from .bulk import BulkActionCoordinator, BulkResult, ItemResult, SelectionBatch
from .coalescing import QueryCoalescer, QuerySupersededError
from .lifecycle import ReviewLifecycleEngine, admit, validate_reply_text
from .pagination import ReviewPage, ReviewQueryEngine
from .query import CursorPosition, FilterQuery, ReviewAggregates, aggregate_reviews

__all__ = [
    "BulkActionCoordinator",
    "BulkResult",
    "CursorPosition",
    "FilterQuery",
    "ItemResult",
    "QueryCoalescer",
    "QuerySupersededError",
    "ReviewAggregates",
    "ReviewLifecycleEngine",
    "ReviewPage",
    "ReviewQueryEngine",
    "SelectionBatch",
    "aggregate_reviews",
    "admit",
    "validate_reply_text",
]
