from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING
from uuid import UUID

from dotenv import load_dotenv

from listingsync.app import build_listing_service
from listingsync.config import configure_logging, get_gbp_config
from listingsync.domain.errors import InvalidInputError, requires_reauthorization
from listingsync.domain.identity import normalize_location_id
from listingsync.domain.model import BulkAction, EntityKind, ReplyState, Sentiment
from listingsync.domain.reviews import FilterQuery
from listingsync.domain.sync import EntityRef

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from listingsync.app import ListingService
    from listingsync.domain.reviews import ReviewPage
    from listingsync.domain.sync import SyncJob

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronise business listings and reviews")
    parser.add_argument("--database-uri", type=str, help="Override DATABASE_URI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    account = subparsers.add_parser("sync-account", help="Sync every location of an account")
    account.add_argument(
        "--account-id",
        type=str,
        help="Provider account id (defaults to GBP_ACCOUNT_ID)",
    )

    location = subparsers.add_parser("sync-location", help="Sync one location")
    location.add_argument("location", type=str, help="Location id or resource name")

    reviews = subparsers.add_parser("sync-reviews", help="Sync the reviews of a location")
    reviews.add_argument("location", type=str, help="Location id or resource name")

    sync_all = subparsers.add_parser("sync-all", help="Sync every stored location")
    sync_all.add_argument(
        "--reviews",
        action="store_true",
        help="Sync reviews instead of location details",
    )

    listing = subparsers.add_parser("reviews", help="List reviews with aggregates")
    listing.add_argument("--location-id", type=str, help="Local location UUID")
    listing.add_argument("--rating", type=int, choices=range(1, 6))
    listing.add_argument("--status", type=str, choices=[state.value for state in ReplyState])
    listing.add_argument("--sentiment", type=str, choices=[value.value for value in Sentiment])
    listing.add_argument("--search", type=str, help="Case-insensitive text search")
    listing.add_argument("--cursor", type=str, help="Cursor from a previous page")
    listing.add_argument("--limit", type=int, default=20)

    reply = subparsers.add_parser("reply", help="Reply to a pending review")
    reply.add_argument("review_id", type=str)
    reply.add_argument("text", type=str)

    update = subparsers.add_parser("update-reply", help="Replace an existing reply")
    update.add_argument("review_id", type=str)
    update.add_argument("text", type=str)

    delete = subparsers.add_parser("delete-reply", help="Delete a reply and reopen the review")
    delete.add_argument("review_id", type=str)

    bulk = subparsers.add_parser("bulk", help="Apply one action to several reviews")
    bulk.add_argument("action", type=str, choices=[action.value for action in BulkAction])
    bulk.add_argument("review_ids", type=str, nargs="+")
    bulk.add_argument("--label", type=str)
    bulk.add_argument("--reply-text", type=str)

    remove = subparsers.add_parser("remove-location", help="Delete a location and its reviews")
    remove.add_argument("location", type=str)

    return parser.parse_args(list(argv))


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _filter_query(args: argparse.Namespace) -> FilterQuery:
    return FilterQuery(
        location_id=_parse_uuid(args.location_id) if args.location_id else None,
        rating=args.rating,
        status=ReplyState(args.status) if args.status else None,
        sentiment=Sentiment(args.sentiment) if args.sentiment else None,
        search_term=args.search,
        cursor=args.cursor,
        limit=args.limit,
    )


def _log_page(page: ReviewPage) -> None:
    for review in page.items:
        log.info(
            "%s  %s  %d*  %-13s  %s",
            review.id,
            review.review_timestamp.date().isoformat(),
            review.rating,
            review.reply_state.value,
            (review.text or "").replace("\n", " ")[:60],
        )
    stats = page.aggregates
    log.info(
        "total=%d pending=%d replied=%d average=%.2f response_rate=%.1f%%",
        stats.total,
        stats.pending,
        stats.replied,
        stats.average_rating,
        stats.response_rate,
    )
    if page.next_cursor:
        log.info("next cursor: %s", page.next_cursor)


async def _await_job(job: SyncJob) -> bool:
    await job.wait()
    if job.succeeded:
        log.info("Synced %s: %s", job.entity, job.outcome)
        return True
    log.error("Sync of %s failed: %s", job.entity, job.last_error)
    if job.last_error is not None and requires_reauthorization(job.last_error):
        log.error("Reconnect the Google account and run the command again")
    return False


async def _dispatch(service: ListingService, args: argparse.Namespace) -> bool:  # noqa: C901, PLR0911
    match args.command:
        case "sync-account":
            account_id = args.account_id or get_gbp_config().account_id
            return await _await_job(service.request_sync(EntityRef.account(account_id)))
        case "sync-location":
            ref = EntityRef.location(normalize_location_id(args.location))
            return await _await_job(service.request_sync(ref))
        case "sync-reviews":
            ref = EntityRef.reviews(normalize_location_id(args.location))
            return await _await_job(service.request_sync(ref))
        case "sync-all":
            kind = EntityKind.REVIEWS if args.reviews else EntityKind.LOCATION
            summary = await service.sync_all(kind=kind)
            for ref, error in summary.failed.items():
                log.error("Sync of %s failed: %s", ref, error)
            return summary.all_succeeded
        case "reviews":
            _log_page(await service.query(_filter_query(args)))
            return True
        case "reply":
            review = await service.reply_to_review(_parse_uuid(args.review_id), args.text)
            log.info("Replied to %s", review.id)
            return True
        case "update-reply":
            review = await service.update_reply(_parse_uuid(args.review_id), args.text)
            log.info("Updated reply of %s", review.id)
            return True
        case "delete-reply":
            review = await service.delete_reply(_parse_uuid(args.review_id))
            log.info("Deleted reply of %s; review is %s", review.id, review.reply_state.value)
            return True
        case "bulk":
            batch = service.select(
                [_parse_uuid(value) for value in args.review_ids],
                BulkAction(args.action),
                label=args.label,
                reply_text=args.reply_text,
            )
            result = await service.submit_bulk_action(batch)
            for item in result.failed:
                log.error("%s failed (%s): %s", item.review_id, item.error_kind, item.message)
            if result.reauthorize_required:
                log.error("Reconnect the Google account and retry the failed reviews")
            log.info("%d succeeded, %d failed", result.succeeded_count, result.failed_count)
            return result.failed_count == 0
        case "remove-location":
            service.remove_location(args.location)
            return True
        case _:
            raise ValueError(f"Unsupported command: {args.command}")


async def _run(args: argparse.Namespace) -> bool:
    service = build_listing_service(database_uri=args.database_uri)
    try:
        return await _dispatch(service, args)
    finally:
        await service.shutdown()


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)

    try:
        ok = asyncio.run(_run(parsed_args))
    except (InvalidInputError, ValueError):
        log.exception("CLI validation error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)
    if not ok:
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
