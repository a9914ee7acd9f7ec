"""Google Business Profile client implementing the fetch and reply ports."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from listingsync.adapters.http_resilience import ResilientClient
from listingsync.domain.errors import (
    InsufficientScopeError,
    MalformedIdentifierError,
    PermanentProviderError,
    ProviderTimeoutError,
    TransientProviderError,
)
from listingsync.domain.identity import location_resource_name, normalize_location_id
from listingsync.domain.ports import LocationPage, ReplyAck, ReviewFetchPage

from .schema import (
    LOCATION_READ_MASK,
    ErrorResponse,
    ListLocationsResponse,
    ListReviewsResponse,
    ReviewReply,
)
from .translator import parse_location, parse_review

if TYPE_CHECKING:
    from collections.abc import Callable

    from listingsync.config.gbp import GbpConfig
    from listingsync.config.http_resilience import ResilienceConfig
    from listingsync.domain.model import Location
    from listingsync.domain.ports import FetchedReview

log = getLogger(__name__)

LOCATIONS_PAGE_SIZE = 100
REVIEWS_PAGE_SIZE = 50


class GbpAPIError(PermanentProviderError):
    """Raised when the provider answers with a payload we cannot read."""


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return max(float(raw), 0.0)
    except ValueError:
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        detail = ErrorResponse.model_validate(response.json()).error
    except (ValueError, ValidationError):
        return f"HTTP {response.status_code}"
    return detail.message or detail.status or f"HTTP {response.status_code}"


def raise_for_provider_status(response: httpx.Response) -> None:
    """Map an unsuccessful response onto the domain error taxonomy."""

    status = response.status_code
    if status < 400:
        return
    message = _error_message(response)
    if status in {401, 403}:
        raise InsufficientScopeError(
            f"Google Business Profile rejected the credentials: {message}", status_code=status
        )
    if status == 429 or status >= 500:
        raise TransientProviderError(
            f"Google Business Profile unavailable ({status}): {message}",
            retry_after=_retry_after(response),
        )
    raise PermanentProviderError(
        f"Google Business Profile request failed ({status}): {message}", status_code=status
    )


class GbpClient:
    """Directory fetcher, review fetcher and reply submitter in one client.

    One :class:`ResilientClient` is shared by every call so the rate limiter
    sees all traffic; call :meth:`aclose` when done.
    """

    def __init__(
        self,
        *,
        config: GbpConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient
        self._client: ResilientClient | None = None
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def account_id(self) -> str:
        return self._config.account_id

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # --- DirectoryFetcher ------------------------------------------------------

    async def fetch_location(self, external_id: str) -> Location:
        bare = normalize_location_id(external_id)
        payload = await self._get_json(
            f"{self._config.info_base_url}/locations/{bare}",
            params={"readMask": LOCATION_READ_MASK},
        )
        return parse_location(payload)

    async def list_locations(self, account_id: str, page_token: str | None = None) -> LocationPage:
        account = account_id.removeprefix("accounts/")
        params = {"readMask": LOCATION_READ_MASK, "pageSize": str(LOCATIONS_PAGE_SIZE)}
        if page_token:
            params["pageToken"] = page_token
        payload = await self._get_json(
            f"{self._config.info_base_url}/accounts/{account}/locations", params=params
        )
        response = self._validate(ListLocationsResponse, payload)
        locations: list[Location] = []
        for item in response.locations:
            try:
                locations.append(parse_location(item))
            except (MalformedIdentifierError, ValidationError) as exc:
                log.warning("Skipping unreadable location payload: %s", exc)
        return LocationPage(locations=locations, next_page_token=response.next_page_token)

    # --- ReviewFetcher ---------------------------------------------------------

    async def list_reviews(
        self, location_external_id: str, page_token: str | None = None
    ) -> ReviewFetchPage:
        resource = location_resource_name(self._config.account_id, location_external_id)
        params = {"pageSize": str(REVIEWS_PAGE_SIZE)}
        if page_token:
            params["pageToken"] = page_token
        payload = await self._get_json(
            f"{self._config.reviews_base_url}/{resource}/reviews", params=params
        )
        response = self._validate(ListReviewsResponse, payload)
        reviews: list[FetchedReview] = []
        for item in response.reviews:
            try:
                parsed = parse_review(item)
            except ValidationError as exc:
                log.warning("Skipping unreadable review payload: %s", exc)
                continue
            if parsed is not None:
                reviews.append(parsed)
        return ReviewFetchPage(
            reviews=reviews,
            next_page_token=response.next_page_token,
            average_rating=response.average_rating,
            total_review_count=response.total_review_count,
        )

    # --- ReplySubmitter --------------------------------------------------------

    async def submit_reply(self, review_external_id: str, text: str) -> ReplyAck:
        response = await self._request(
            "PUT",
            f"{self._config.reviews_base_url}/{review_external_id}/reply",
            json={"comment": text},
        )
        raise_for_provider_status(response)
        reply = self._validate(ReviewReply, self._json(response))
        return ReplyAck(comment=reply.comment, update_time=reply.update_time or self._clock())

    async def delete_reply(self, review_external_id: str) -> None:
        response = await self._request(
            "DELETE", f"{self._config.reviews_base_url}/{review_external_id}/reply"
        )
        if response.status_code == 404:
            log.info("Reply of %s was already gone at the provider", review_external_id)
            return
        raise_for_provider_status(response)

    # --- Helpers ---------------------------------------------------------------

    def _http(self) -> ResilientClient:
        if self._client is None:
            self._client = self._client_factory(self._resilience)
        return self._client

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        json: object = None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._config.access_token}"}
        try:
            if json is None:
                return await self._http().request(method, url, params=params, headers=headers)
            return await self._http().request(
                method, url, params=params, headers=headers, json=json
            )
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(f"{method} {url} timed out") from exc
        except httpx.TransportError as exc:
            raise TransientProviderError(f"{method} {url} failed: {exc}") from exc

    async def _get_json(self, url: str, *, params: dict[str, str]) -> dict[str, object]:
        response = await self._request("GET", url, params=params)
        raise_for_provider_status(response)
        return self._json(response)

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, object]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise GbpAPIError("Google Business Profile returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise GbpAPIError("Unexpected Google Business Profile response payload")
        return payload

    @staticmethod
    def _validate[TModel: (ListLocationsResponse, ListReviewsResponse, ReviewReply)](
        model: type[TModel], payload: dict[str, object]
    ) -> TModel:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise GbpAPIError(f"Unexpected Google Business Profile payload: {exc}") from exc


__all__ = ["GbpAPIError", "GbpClient", "raise_for_provider_status"]
