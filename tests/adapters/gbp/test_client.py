from __future__ import annotations

import asyncio
import json
from collections.abc import Callable  # noqa: TC003
from datetime import UTC, datetime

import httpx
import pytest

from listingsync.adapters.gbp import GbpAPIError, GbpClient
from listingsync.adapters.http_resilience import ResilientClient
from listingsync.config.gbp import GbpConfig
from listingsync.config.http_resilience import ResilienceConfig, RetryPolicy
from listingsync.domain.errors import (
    InsufficientScopeError,
    PermanentProviderError,
    ProviderTimeoutError,
    TransientProviderError,
)

FETCHED_AT = datetime(2024, 7, 1, tzinfo=UTC)


def _config() -> GbpConfig:
    return GbpConfig(
        access_token="token-123",
        account_id="7",
        info_base_url="https://info.test/v1",
        reviews_base_url="https://reviews.test/v4",
        resilience=ResilienceConfig(name="gbp-test", retry=RetryPolicy(total=0), cache=None),
    )


def _make_client(
    handler: Callable[[httpx.Request], httpx.Response],
) -> tuple[GbpClient, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    async def async_handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(transport=httpx.MockTransport(async_handler))  # noqa: SLF001  # type: ignore[reportPrivateUsage]
        return client

    return GbpClient(config=_config(), client_factory=factory, clock=lambda: FETCHED_AT), requests


def _location(name: str = "locations/42", **extra: object) -> dict[str, object]:
    return {"name": name, "title": "Corner Bakery", **extra}


def _review(name: str, rating: str = "FIVE", **extra: object) -> dict[str, object]:
    return {
        "name": name,
        "starRating": rating,
        "createTime": "2024-05-01T12:00:00Z",
        "reviewer": {"displayName": "Sam"},
        "comment": "Lovely",
        **extra,
    }


def test_fetch_location_uses_bare_id_and_bearer_token() -> None:
    client, requests = _make_client(lambda _: httpx.Response(200, json=_location()))

    location = asyncio.run(client.fetch_location("accounts/7/locations/42"))

    (request,) = requests
    assert request.url.path == "/v1/locations/42"
    assert "readMask" in request.url.params
    assert request.headers["Authorization"] == "Bearer token-123"
    assert location.normalized_id == "42"
    assert location.name == "Corner Bakery"
    assert location.updated_at is None


def test_list_locations_pages_and_skips_unreadable_items() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "locations": [_location("locations/1"), {"title": "no name"}, _location("x y")],
                "nextPageToken": "page-2",
            },
        )

    client, requests = _make_client(handler)

    page = asyncio.run(client.list_locations("accounts/7", "page-1"))

    assert requests[0].url.path == "/v1/accounts/7/locations"
    assert requests[0].url.params["pageToken"] == "page-1"
    assert [location.normalized_id for location in page.locations] == ["1"]
    assert page.next_page_token == "page-2"


def test_blank_page_token_ends_paging() -> None:
    client, _ = _make_client(lambda _: httpx.Response(200, json={"nextPageToken": ""}))

    page = asyncio.run(client.list_locations("7"))

    assert page.locations == []
    assert page.next_page_token is None


def test_list_reviews_uses_compound_resource_name() -> None:
    payload = {
        "reviews": [
            _review("accounts/7/locations/42/reviews/a"),
            _review("accounts/7/locations/42/reviews/b", rating="STAR_RATING_UNSPECIFIED"),
            _review(
                "accounts/7/locations/42/reviews/c",
                rating="TWO",
                reviewReply={"comment": "Sorry!", "updateTime": "2024-05-02T08:00:00Z"},
            ),
        ],
        "averageRating": 3.5,
        "totalReviewCount": 3,
    }
    client, requests = _make_client(lambda _: httpx.Response(200, json=payload))

    page = asyncio.run(client.list_reviews("locations/42"))

    assert requests[0].url.path == "/v4/accounts/7/locations/42/reviews"
    assert [review.rating for review in page.reviews] == [5, 2]
    assert page.reviews[1].reply_text == "Sorry!"
    assert page.average_rating == 3.5
    assert page.next_page_token is None


def test_submit_reply_puts_comment_and_returns_ack() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return httpx.Response(
            200, json={"comment": body["comment"], "updateTime": "2024-06-01T10:00:00Z"}
        )

    client, requests = _make_client(handler)
    name = "accounts/7/locations/42/reviews/a"

    ack = asyncio.run(client.submit_reply(name, "Thank you!"))

    assert requests[0].method == "PUT"
    assert requests[0].url.path == f"/v4/{name}/reply"
    assert ack.comment == "Thank you!"
    assert ack.update_time == datetime(2024, 6, 1, 10, tzinfo=UTC)


def test_delete_reply_treats_missing_reply_as_done() -> None:
    client, requests = _make_client(lambda _: httpx.Response(404))

    asyncio.run(client.delete_reply("accounts/7/locations/42/reviews/a"))

    assert requests[0].method == "DELETE"


@pytest.mark.parametrize(
    ("status", "error"),
    [
        (401, InsufficientScopeError),
        (403, InsufficientScopeError),
        (429, TransientProviderError),
        (503, TransientProviderError),
        (400, PermanentProviderError),
        (404, PermanentProviderError),
    ],
)
def test_status_codes_map_onto_error_taxonomy(status: int, error: type[Exception]) -> None:
    body = {"error": {"code": status, "message": "nope", "status": "FAILED"}}
    client, _ = _make_client(lambda _: httpx.Response(status, json=body))

    with pytest.raises(error, match="nope"):
        asyncio.run(client.fetch_location("42"))


def test_retry_after_header_is_carried_on_transient_errors() -> None:
    client, _ = _make_client(lambda _: httpx.Response(429, headers={"Retry-After": "7"}))

    with pytest.raises(TransientProviderError) as excinfo:
        asyncio.run(client.fetch_location("42"))

    assert excinfo.value.retry_after == 7.0


def test_scope_error_asks_for_reauthorization() -> None:
    client, _ = _make_client(lambda _: httpx.Response(403))

    with pytest.raises(InsufficientScopeError) as excinfo:
        asyncio.run(client.submit_reply("accounts/7/locations/42/reviews/a", "Hi"))

    assert excinfo.value.reauthorize
    assert excinfo.value.status_code == 403


def test_transport_timeout_becomes_provider_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    client, _ = _make_client(handler)

    with pytest.raises(ProviderTimeoutError):
        asyncio.run(client.fetch_location("42"))


def test_connection_failure_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client, _ = _make_client(handler)

    with pytest.raises(TransientProviderError):
        asyncio.run(client.list_locations("7"))


def test_invalid_json_is_a_provider_error() -> None:
    client, _ = _make_client(lambda _: httpx.Response(200, content=b"<html>"))

    with pytest.raises(GbpAPIError):
        asyncio.run(client.fetch_location("42"))


def test_client_is_shared_and_closed_once() -> None:
    created: list[ResilientClient] = []

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            transport=httpx.MockTransport(lambda _: httpx.Response(200, json=_location()))
        )
        created.append(client)
        return client

    gbp = GbpClient(config=_config(), client_factory=factory)

    async def scenario() -> None:
        await gbp.fetch_location("42")
        await gbp.fetch_location("43")
        await gbp.aclose()
        await gbp.aclose()

    asyncio.run(scenario())

    assert len(created) == 1
