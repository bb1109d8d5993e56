"""Tests for the Cupid content API client."""

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from hotel_content.ingest.cupid_client import (
    ERROR_BODY_LIMIT,
    MAX_ATTEMPTS,
    CupidClient,
    ForbiddenError,
    MalformedResponseError,
    NoCandidateError,
    NotFoundError,
    TransientUpstreamError,
    UnauthorizedError,
    UnexpectedStatusError,
    backoff_delay,
    parse_retry_after,
)

BASE_URL = "https://cupid.test/v3.0"


def make_client(handler, **kwargs) -> CupidClient:
    kwargs.setdefault("requests_per_second", 1000.0)
    kwargs.setdefault("backoff_base", 0.001)
    return CupidClient(BASE_URL, "test-key", transport=httpx.MockTransport(handler), **kwargs)


class Recorder:
    """MockTransport handler replaying a fixed list of responses."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


def test_api_key_required():
    with pytest.raises(ValueError):
        CupidClient(BASE_URL, "")


@pytest.mark.asyncio
async def test_fallback_to_legacy_url_on_404():
    handler = Recorder(httpx.Response(404), httpx.Response(200, json={"id": 123}))

    async with make_client(handler) as client:
        data = await client.get_property(123)

    assert data == {"id": 123}
    assert handler.paths == ["/v3.0/properties/123", "/v3.0/property/123"]


@pytest.mark.asyncio
async def test_sends_auth_and_accept_headers():
    handler = Recorder(httpx.Response(200, json={}))

    async with make_client(handler) as client:
        await client.get_property(1)

    request = handler.requests[0]
    assert request.headers["X-API-Key"] == "test-key"
    assert request.headers["Accept"] == "application/json"
    assert request.headers["User-Agent"].startswith("hotel-content/")


@pytest.mark.asyncio
async def test_all_candidates_404_raises_not_found():
    handler = Recorder(httpx.Response(404))

    async with make_client(handler) as client:
        with pytest.raises(NotFoundError) as exc_info:
            await client.get_translation(5, "fr")

    assert exc_info.value.status_code == 404
    assert len(handler.requests) == 4


@pytest.mark.asyncio
async def test_non_404_failure_stops_fallback():
    handler = Recorder(httpx.Response(403))

    async with make_client(handler) as client:
        with pytest.raises(ForbiddenError):
            await client.get_property(5)

    assert len(handler.requests) == 1


@pytest.mark.asyncio
async def test_retries_server_errors_then_succeeds():
    handler = Recorder(
        httpx.Response(500),
        httpx.Response(500),
        httpx.Response(200, json={"ok": True}),
    )

    async with make_client(handler) as client:
        data = await client.get_property(9)

    assert data == {"ok": True}
    assert len(handler.requests) == 3
    assert set(handler.paths) == {"/v3.0/properties/9"}


@pytest.mark.asyncio
async def test_retries_exhausted_raise_transient_error():
    handler = Recorder(httpx.Response(503))

    async with make_client(handler) as client:
        with pytest.raises(TransientUpstreamError) as exc_info:
            await client.get_property(9)

    assert exc_info.value.status_code == 503
    assert len(handler.requests) == MAX_ATTEMPTS


@pytest.mark.asyncio
async def test_transport_errors_are_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"id": 1})

    async with make_client(handler) as client:
        data = await client.get_property(1)

    assert data == {"id": 1}
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_status_classification():
    async with make_client(Recorder(httpx.Response(401))) as client:
        with pytest.raises(UnauthorizedError):
            await client.get_property(1)

    async with make_client(Recorder(httpx.Response(403))) as client:
        with pytest.raises(ForbiddenError):
            await client.get_property(1)

    handler = Recorder(httpx.Response(418, text="I'm a teapot"))
    async with make_client(handler) as client:
        with pytest.raises(UnexpectedStatusError) as exc_info:
            await client.get_property(1)

    assert exc_info.value.status_code == 418
    assert "I'm a teapot" in str(exc_info.value)
    assert len(handler.requests) == 1


@pytest.mark.asyncio
async def test_unexpected_status_body_is_truncated():
    handler = Recorder(httpx.Response(400, text="x" * (ERROR_BODY_LIMIT * 2)))

    async with make_client(handler) as client:
        with pytest.raises(UnexpectedStatusError) as exc_info:
            await client.get_property(1)

    assert len(exc_info.value.body) == ERROR_BODY_LIMIT


@pytest.mark.asyncio
async def test_invalid_json_is_malformed():
    handler = Recorder(httpx.Response(200, content=b"{not json"))

    async with make_client(handler) as client:
        with pytest.raises(MalformedResponseError):
            await client.get_property(1)

    assert len(handler.requests) == 1


@pytest.mark.asyncio
async def test_no_content_yields_empty_document_and_list():
    async with make_client(Recorder(httpx.Response(204))) as client:
        assert await client.get_property(1) == {}
        assert await client.get_reviews(1, 10) == []


@pytest.mark.asyncio
async def test_reviews_unwraps_envelope_and_drops_non_objects():
    payload = {"reviews": [{"id": 1}, "junk", {"id": 2}]}
    handler = Recorder(httpx.Response(200, json=payload))

    async with make_client(handler) as client:
        reviews = await client.get_reviews(1641879, 50)

    assert reviews == [{"id": 1}, {"id": 2}]
    assert handler.requests[0].url.params["limit"] == "50"


@pytest.mark.asyncio
async def test_reviews_wrong_shape_is_malformed():
    async with make_client(Recorder(httpx.Response(200, json={"total": 3}))) as client:
        with pytest.raises(MalformedResponseError):
            await client.get_reviews(1, 10)


@pytest.mark.asyncio
async def test_property_wrong_shape_is_malformed():
    async with make_client(Recorder(httpx.Response(200, json=[1, 2]))) as client:
        with pytest.raises(MalformedResponseError):
            await client.get_property(1)


@pytest.mark.asyncio
async def test_no_candidate_urls():
    async with make_client(Recorder(httpx.Response(200, json={}))) as client:
        with pytest.raises(NoCandidateError):
            await client.get_first("property", [])


@pytest.mark.asyncio
async def test_caller_deadline_cancels_retries():
    handler = Recorder(httpx.Response(503))

    async with make_client(handler, backoff_base=5.0) as client:
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(client.get_property(1), timeout=0.2)

    # Cancelled while sleeping before the first retry
    assert len(handler.requests) == 1


@pytest.mark.asyncio
async def test_retry_after_header_is_honoured(monkeypatch):
    sleeps = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay, *args, **kwargs):
        sleeps.append(delay)
        await real_sleep(0)

    monkeypatch.setattr("hotel_content.ingest.cupid_client.asyncio.sleep", fake_sleep)
    handler = Recorder(
        httpx.Response(429, headers={"Retry-After": "3"}),
        httpx.Response(200, json={"id": 1}),
    )

    async with make_client(handler) as client:
        await client.get_property(1)

    assert sleeps == [3.0]


def test_parse_retry_after():
    now = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    assert parse_retry_after("5") == 5.0
    assert parse_retry_after(None) is None
    assert parse_retry_after("soon") is None
    assert parse_retry_after("Mon, 01 Jan 2024 12:00:30 GMT", now=now) == 30.0
    assert parse_retry_after("Mon, 01 Jan 2024 11:00:00 GMT", now=now) == 0.0


def test_backoff_delay_grows_with_jitter_bound():
    for attempt in range(4):
        delay = backoff_delay(attempt, base=0.2)
        expected = 0.2 * 2 ** attempt
        assert expected <= delay <= expected * 1.5


def test_parse_retry_after_rejects_non_ascii_digits():
    assert parse_retry_after("²") is None
    assert parse_retry_after("١٢") is None


@pytest.mark.asyncio
async def test_unreadable_retry_after_falls_back_to_backoff():
    handler = Recorder(
        httpx.Response(429, headers={"Retry-After": b"\xb2"}),
        httpx.Response(200, json={"id": 1}),
    )

    async with make_client(handler) as client:
        data = await client.get_property(1)

    assert data == {"id": 1}
    assert len(handler.requests) == 2
