"""Cupid content API client with endpoint fallback, retries and status classification."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

import httpx

from hotel_content import metrics
from hotel_content.ingest.base import ContentClient
from hotel_content.ingest.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

USER_AGENT = "hotel-content/1.0"

MAX_ATTEMPTS = 4
BACKOFF_BASE_SECONDS = 0.2
ERROR_BODY_LIMIT = 4096

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})
SUCCESS_STATUSES = frozenset({200, 201, 202})

# Candidate URL templates, preferred form first, legacy forms after.
PROPERTY_PATHS = [
    "/properties/{id}",
    "/property/{id}",
]
TRANSLATION_PATHS = [
    "/properties/{id}/translations/{lang}",
    "/properties/{id}/translation/{lang}",
    "/properties/{id}/lang/{lang}",
    "/property/{id}/lang/{lang}",
]
REVIEWS_PATHS = [
    "/properties/{id}/reviews?limit={count}",
    "/properties/{id}/reviews/{count}",
    "/property/reviews/{id}/{count}",
]

# Keys some API versions wrap a review list in
REVIEW_LIST_KEYS = ("reviews", "data", "items")


class UpstreamError(RuntimeError):
    """Base class for content API failures."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class NotFoundError(UpstreamError):
    """Raised when the API confirms the resource does not exist (404)."""


class AccessDeniedError(UpstreamError):
    """Raised when access to the resource is refused (401 or 403)."""


class UnauthorizedError(AccessDeniedError):
    """Raised on 401."""


class ForbiddenError(AccessDeniedError):
    """Raised on 403."""


class TransientUpstreamError(UpstreamError):
    """Raised when 429/5xx or transport errors persist after all attempts."""


class UnexpectedStatusError(UpstreamError):
    """Raised for any status code without a specific meaning."""

    def __init__(self, status_code: int, body: str, url: Optional[str] = None):
        super().__init__(f"bad status {status_code}: {body}", status_code=status_code, url=url)
        self.body = body


class MalformedResponseError(UpstreamError):
    """Raised when a success response cannot be decoded into the expected shape."""


class NoCandidateError(UpstreamError):
    """Raised when a fetch has no candidate URL to try."""


def backoff_delay(attempt: int, base: float = BACKOFF_BASE_SECONDS) -> float:
    """
    Exponential backoff with jitter.

    Args:
        attempt: Zero-based attempt number that just failed
        base: Delay for the first retry in seconds

    Returns:
        ``base * 2**attempt`` plus up to 50% random jitter
    """
    delay = base * (2 ** attempt)
    return delay + delay * 0.5 * random.random()


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """
    Parse a Retry-After header given as integer seconds or an HTTP date.

    Returns:
        Seconds to wait (never negative), or None if absent or unparseable
    """
    if not value:
        return None
    value = value.strip()
    if value.isascii() and value.isdigit():
        return float(int(value))

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


class CupidClient(ContentClient):
    """
    Fetches properties, translations and reviews from the Cupid content API.

    Each resource has several candidate URLs. They are tried in order and
    only a 404 moves on to the next one; any other failure stops the
    fallback immediately. Individual URLs are retried on transport errors,
    429 and 502/503/504/500 with Retry-After or exponential backoff. Every
    attempt first takes a token from the shared rate limiter.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        requests_per_second: float = 5.0,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        backoff_base: float = BACKOFF_BASE_SECONDS,
    ):
        if not api_key:
            raise ValueError("API key is required")
        if requests_per_second <= 0:
            requests_per_second = 5.0

        self.base_url = base_url.rstrip("/")
        self.rate_limiter = RateLimiter(requests_per_second)
        self.backoff_base = backoff_base
        self._http_client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "X-API-Key": api_key,
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            },
        )

    async def close(self):
        """Close HTTP client."""
        await self._http_client.aclose()

    async def __aenter__(self) -> "CupidClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def _urls(self, templates: list[str], **params) -> list[str]:
        return [self.base_url + template.format(**params) for template in templates]

    async def get_property(self, property_id: int) -> dict[str, Any]:
        data = await self.get_first("property", self._urls(PROPERTY_PATHS, id=property_id))
        return self._expect_document(data, "property")

    async def get_translation(self, property_id: int, lang: str) -> dict[str, Any]:
        urls = self._urls(TRANSLATION_PATHS, id=property_id, lang=lang)
        data = await self.get_first("translation", urls)
        return self._expect_document(data, "translation")

    async def get_reviews(self, property_id: int, count: int) -> list[dict[str, Any]]:
        urls = self._urls(REVIEWS_PATHS, id=property_id, count=count)
        data = await self.get_first("reviews", urls)
        if data is None:
            return []
        if isinstance(data, dict):
            for key in REVIEW_LIST_KEYS:
                if isinstance(data.get(key), list):
                    data = data[key]
                    break
        if not isinstance(data, list):
            raise MalformedResponseError(
                f"reviews payload for {property_id} is {type(data).__name__}, expected list"
            )
        return [item for item in data if isinstance(item, dict)]

    @staticmethod
    def _expect_document(data: Any, resource: str) -> dict[str, Any]:
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"{resource} payload is {type(data).__name__}, expected object"
            )
        return data

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def get_first(self, resource: str, urls: list[str]) -> Any:
        """
        Try candidate URLs in order, falling through only on 404.

        Returns:
            Decoded JSON body of the first success (None for 204)

        Raises:
            NotFoundError: If every candidate returned 404
            NoCandidateError: If ``urls`` is empty
            UpstreamError: First non-404 failure, without trying later URLs
        """
        last_not_found: NotFoundError | None = None
        for url in urls:
            try:
                return await self.get_json(resource, url)
            except NotFoundError as e:
                logger.debug(f"{resource}: 404 for {url}, trying next candidate")
                last_not_found = e

        if last_not_found is not None:
            raise last_not_found
        raise NoCandidateError(f"{resource}: no candidate URL succeeded")

    async def get_json(self, resource: str, url: str) -> Any:
        """
        GET one URL with rate limiting, retries and status classification.

        Raises:
            NotFoundError, UnauthorizedError, ForbiddenError: Not retried
            TransientUpstreamError: 429/5xx/transport errors after MAX_ATTEMPTS
            UnexpectedStatusError: Any other status
            MalformedResponseError: Body is not valid JSON
        """
        last_exc: UpstreamError | None = None

        for attempt in range(MAX_ATTEMPTS):
            await self.rate_limiter.acquire()
            is_last = attempt == MAX_ATTEMPTS - 1

            start = time.monotonic()
            try:
                resp = await self._http_client.get(url)
            except httpx.TransportError as e:
                metrics.record_upstream_request(resource, "error", time.monotonic() - start)
                last_exc = TransientUpstreamError(
                    f"{resource}: transport error ({type(e).__name__}) for {url}", url=url
                )
                if is_last:
                    raise last_exc from e
                sleep_s = backoff_delay(attempt, self.backoff_base)
                logger.warning(
                    f"{resource}: transport error ({type(e).__name__}), retrying in {sleep_s:.2f}s "
                    f"(attempt {attempt + 1}/{MAX_ATTEMPTS})"
                )
                await asyncio.sleep(sleep_s)
                continue

            sc = resp.status_code
            metrics.record_upstream_request(resource, str(sc), time.monotonic() - start)

            if sc in SUCCESS_STATUSES:
                return self._decode(resp, resource, url)
            if sc == 204:
                return None
            if sc == 404:
                raise NotFoundError(f"{resource}: not found: {url}", status_code=sc, url=url)
            if sc == 401:
                raise UnauthorizedError(f"{resource}: unauthorized: {url}", status_code=sc, url=url)
            if sc == 403:
                raise ForbiddenError(f"{resource}: forbidden: {url}", status_code=sc, url=url)

            if sc in RETRYABLE_STATUSES:
                last_exc = TransientUpstreamError(
                    f"{resource}: remote {sc} for {url}", status_code=sc, url=url
                )
                if is_last:
                    raise last_exc
                sleep_s = parse_retry_after(resp.headers.get("Retry-After")) or backoff_delay(
                    attempt, self.backoff_base
                )
                logger.warning(
                    f"{resource}: status {sc}, retrying in {sleep_s:.2f}s "
                    f"(attempt {attempt + 1}/{MAX_ATTEMPTS})"
                )
                await asyncio.sleep(sleep_s)
                continue

            snippet = resp.content[:ERROR_BODY_LIMIT].decode("utf-8", errors="replace").strip()
            raise UnexpectedStatusError(sc, snippet, url=url)

        # Only reachable if MAX_ATTEMPTS is 0
        raise last_exc or TransientUpstreamError(f"{resource}: no attempt made for {url}", url=url)

    @staticmethod
    def _decode(resp: httpx.Response, resource: str, url: str) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"{resource}: invalid JSON from {url}: {e}", status_code=resp.status_code, url=url
            ) from e
