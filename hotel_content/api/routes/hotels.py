"""Hotel and review read routes."""

import hashlib
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from hotel_content.api.deps import get_language, get_query_service
from hotel_content.cache.keys import DEFAULT_REVIEW_LIMIT, DEFAULT_REVIEW_SORT, MAX_REVIEW_LIMIT
from hotel_content.ingest.base import HotelNotFound, PageQuery
from hotel_content.query import QueryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/hotels", tags=["hotels"])


class CoordsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    lat: float
    lon: float


class HotelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    language: str
    name: str | None = None
    description: str | None = None
    policies: str | None = None
    stars: int | None = None
    coords: CoordsResponse | None = None
    country: str | None = None
    city: str | None = None
    address: str | None = None
    amenities: list[str] = []
    images: list[str] = []


class HotelSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str | None = None
    stars: int | None = None
    coords: CoordsResponse | None = None
    country: str | None = None
    city: str | None = None


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    source_id: str | None = None
    source: str | None = None
    author: str | None = None
    rating: float | None = None
    lang: str | None = None
    title: str | None = None
    text: str | None = None
    aspects: dict | None = None
    created_at: datetime | None = None


class ReviewsPageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    items: list[ReviewResponse]


def problem(status_code: int, title: str, detail: str) -> JSONResponse:
    """RFC 7807 problem response."""
    return JSONResponse(
        status_code=status_code,
        content={"type": "about:blank", "title": title, "status": status_code, "detail": detail},
        media_type="application/problem+json",
    )


def etag_response(request: Request, model: BaseModel, headers: dict | None = None) -> Response:
    """
    Serialize once, tag with a weak SHA-1 ETag, and answer 304 on a match.
    """
    body = model.model_dump_json().encode("utf-8")
    etag = f'W/"{hashlib.sha1(body).hexdigest()}"'
    response_headers = {"ETag": etag, **(headers or {})}

    if request.headers.get("If-None-Match") == etag:
        return Response(status_code=304, headers={"ETag": etag})
    return Response(content=body, media_type="application/json", headers=response_headers)


@router.get("", response_model=list[HotelSummaryResponse])
async def list_hotels(
    lang: str = Depends(get_language),
    limit: int = Query(DEFAULT_REVIEW_LIMIT, ge=1, le=MAX_REVIEW_LIMIT),
    queries: QueryService = Depends(get_query_service),
):
    """List stored hotels ordered by id, with names in the requested language."""
    hotels = await queries.list_hotels(lang, limit)
    return [HotelSummaryResponse.model_validate(h) for h in hotels]


@router.get("/{hotel_id}", response_model=HotelResponse)
async def get_hotel(
    hotel_id: int,
    request: Request,
    lang: str = Depends(get_language),
    queries: QueryService = Depends(get_query_service),
):
    """
    Get a hotel merged with one language's localized fields.

    The language comes from ?lang= or the Accept-Language header (fr, es,
    default en).
    """
    try:
        view = await queries.get_hotel(hotel_id, lang)
    except HotelNotFound:
        return problem(404, "Not Found", "hotel not found")

    model = HotelResponse.model_validate(view)
    return etag_response(request, model, headers={"Content-Language": view.language})


@router.get("/{hotel_id}/reviews", response_model=ReviewsPageResponse)
async def list_reviews(
    hotel_id: int,
    request: Request,
    limit: int = Query(DEFAULT_REVIEW_LIMIT, ge=1, le=MAX_REVIEW_LIMIT),
    queries: QueryService = Depends(get_query_service),
):
    """Get a hotel's reviews, newest first."""
    page = PageQuery(limit=limit, sort=DEFAULT_REVIEW_SORT)
    result = await queries.list_reviews(hotel_id, page)
    return etag_response(request, ReviewsPageResponse.model_validate(result))
