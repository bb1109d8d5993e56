"""FastAPI dependencies."""

from fastapi import Header, Request

from hotel_content.cache.keys import DEFAULT_LANGUAGE
from hotel_content.query import QueryService


def get_query_service(request: Request) -> QueryService:
    """Dependency for the read-side query service (built in the app lifespan)."""
    return request.app.state.query_service


def select_language(accept_language: str | None) -> str:
    """
    Pick a supported language from an Accept-Language header.

    Only the leading tag is considered: "fr..." -> fr, "es..." -> es,
    anything else -> en.
    """
    value = (accept_language or "").strip().lower()
    if value.startswith("fr"):
        return "fr"
    if value.startswith("es"):
        return "es"
    return DEFAULT_LANGUAGE


async def get_language(
    lang: str | None = None,
    accept_language: str | None = Header(None, alias="Accept-Language"),
) -> str:
    """Dependency resolving the response language (?lang= wins over the header)."""
    if lang and lang.strip():
        return lang.strip().lower()
    return select_language(accept_language)
