"""Cache key formats shared by the read API and the ingestion workflow.

Ingestion invalidates by rebuilding these keys, so both sides must use the
functions here rather than formatting keys themselves.
"""

SUPPORTED_LANGUAGES = ("en", "fr", "es")
DEFAULT_LANGUAGE = "en"

DEFAULT_REVIEW_LIMIT = 50
MAX_REVIEW_LIMIT = 200
DEFAULT_REVIEW_SORT = "-created_at"

# Review page sizes whose cache entries ingestion evicts (the API default first)
REVIEW_CACHE_LIMITS = (DEFAULT_REVIEW_LIMIT, 100, MAX_REVIEW_LIMIT)


def hotel_key(property_id: int, lang: str) -> str:
    """Key for a hotel view in one language."""
    return f"hotel:{property_id}:{lang.lower()}"


def reviews_key(property_id: int, limit: int, sort: str = DEFAULT_REVIEW_SORT) -> str:
    """Key for one page of a hotel's reviews."""
    return f"reviews:{property_id}:{limit}:{sort}"


def hotel_keys_all_languages(property_id: int) -> list[str]:
    return [hotel_key(property_id, lang) for lang in SUPPORTED_LANGUAGES]


def review_keys_default_variants(property_id: int) -> list[str]:
    return [reviews_key(property_id, limit) for limit in REVIEW_CACHE_LIMITS]
