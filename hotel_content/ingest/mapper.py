"""Map loosely-shaped Cupid JSON documents onto normalized records.

The upstream API is inconsistent about key names, nesting and value types,
so every normalized attribute is resolved through an ordered list of
candidate paths (dot-separated for nested access). The first candidate that
yields a usable value wins; the order of each list is a priority policy and
must be preserved.

Nothing in this module performs I/O or raises: missing or malformed fields
simply come back as ``None`` / empty collections.
"""

import copy
import hashlib
import math
from typing import Any, Iterable, Optional

from hotel_content.ingest.base import Hotel, HotelI18n, Review

# ==========================================================================
# Alias registries
# ==========================================================================

REVIEW_ALIASES: dict[str, list[str]] = {
    "author": ["author", "name", "userName", "reviewer", "reviewer.name"],
    "author_first": ["first_name", "firstname", "user.first_name", "user.firstName"],
    "author_last": ["last_name", "lastname", "user.last_name", "user.lastName"],
    "title": ["title", "review_title", "headline", "summary"],
    "text": ["text", "review_text", "review", "comment", "content", "body", "message"],
    "lang": ["lang", "language", "language_code", "languageCode", "locale"],
    "source": ["source", "platform", "provider", "site", "origin"],
    "source_id": ["id", "review_id", "reviewId"],
    "rating": [
        "rating", "rate", "score", "rating.value", "scores.overall",
        "overall_score", "average_score",
    ],
    "pros": ["pros", "review.pros", "positives"],
    "cons": ["cons", "review.cons", "negatives"],
}

I18N_ALIASES: dict[str, list[str]] = {
    "name": ["name", "hotel_name", "translations.name"],
    "description": [
        "description", "markdown_description", "translations.description", "description_long",
    ],
    "policies": ["policies", "important_info", "translations.policies"],
    "address": [
        "address", "address.line", "address_raw", "full_address",
        "address1", "address_line1", "location.address",
        "street", "street_address",
    ],
}

PROPERTY_ALIASES: dict[str, list[str]] = {
    "id": ["hotel_id", "cupid_id", "id"],
    "brand_id": ["chain_id", "brand_id"],
    "stars": ["stars", "rating.stars", "rating"],
    "lat": ["latitude", "lat", "location.lat"],
    "lon": ["longitude", "lon", "lng", "location.lon", "location.lng"],
    "country": ["address.country", "country", "countryCode", "country_code"],
    "city": ["address.city", "city", "locality", "town"],
    "address": [
        "address_raw", "address", "address.line", "full_address",
        "location.address", "formatted_address",
    ],
    "amenities": ["facilities", "amenities"],
    "images": ["photos", "images"],
}

# Components used to build an address when no single field is present,
# nested under "address" first, then flattened at the document root.
ADDRESS_COMPONENTS: list[str] = [
    "address.addressLine1",
    "address.addressLine2",
    "address.street",
    "address.district",
    "address.city",
    "address.state",
    "address.postcode",
    "address.zip",
    "address.country",
    "street",
    "city",
    "postcode",
    "zip",
    "country",
]


# ==========================================================================
# Lookup helpers
# ==========================================================================

def lookup(doc: Any, path: str) -> Any:
    """
    Resolve a dot-separated path inside nested dicts (and lists, by index).

    Args:
        doc: Decoded JSON value
        path: Path such as "address.city" or "photos.0.url"

    Returns:
        The value at the path, or None if any segment is missing
    """
    current = doc
    for part in path.split("."):
        if isinstance(current, dict):
            if part not in current:
                return None
            current = current[part]
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return None
            current = current[index]
        else:
            return None
    return current


def lookup_str(doc: Any, path: str) -> Optional[str]:
    """Trimmed non-empty string at path, else None."""
    value = lookup(doc, path)
    if isinstance(value, str):
        value = value.strip()
        if value:
            return value
    return None


def first_str(doc: Any, paths: Iterable[str]) -> Optional[str]:
    """First trimmed non-empty string among the candidate paths."""
    for path in paths:
        value = lookup_str(doc, path)
        if value is not None:
            return value
    return None


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", ".")
        if not text:
            return None
        try:
            result = float(text)
        except ValueError:
            return None
    else:
        return None
    # NaN/inf cannot be stored or serialized
    return result if math.isfinite(result) else None


def first_float(doc: Any, paths: Iterable[str]) -> Optional[float]:
    """First number among the paths; accepts numbers and strings like "8,5"."""
    for path in paths:
        value = _to_float(lookup(doc, path))
        if value is not None:
            return value
    return None


def first_int(doc: Any, paths: Iterable[str]) -> Optional[int]:
    """First integer among the paths; floats are truncated, strings must be integral."""
    for path in paths:
        value = lookup(doc, path)
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            if math.isfinite(value):
                return int(value)
            continue
        if isinstance(value, str) and value.strip():
            try:
                return int(value.strip())
            except ValueError:
                continue
    return None


def first_str_list(doc: Any, paths: Iterable[str]) -> list[str]:
    """
    First non-empty list of strings among the paths.

    List items may be plain strings or objects carrying a "url", "src" or
    "name" string (checked in that order).
    """
    for path in paths:
        raw = lookup(doc, path)
        if not isinstance(raw, list):
            continue
        out = []
        for item in raw:
            if isinstance(item, str):
                if item.strip():
                    out.append(item.strip())
            elif isinstance(item, dict):
                for key in ("url", "src", "name"):
                    candidate = item.get(key)
                    if isinstance(candidate, str) and candidate.strip():
                        out.append(candidate.strip())
                        break
        if out:
            return out
    return []


def _first_identifier(doc: Any, paths: Iterable[str]) -> Optional[str]:
    """Like first_str, but integer identifiers are accepted and stringified."""
    for path in paths:
        value = lookup(doc, path)
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            return str(value)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def top_level_keys(aliases: dict[str, list[str]]) -> set[str]:
    """Top-level segment of every alias path."""
    return {path.split(".", 1)[0] for paths in aliases.values() for path in paths}


def _as_document(doc: Any) -> dict[str, Any]:
    return doc if isinstance(doc, dict) else {}


# ==========================================================================
# Property mapper
# ==========================================================================

def compose_address(doc: Any) -> Optional[str]:
    """
    Build an address from its components, joined by ", " in a fixed order.

    Empty components are skipped; everything else is kept, including a
    city or country present both nested and flat. Returns None when no
    component is present.
    """
    parts: list[str] = []
    for path in ADDRESS_COMPONENTS:
        value = lookup_str(doc, path)
        if value is not None:
            parts.append(value)
    return ", ".join(parts) if parts else None


def map_property(doc: Any, property_id: Optional[int] = None) -> Hotel:
    """
    Map a property document onto a Hotel record.

    Args:
        doc: Decoded property payload
        property_id: Id the payload was fetched for; it takes precedence over
                     any id found in the document so child rows always
                     reference the requested property

    Returns:
        Hotel with the original payload kept in ``raw``
    """
    doc = _as_document(doc)

    if property_id is None:
        property_id = first_int(doc, PROPERTY_ALIASES["id"]) or 0

    stars = first_float(doc, PROPERTY_ALIASES["stars"])
    address = first_str(doc, PROPERTY_ALIASES["address"]) or compose_address(doc)

    return Hotel(
        id=property_id,
        brand_id=first_int(doc, PROPERTY_ALIASES["brand_id"]),
        stars=int(stars) if stars is not None else None,
        lat=first_float(doc, PROPERTY_ALIASES["lat"]),
        lon=first_float(doc, PROPERTY_ALIASES["lon"]),
        country=first_str(doc, PROPERTY_ALIASES["country"]),
        city=first_str(doc, PROPERTY_ALIASES["city"]),
        address_raw=address,
        amenities=first_str_list(doc, PROPERTY_ALIASES["amenities"]),
        images=first_str_list(doc, PROPERTY_ALIASES["images"]),
        raw=copy.deepcopy(doc),
    )


# ==========================================================================
# Reviews mapper
# ==========================================================================

def synthesize_source_id(
    author: Optional[str],
    title: Optional[str],
    text: Optional[str],
    lang: Optional[str],
    rating: Optional[float],
) -> str:
    """Stable review id: SHA-1 over author|title|text|lang|rating(3 decimals)."""
    rating_part = f"{rating:.3f}" if rating is not None else ""
    signature = "|".join([author or "", title or "", text or "", lang or "", rating_part])
    return hashlib.sha1(signature.encode("utf-8")).hexdigest()


def _review_author(doc: dict[str, Any]) -> Optional[str]:
    author = first_str(doc, REVIEW_ALIASES["author"])
    if author is not None:
        return author

    parts = [
        first_str(doc, REVIEW_ALIASES["author_first"]),
        first_str(doc, REVIEW_ALIASES["author_last"]),
    ]
    full = " ".join(p for p in parts if p)
    return full or None


def _review_text(doc: dict[str, Any]) -> Optional[str]:
    text = first_str(doc, REVIEW_ALIASES["text"])
    if text is not None:
        return text

    lines = []
    pros = lookup_str(doc, "pros")
    cons = lookup_str(doc, "cons")
    if pros:
        lines.append(f"Pros: {pros}")
    if cons:
        lines.append(f"Cons: {cons}")
    return "\n".join(lines) or None


def _review_aspects(doc: dict[str, Any]) -> Optional[dict[str, list[str]]]:
    aspects: dict[str, list[str]] = {}
    for key in ("pros", "cons"):
        paths = REVIEW_ALIASES[key]
        values = first_str_list(doc, paths)
        if not values:
            single = first_str(doc, [p for p in paths if "." not in p])
            if single:
                values = [single]
        if values:
            aspects[key] = values
    return aspects or None


def map_review(property_id: int, doc: Any) -> Review:
    """Map a single review document. See ``map_reviews``."""
    doc = _as_document(doc)

    author = _review_author(doc)
    title = first_str(doc, REVIEW_ALIASES["title"])
    text = _review_text(doc)
    lang = first_str(doc, REVIEW_ALIASES["lang"])
    rating = first_float(doc, REVIEW_ALIASES["rating"])

    source_id = _first_identifier(doc, REVIEW_ALIASES["source_id"])
    if source_id is None:
        source_id = synthesize_source_id(author, title, text, lang, rating)

    return Review(
        property_id=property_id,
        source_id=source_id,
        author=author,
        rating=rating,
        lang=lang,
        title=title,
        text=text,
        aspects=_review_aspects(doc),
        source=first_str(doc, REVIEW_ALIASES["source"]),
        raw=copy.deepcopy(doc),
    )


def map_reviews(property_id: int, docs: Iterable[Any]) -> list[Review]:
    """
    Map a list of review documents for one property.

    Author falls back to first + last name; text falls back to "Pros:" /
    "Cons:" lines; a missing upstream id is replaced by a content hash so
    re-ingesting the same review is idempotent.
    """
    return [map_review(property_id, doc) for doc in docs]


# ==========================================================================
# Localized fields mapper
# ==========================================================================

_I18N_KNOWN_KEYS = top_level_keys(I18N_ALIASES)


def map_i18n(property_id: int, lang: str, doc: Any) -> HotelI18n:
    """
    Map a translation document for one language.

    Top-level keys that no localized alias covers are copied verbatim into
    ``extras``.
    """
    doc = _as_document(doc)

    extras = {
        key: copy.deepcopy(value)
        for key, value in doc.items()
        if key not in _I18N_KNOWN_KEYS
    }

    return HotelI18n(
        property_id=property_id,
        lang=lang,
        name=first_str(doc, I18N_ALIASES["name"]),
        description=first_str(doc, I18N_ALIASES["description"]),
        policies=first_str(doc, I18N_ALIASES["policies"]),
        address=first_str(doc, I18N_ALIASES["address"]),
        extras=extras,
    )
