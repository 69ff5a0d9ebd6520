# tools/places.py
"""Venue search using Google Places API (New) v1 - Text Search."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from tools.opening_hours import parse_opening_hours
from tools.weather import is_outdoor_venue
from workflows.errors import ConfigurationError, PlacesServiceError
from workflows.schemas import Coordinates, Venue

logger = logging.getLogger(__name__)

BASE = "https://places.googleapis.com/v1"

# Places types accepted as ``includedType``; anything else is sent as text only.
SEARCHABLE_TYPES = frozenset({
    "restaurant",
    "cafe",
    "bar",
    "museum",
    "art_gallery",
    "park",
    "shopping_mall",
    "tourist_attraction",
    "night_club",
    "bakery",
    "movie_theater",
    "zoo",
    "library",
})

FIELD_MASK = ",".join([
    "places.id",
    "places.displayName",
    "places.formattedAddress",
    "places.location",
    "places.rating",
    "places.userRatingCount",
    "places.priceLevel",
    "places.types",
    "places.primaryType",
    "places.regularOpeningHours",
])

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _RETRYABLE_STATUS
    return isinstance(exc, httpx.RequestError)


@retry(
    retry=retry_if_exception(_is_retryable),
    wait=wait_exponential(multiplier=0.6, min=0.6, max=6),
    stop=stop_after_attempt(3),
    reraise=True,
)
def _request(method: str, url: str, **kw) -> httpx.Response:
    with httpx.Client(timeout=kw.pop("timeout", 20)) as c:
        r = c.request(method, url, **kw)
        r.raise_for_status()
        return r


def search_places(
    query: str,
    *,
    api_key: Optional[str],
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius_m: int = 5000,
    included_type: Optional[str] = None,
    limit: int = 10,
    timeout: float = 20.0,
) -> List[Dict[str, Any]]:
    """
    Search for venues using Google Places API (New) v1 Text Search.

    Args:
        query: Free-text query (e.g., "quiet workspace cafe")
        lat, lng: Optional location bias center
        radius_m: Bias radius in meters, only used if lat/lng provided
        included_type: Optional Places type; ignored unless it is a searchable type
        limit: Max results (1-20)

    Returns:
        List of normalized place dicts with keys:
        - id, source, name, rating, review_count, address, coord, price_level,
          types, opening_hours, raw

    Raises:
        PlacesServiceError: on HTTP or transport failure after retries.
    """
    if not api_key:
        raise ConfigurationError("Missing GOOGLE_MAPS_API_KEY.")

    headers = {
        "X-Goog-Api-Key": api_key,
        # Field mask is required for v1
        "X-Goog-FieldMask": FIELD_MASK,
        "Content-Type": "application/json",
    }

    payload: Dict[str, Any] = {
        "textQuery": query,
        "pageSize": max(1, min(limit, 20)),
        "rankPreference": "RELEVANCE",
    }
    if included_type in SEARCHABLE_TYPES:
        payload["includedType"] = included_type

    if lat is not None and lng is not None:
        payload["locationBias"] = {
            "circle": {
                "center": {"latitude": lat, "longitude": lng},
                "radius": float(radius_m),
            }
        }

    try:
        r = _request("POST", f"{BASE}/places:searchText", headers=headers, json=payload, timeout=timeout)
    except httpx.HTTPStatusError as e:
        detail = e.response.text[:300] if e.response.text else ""
        raise PlacesServiceError(f"Places API returned {e.response.status_code}: {detail}") from e
    except httpx.RequestError as e:
        raise PlacesServiceError(f"Places API request failed: {e}") from e

    data = r.json()
    out: List[Dict[str, Any]] = []

    for p in data.get("places", []):
        loc = p.get("location") or {}
        out.append({
            "id": p.get("id"),
            "source": "google",
            "name": (p.get("displayName") or {}).get("text"),
            "rating": p.get("rating"),
            "review_count": p.get("userRatingCount"),
            "address": p.get("formattedAddress"),
            "coord": {
                "lat": loc.get("latitude"),
                "lng": loc.get("longitude"),
            },
            "price_level": p.get("priceLevel"),
            "types": p.get("types") or ([p["primaryType"]] if p.get("primaryType") else []),
            "opening_hours": p.get("regularOpeningHours"),
            "raw": p,
        })

    logger.debug(f"Places search '{query}' returned {len(out)} results")
    return out


def to_venue(place: Dict[str, Any]) -> Optional[Venue]:
    """Convert a normalized place dict into a ``Venue``; None if it has no id or name."""
    if not place.get("id") or not place.get("name"):
        return None

    coord = place.get("coord") or {}
    coordinates = None
    if coord.get("lat") is not None and coord.get("lng") is not None:
        coordinates = Coordinates(lat=coord["lat"], lng=coord["lng"])

    types = tuple(place.get("types") or ())
    return Venue(
        external_id=place["id"],
        name=place["name"],
        address=place.get("address"),
        coordinates=coordinates,
        categories=types,
        rating=place.get("rating"),
        user_rating_count=place.get("review_count"),
        price_level=place.get("price_level"),
        opening_hours=parse_opening_hours(place.get("opening_hours")),
        is_outdoor=is_outdoor_venue(types, place["name"]),
        source=place.get("source", "google"),
        raw=place.get("raw"),
    )


__all__ = ["FIELD_MASK", "SEARCHABLE_TYPES", "search_places", "to_venue"]
