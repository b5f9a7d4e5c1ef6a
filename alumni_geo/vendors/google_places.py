"""Resolve institution names through the Google Places API."""

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from alumni_geo.models import NameResolution

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"


class GooglePlacesError(RuntimeError):
    """Raised when the Places API returns a non-successful response."""


def text_search(query: str, api_key: str, place_type: Optional[str] = "university") -> Dict[str, Any]:
    params = {"query": query, "key": api_key}
    if place_type:
        params["type"] = place_type
    response = _SESSION.get(f"{_BASE_URL}/textsearch/json", params=params, timeout=10)
    response.raise_for_status()
    payload = response.json()
    status = payload.get("status")
    if status not in {"OK", "ZERO_RESULTS"}:
        logger.error("text_search failed: status=%s, error_message=%s", status, payload.get("error_message"))
        raise GooglePlacesError(payload.get("error_message") or status)
    return payload


def to_resolution(original_name: str, result: Optional[Dict[str, Any]]) -> NameResolution:
    if not result:
        return NameResolution(original_name=original_name)
    location = result.get("geometry", {}).get("location", {})
    return NameResolution(
        original_name=original_name,
        standard_name=result.get("name"),
        latitude=location.get("lat"),
        longitude=location.get("lng"),
        confidence=0.7,
    )


class PlacesResolver:
    """Batch resolver backed by Places text search.

    Names that fail individually come back unresolved; the batch never raises
    for a single bad lookup.
    """

    def __init__(self, api_key: str, place_type: Optional[str] = "university") -> None:
        if not api_key:
            raise RuntimeError("GOOGLE_API_KEY is required")
        self._api_key = api_key
        self._place_type = place_type

    def resolve_names(self, names: Sequence[str]) -> List[NameResolution]:
        resolutions: List[NameResolution] = []
        for name in names:
            try:
                payload = text_search(name, self._api_key, self._place_type)
            except (requests.RequestException, GooglePlacesError) as exc:
                logger.warning("Places lookup failed for %s: %s", name, exc)
                resolutions.append(NameResolution(original_name=name))
                continue
            results = payload.get("results", [])
            resolutions.append(to_resolution(name, results[0] if results else None))
        logger.info("Places resolved %d/%d names", sum(1 for r in resolutions if r.standard_name), len(names))
        return resolutions
