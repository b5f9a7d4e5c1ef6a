"""Institution name cleanup and classification helpers."""

import math
import re
from typing import Any, Optional, Tuple

# " — Ithaca, NY", " - Chestnut Hill, MA" and similar trailing location suffixes.
_LOCATION_SUFFIX = re.compile(r"\s+[-—–]\s+[A-Za-z .'-]+,\s*[A-Z]{2}$")
_WHITESPACE = re.compile(r"\s+")

NON_COLLEGE_KEYWORDS = (
    "work",
    "military",
    "armed forces",
    "trade",
    "hvac",
    "carpentry",
)


def clean_college_name(name: Optional[str]) -> str:
    """Strip a trailing " — City, ST" suffix from a college name.

    >>> clean_college_name("Cornell University — Ithaca, NY")
    'Cornell University'
    """
    if not name or not isinstance(name, str):
        return ""
    return _LOCATION_SUFFIX.sub("", name.strip()).strip()


def has_location_suffix(name: Optional[str]) -> bool:
    if not name or not isinstance(name, str):
        return False
    return bool(_LOCATION_SUFFIX.search(name.strip()))


def normalize(name: Optional[str]) -> str:
    """Canonical lookup key for an institution name."""
    cleaned = clean_college_name((name or "").strip())
    return _WHITESPACE.sub(" ", cleaned).lower()


def is_non_college(name: Optional[str]) -> bool:
    """True for employment, military and trade entries, or an empty/"na" name."""
    lower = clean_college_name(name or "").lower()
    if lower in {"", "na"}:
        return True
    return any(keyword in lower for keyword in NON_COLLEGE_KEYWORDS)


def is_valid_coordinate(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(str(value).strip()))
    except (TypeError, ValueError):
        return False


def parse_coordinates(lat: Any, lon: Any) -> Optional[Tuple[float, float]]:
    if not (is_valid_coordinate(lat) and is_valid_coordinate(lon)):
        return None
    lat_num = float(str(lat).strip())
    lon_num = float(str(lon).strip())
    if not -90 <= lat_num <= 90:
        return None
    if not -180 <= lon_num <= 180:
        return None
    return lat_num, lon_num
