"""Map a single raw institution name to a location using a resolution context."""

from typing import Any, Optional

from alumni_geo.geo.names import is_non_college, normalize, parse_coordinates
from alumni_geo.models import AlumniRecord, Location, ResolutionContext, ResolvedPoint


def resolve_to_location(raw_name: Optional[str], context: Optional[ResolutionContext]) -> Optional[Location]:
    """Resolve a raw name, first match wins.

    1. the resolver's standard name, looked up in the curated table
    2. coordinates returned directly by the resolver
    3. the raw name itself in the curated table
    """
    if context is None:
        return None
    key = normalize(raw_name)
    if not key:
        return None

    standard_name = context.resolved_standard_name_by_raw_name.get(key)
    if standard_name:
        hit = context.location_by_name.get(normalize(standard_name))
        if hit is not None:
            return hit

    direct = context.direct_coordinates_by_raw_name.get(key)
    if direct is not None:
        return direct

    return context.location_by_name.get(key)


def has_location_coords(location: Any) -> bool:
    if location is None:
        return False
    return parse_coordinates(location.latitude, location.longitude) is not None


def resolve_record(record: AlumniRecord, context: Optional[ResolutionContext]) -> Optional[ResolvedPoint]:
    raw = record.raw_institution_name
    if not raw or is_non_college(raw):
        return None
    location = resolve_to_location(raw, context)
    if not has_location_coords(location):
        return None
    return ResolvedPoint(
        alumni_id=record.id,
        latitude=location.latitude,
        longitude=location.longitude,
        source=location.source,
        properties={
            "firstName": record.first_name,
            "lastName": record.last_name,
            "cohortYear": record.cohort_year,
            "college": raw,
            "trackingStatus": record.tracking_status,
        },
    )
