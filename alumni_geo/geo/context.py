"""Build the per-dataset resolution context from curated rows and alumni."""

import logging
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from alumni_geo.geo.names import is_non_college, is_valid_coordinate, normalize
from alumni_geo.models import (
    SOURCE_CURATED,
    SOURCE_EXTERNAL,
    AlumniRecord,
    CuratedLocation,
    Location,
    NameResolution,
    ResolutionContext,
)

logger = logging.getLogger(__name__)


class ResolutionService(Protocol):
    def resolve_names(self, names: Sequence[str]) -> List[NameResolution]:
        ...


def build_location_map(curated_locations: Iterable[CuratedLocation]) -> Dict[str, Location]:
    """Index curated rows by normalized standard name and every alias."""
    location_by_name: Dict[str, Location] = {}
    skipped = 0
    for entry in curated_locations:
        if not is_valid_coordinate(entry.latitude) or not is_valid_coordinate(entry.longitude):
            skipped += 1
            logger.debug("Skipping curated location with invalid coordinates: %s", entry.standard_name)
            continue
        location = Location(
            latitude=float(entry.latitude),
            longitude=float(entry.longitude),
            source=SOURCE_CURATED,
        )
        for name in (entry.standard_name, *(entry.aliases or ())):
            key = normalize(name)
            if key:
                location_by_name[key] = location
    if skipped:
        logger.info("Skipped %d curated locations with invalid coordinates", skipped)
    return location_by_name


def collect_unknown_names(alumni: Iterable[AlumniRecord], location_by_name: Dict[str, Location]) -> List[str]:
    unknowns: Dict[str, None] = {}
    for record in alumni:
        raw = record.raw_institution_name
        if not raw or is_non_college(raw):
            continue
        key = normalize(raw)
        if key and key not in location_by_name:
            unknowns.setdefault(key, None)
    return list(unknowns)


def build_resolution_context(
    curated_locations: Iterable[CuratedLocation],
    alumni: Iterable[AlumniRecord],
    resolution_service: Optional[ResolutionService] = None,
) -> ResolutionContext:
    location_by_name = build_location_map(curated_locations)
    unknowns = collect_unknown_names(alumni, location_by_name)

    resolved_standard_names: Dict[str, str] = {}
    direct_coordinates: Dict[str, Location] = {}

    if unknowns and resolution_service is not None:
        logger.info("Resolving %d unknown institution names", len(unknowns))
        try:
            resolutions = resolution_service.resolve_names(unknowns)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Institution resolution failed; %d names stay unresolved: %s", len(unknowns), exc)
            resolutions = []

        for resolution in resolutions or []:
            key = normalize(resolution.original_name)
            if not key:
                continue
            if resolution.standard_name:
                resolved_standard_names[key] = resolution.standard_name
            if is_valid_coordinate(resolution.latitude) and is_valid_coordinate(resolution.longitude):
                direct_coordinates[key] = Location(
                    latitude=float(resolution.latitude),
                    longitude=float(resolution.longitude),
                    source=SOURCE_EXTERNAL,
                )
        logger.info(
            "Resolution returned %d standard names and %d coordinate pairs",
            len(resolved_standard_names),
            len(direct_coordinates),
        )

    return ResolutionContext(
        location_by_name=location_by_name,
        resolved_standard_name_by_raw_name=resolved_standard_names,
        direct_coordinates_by_raw_name=direct_coordinates,
    )
