"""Pick the configured institution resolution backend."""

import logging
from typing import Optional

from alumni_geo.core.config import Settings
from alumni_geo.geo.context import ResolutionService
from alumni_geo.vendors.college_directory import CollegeDirectory
from alumni_geo.vendors.google_places import PlacesResolver

logger = logging.getLogger(__name__)


def get_resolution_service(settings: Settings) -> Optional[ResolutionService]:
    backend = settings.resolution_backend
    if backend == "none":
        logger.info("External institution resolution disabled")
        return None
    if backend == "places":
        if not settings.google_api_key:
            logger.warning("GOOGLE_API_KEY is not configured; resolution disabled")
            return None
        return PlacesResolver(settings.google_api_key)
    try:
        return CollegeDirectory.from_file(settings.college_directory_path)
    except (OSError, ValueError) as exc:
        logger.warning("College directory unavailable (%s); resolution disabled: %s", settings.college_directory_path, exc)
        return None
