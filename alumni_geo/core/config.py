"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_TILE_URL = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
DEFAULT_TILE_ATTRIBUTION = '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a>'
RESOLUTION_BACKENDS = {"directory", "places", "none"}


class ConfigError(RuntimeError):
    """Raised when a configuration value cannot be used."""


@dataclass(frozen=True)
class Settings:
    database_url: str
    google_api_key: str = ""
    resolution_backend: str = "directory"
    college_directory_path: str = "ipeds-institutions.json"
    server_port: int = 8080
    cluster_radius: int = 50
    cluster_max_zoom: int = 20
    cluster_min_points: int = 2
    tile_url_template: str = DEFAULT_TILE_URL
    tile_attribution: str = DEFAULT_TILE_ATTRIBUTION


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    google_api_key = os.getenv("GOOGLE_API_KEY", "")
    resolution_backend = os.getenv("RESOLUTION_BACKEND", "directory").strip().lower() or "directory"
    college_directory_path = os.getenv("COLLEGE_DIRECTORY_PATH", "ipeds-institutions.json")
    server_port = _get_int_env("SERVER_PORT", 8080)
    cluster_radius = _get_int_env("CLUSTER_RADIUS", 50)
    cluster_max_zoom = _get_int_env("CLUSTER_MAX_ZOOM", 20)
    cluster_min_points = _get_int_env("CLUSTER_MIN_POINTS", 2)
    tile_url_template = os.getenv("TILE_URL_TEMPLATE") or DEFAULT_TILE_URL
    tile_attribution = os.getenv("TILE_ATTRIBUTION") or DEFAULT_TILE_ATTRIBUTION

    if resolution_backend not in RESOLUTION_BACKENDS:
        raise ConfigError(
            f"RESOLUTION_BACKEND must be one of {sorted(RESOLUTION_BACKENDS)}, got {resolution_backend!r}"
        )
    if not 0 <= cluster_max_zoom < 30:
        raise ConfigError("CLUSTER_MAX_ZOOM must be between 0 and 29")

    if not database_url:
        logger.warning("DATABASE_URL is not set; curated location lookups will fail.")
    if resolution_backend == "places" and not google_api_key:
        logger.warning("GOOGLE_API_KEY is not configured; Google Places resolution will be disabled.")

    return Settings(
        database_url=database_url,
        google_api_key=google_api_key,
        resolution_backend=resolution_backend,
        college_directory_path=college_directory_path,
        server_port=server_port,
        cluster_radius=cluster_radius,
        cluster_max_zoom=cluster_max_zoom,
        cluster_min_points=cluster_min_points,
        tile_url_template=tile_url_template,
        tile_attribution=tile_attribution,
    )
