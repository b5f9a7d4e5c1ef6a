"""Database helpers for the curated location store and the alumni roster."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2 import extras, pool

from alumni_geo.core.config import get_settings
from alumni_geo.models import AlumniRecord, CuratedLocation

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


_SELECT_CURATED = """
SELECT id, standard_name, aliases, latitude, longitude
FROM college_locations
ORDER BY standard_name;
"""

_SELECT_ALUMNI = """
SELECT id, first_name, last_name, cohort_year, college_attending, tracking_status, is_archived
FROM alumni
ORDER BY id;
"""

_UPSERT_CURATED = """
INSERT INTO college_locations (
    standard_name,
    aliases,
    latitude,
    longitude,
    updated_at
) VALUES (
    %(standard_name)s,
    %(aliases)s,
    %(latitude)s,
    %(longitude)s,
    NOW()
)
ON CONFLICT (standard_name) DO UPDATE SET
    aliases = (
        SELECT ARRAY(SELECT DISTINCT unnest(college_locations.aliases || EXCLUDED.aliases))
    ),
    latitude = EXCLUDED.latitude,
    longitude = EXCLUDED.longitude,
    updated_at = NOW()
RETURNING id;
"""


def row_to_curated_location(row: Dict[str, Any]) -> CuratedLocation:
    return CuratedLocation(
        id=row.get("id"),
        standard_name=row.get("standard_name") or "",
        aliases=tuple(row.get("aliases") or ()),
        latitude=row.get("latitude"),
        longitude=row.get("longitude"),
    )


def row_to_alumni_record(row: Dict[str, Any]) -> AlumniRecord:
    return AlumniRecord(
        id=row.get("id"),
        raw_institution_name=row.get("college_attending"),
        is_archived=bool(row.get("is_archived")),
        first_name=row.get("first_name") or "",
        last_name=row.get("last_name") or "",
        cohort_year=row.get("cohort_year"),
        tracking_status=row.get("tracking_status") or "unknown",
    )


def fetch_curated_locations() -> List[CuratedLocation]:
    with get_connection() as conn:
        with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
            cur.execute(_SELECT_CURATED)
            rows = cur.fetchall()
    logger.debug("Fetched %d curated locations", len(rows))
    return [row_to_curated_location(row) for row in rows]


def fetch_alumni() -> List[AlumniRecord]:
    with get_connection() as conn:
        with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
            cur.execute(_SELECT_ALUMNI)
            rows = cur.fetchall()
    logger.debug("Fetched %d alumni", len(rows))
    return [row_to_alumni_record(row) for row in rows]


def insert_curated_location(college_name: str, standard_name: str, latitude: float, longitude: float) -> int:
    """Add or extend a curated mapping; the raw college name becomes an alias."""
    if not college_name or not standard_name:
        raise ValueError("college_name and standard_name are required")

    aliases = [college_name.strip()] if college_name.strip() != standard_name.strip() else []
    params = {
        "standard_name": standard_name.strip(),
        "aliases": aliases,
        "latitude": latitude,
        "longitude": longitude,
    }
    try:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_UPSERT_CURATED, params)
                location_id = cur.fetchone()[0]
            conn.commit()
    except psycopg2.Error as exc:
        logger.error("Failed to store curated location %s: %s", standard_name, exc)
        raise
    logger.info("Stored curated location %s (id=%s)", standard_name, location_id)
    return location_id
