"""Utilities for turning resolved alumni into map-ready rows."""

import logging
import math
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Tuple

from alumni_geo.models import AlumniRecord, Cluster, ClusterNode, ResolvedPoint

logger = logging.getLogger(__name__)

GOLDEN_ANGLE_DEGREES = 137.508


def to_location_row(record: AlumniRecord, point: Optional[ResolvedPoint]) -> Dict[str, Any]:
    has_location = point is not None
    return {
        "id": record.id,
        "firstName": record.first_name,
        "lastName": record.last_name,
        "cohortYear": record.cohort_year,
        "college": record.raw_institution_name or "Unknown",
        "trackingStatus": record.tracking_status or "unknown",
        "isArchived": bool(record.is_archived),
        "hasLocation": has_location,
        "latitude": point.latitude if has_location else None,
        "longitude": point.longitude if has_location else None,
        "locationSource": point.source if has_location else "none",
    }


def node_to_feature(node: ClusterNode) -> Dict[str, Any]:
    """GeoJSON feature for one draw-list entry."""
    if isinstance(node, Cluster):
        properties = {
            "cluster": True,
            "cluster_id": node.cluster_id,
            "point_count": node.point_count,
            "expansion_zoom": node.expansion_zoom,
        }
    else:
        properties = {
            "cluster": False,
            "id": node.alumni_id,
            "locationSource": node.source,
            **node.properties,
        }
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [node.longitude, node.latitude]},
        "properties": properties,
    }


def _seed(alumni_id: Any) -> int:
    digits = str(alumni_id)[-3:]
    try:
        return int(digits) or 1
    except ValueError:
        return 1


def jitter_position(alumni_id: Any, latitude: float, longitude: float, duplicate_count: int) -> Tuple[float, float]:
    """Deterministically spread markers that share exact coordinates (~200-500m)."""
    if duplicate_count <= 1 or not (math.isfinite(latitude) and math.isfinite(longitude)):
        return latitude, longitude
    seed = _seed(alumni_id)
    angle = math.radians((seed * GOLDEN_ANGLE_DEGREES) % 360)
    radius = 0.002 + (seed % 3) * 0.001
    return latitude + radius * math.cos(angle), longitude + radius * math.sin(angle)


def jitter_rows(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    rows = list(rows)
    counts = Counter((row["latitude"], row["longitude"]) for row in rows if row.get("hasLocation"))
    jittered = []
    for row in rows:
        if not row.get("hasLocation"):
            jittered.append(row)
            continue
        lat, lon = jitter_position(
            row["id"],
            row["latitude"],
            row["longitude"],
            counts[(row["latitude"], row["longitude"])],
        )
        jittered.append({**row, "displayLatitude": lat, "displayLongitude": lon})
    return jittered
