"""HTTP entrypoint serving alumni locations, clusters and curation reports."""

from __future__ import annotations

import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request

from alumni_geo.core import db
from alumni_geo.core.config import get_settings
from alumni_geo.etl.transform import jitter_rows, node_to_feature
from alumni_geo.geo.dataset import DatasetLoader, DatasetSnapshot
from alumni_geo.geo.names import parse_coordinates
from alumni_geo.geo.unmapped import build_unmapped_analysis, build_unmapped_groups
from alumni_geo.mapping.cluster_index import ClusterNotFoundError
from alumni_geo.vendors.registry import get_resolution_service

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & executor ----------
app = Flask(__name__)
_executor = ThreadPoolExecutor(max_workers=2)


@lru_cache(maxsize=1)
def get_loader() -> DatasetLoader:
    settings = get_settings()
    return DatasetLoader(
        get_resolution_service(settings),
        index_options={
            "radius": settings.cluster_radius,
            "max_zoom": settings.cluster_max_zoom,
            "min_points": settings.cluster_min_points,
        },
    )


def load_dataset() -> DatasetSnapshot:
    """Fetch curated rows and alumni, then rebuild context and index."""
    curated = db.fetch_curated_locations()
    alumni = db.fetch_alumni()
    logger.info("Loading dataset: curated=%d alumni=%d", len(curated), len(alumni))
    return get_loader().load_latest(curated, alumni)


def current_snapshot() -> DatasetSnapshot:
    return get_loader().snapshot or load_dataset()


def _finite(raw: str, name: str) -> float:
    value = float(raw)
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite")
    return value


def _parse_bbox(raw: Optional[str]) -> Tuple[float, float, float, float]:
    if not raw:
        return (-180.0, -85.0, 180.0, 85.0)
    parts = raw.split(",")
    if len(parts) != 4:
        raise ValueError("bbox must be west,south,east,north")
    west, south, east, north = (_finite(p, "bbox") for p in parts)
    return west, south, east, north


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; never touches the database."""
    settings = get_settings()
    snapshot = get_loader().snapshot
    return (
        jsonify(
            {
                "status": "ok",
                "resolution_backend": settings.resolution_backend,
                "dataset_generation": snapshot.generation if snapshot else None,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.get("/map-config")
def map_config() -> Any:
    settings = get_settings()
    return jsonify(
        {
            "tileUrlTemplate": settings.tile_url_template,
            "attribution": settings.tile_attribution,
            "clusterMaxZoom": settings.cluster_max_zoom,
        }
    )


@app.get("/alumni-locations")
def alumni_locations() -> Any:
    snapshot = current_snapshot()
    rows = jitter_rows(snapshot.rows)
    mapped = sum(1 for row in rows if row["hasLocation"])
    logger.info("Serving %d alumni locations (%d mapped)", len(rows), mapped)
    return jsonify(rows)


@app.get("/unmapped-colleges")
def unmapped_colleges() -> Any:
    snapshot = current_snapshot()
    groups = build_unmapped_groups(snapshot.records, snapshot.context)
    return jsonify([group.to_dict() for group in groups])


@app.get("/unmapped-analysis")
def unmapped_analysis() -> Any:
    include_archived = request.args.get("includeArchived", "") == "true"
    snapshot = current_snapshot()
    return jsonify(build_unmapped_analysis(snapshot.records, snapshot.context, include_archived))


@app.get("/college-locations")
def list_college_locations() -> Any:
    locations = db.fetch_curated_locations()
    return jsonify(
        [
            {
                "id": loc.id,
                "standardName": loc.standard_name,
                "aliases": list(loc.aliases),
                "latitude": loc.latitude,
                "longitude": loc.longitude,
            }
            for loc in locations
        ]
    )


@app.post("/college-locations")
def add_college_location() -> Any:
    """Add a curated mapping from the manual curation workflow."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}

    required = ("collegeName", "standardName", "latitude", "longitude")
    missing = [f for f in required if payload.get(f) in (None, "")]
    if missing:
        return jsonify({"error": f"missing fields: {', '.join(missing)}"}), 400

    coords = parse_coordinates(payload["latitude"], payload["longitude"])
    if coords is None:
        return jsonify({"error": "latitude and longitude must be valid coordinates"}), 400

    college_name = str(payload["collegeName"]).strip()
    standard_name = str(payload["standardName"]).strip()
    try:
        location_id = db.insert_curated_location(college_name, standard_name, coords[0], coords[1])
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception as exc:  # noqa: BLE001
        logger.exception("Failed to add curated location %s: %s", standard_name, exc)
        return jsonify({"error": "failed to store location"}), 500

    _executor.submit(_reload_safe)
    return jsonify({"data": {"id": location_id, "standardName": standard_name}}), 201


@app.get("/clusters")
def clusters() -> Any:
    try:
        bbox = _parse_bbox(request.args.get("bbox"))
        zoom = _finite(request.args.get("zoom", "0"), "zoom")
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    snapshot = current_snapshot()
    nodes = snapshot.index.get_clusters(bbox, zoom)
    return jsonify(
        {
            "type": "FeatureCollection",
            "generation": snapshot.generation,
            "features": [node_to_feature(node) for node in nodes],
        }
    )


@app.get("/clusters/<int:cluster_id>/children")
def cluster_children(cluster_id: int) -> Any:
    snapshot = current_snapshot()
    try:
        children = snapshot.index.get_children(cluster_id)
    except ClusterNotFoundError:
        return jsonify({"error": f"unknown cluster {cluster_id}"}), 404
    return jsonify({"type": "FeatureCollection", "features": [node_to_feature(node) for node in children]})


@app.get("/clusters/<int:cluster_id>/expansion-zoom")
def cluster_expansion_zoom(cluster_id: int) -> Any:
    snapshot = current_snapshot()
    try:
        zoom = snapshot.index.get_expansion_zoom(cluster_id)
    except ClusterNotFoundError:
        return jsonify({"error": f"unknown cluster {cluster_id}"}), 404
    return jsonify({"clusterId": cluster_id, "expansionZoom": zoom})


@app.post("/dataset/reload")
def reload_dataset() -> Any:
    logger.info("Queueing dataset reload")
    _executor.submit(_reload_safe)
    return jsonify({"data": {"status": "queued"}}), 202


# ---------- Internals ----------


def _reload_safe() -> None:
    try:
        load_dataset()
    except Exception as exc:  # noqa: BLE001
        logger.exception("Dataset reload failed: %s", exc)


def main() -> None:
    port = int(os.getenv("PORT") or get_settings().server_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
