"""Hierarchical point clustering for map viewports.

Points are projected to spherical Mercator in the unit square. For every zoom
level from ``max_zoom`` down to ``min_zoom`` the previous level is greedily
merged: each unvisited node absorbs all unvisited neighbours within
``radius / (extent * 2**zoom)`` and, if the merged count reaches
``min_points``, a weighted-centroid cluster replaces them. One KD-tree is kept
per level, so viewport queries never recompute anything.

Cluster ids encode the level they were created on: ``(i << 5) + (zoom + 1) +
len(points)`` where ``i`` is the position of the seed node in the level below.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.spatial import cKDTree

from alumni_geo.models import BoundingBox, Cluster, ClusterNode, ResolvedPoint

logger = logging.getLogger(__name__)

_ZOOM_BITS = 5


class ClusterNotFoundError(KeyError):
    """Raised for cluster ids that do not belong to this index."""


@dataclass(slots=True)
class _Node:
    x: float
    y: float
    zoom: float
    point_index: int
    num_points: int
    parent_id: int = -1
    cluster_id: Optional[int] = None


class _Level:
    __slots__ = ("nodes", "xs", "ys", "tree")

    def __init__(self, nodes: List[_Node]) -> None:
        self.nodes = nodes
        self.xs = np.fromiter((n.x for n in nodes), dtype=float, count=len(nodes))
        self.ys = np.fromiter((n.y for n in nodes), dtype=float, count=len(nodes))
        self.tree = cKDTree(np.column_stack((self.xs, self.ys))) if nodes else None

    def within(self, x: float, y: float, r: float) -> List[int]:
        if self.tree is None:
            return []
        return self.tree.query_ball_point((x, y), r)

    def in_range(self, min_x: float, min_y: float, max_x: float, max_y: float) -> List[int]:
        if not self.nodes:
            return []
        mask = (self.xs >= min_x) & (self.xs <= max_x) & (self.ys >= min_y) & (self.ys <= max_y)
        return np.flatnonzero(mask).tolist()


def lng_x(lng: float) -> float:
    return lng / 360.0 + 0.5


def lat_y(lat: float) -> float:
    sin = math.sin(lat * math.pi / 180.0)
    if sin >= 1.0:
        return 0.0
    if sin <= -1.0:
        return 1.0
    y = 0.5 - 0.25 * math.log((1 + sin) / (1 - sin)) / math.pi
    return min(max(y, 0.0), 1.0)


def x_lng(x: float) -> float:
    return (x - 0.5) * 360.0


def y_lat(y: float) -> float:
    y2 = (180.0 - y * 360.0) * math.pi / 180.0
    return 360.0 * math.atan(math.exp(y2)) / math.pi - 90.0


class ClusterIndex:
    """Immutable spatial index over resolved points."""

    def __init__(
        self,
        points: Sequence[ResolvedPoint],
        *,
        radius: int = 50,
        max_zoom: int = 20,
        min_zoom: int = 0,
        min_points: int = 2,
        extent: int = 512,
        generation: int = 0,
    ) -> None:
        if not 0 <= min_zoom <= max_zoom < 30:
            raise ValueError("zoom bounds must satisfy 0 <= min_zoom <= max_zoom < 30")
        if min_points < 2:
            raise ValueError("min_points must be at least 2")

        self.radius = radius
        self.max_zoom = max_zoom
        self.min_zoom = min_zoom
        self.min_points = min_points
        self.extent = extent
        self.generation = generation
        self._points: Tuple[ResolvedPoint, ...] = tuple(points)
        self._levels: Dict[int, _Level] = {}

        nodes = [
            _Node(
                x=lng_x(p.longitude),
                y=lat_y(p.latitude),
                zoom=math.inf,
                point_index=i,
                num_points=1,
            )
            for i, p in enumerate(self._points)
        ]
        level = _Level(nodes)
        self._levels[max_zoom + 1] = level
        for zoom in range(max_zoom, min_zoom - 1, -1):
            level = _Level(self._cluster(level, zoom))
            self._levels[zoom] = level

        logger.debug(
            "Built cluster index: points=%d levels=%d top_level_nodes=%d",
            len(self._points),
            len(self._levels),
            len(self._levels[min_zoom].nodes),
        )

    def __len__(self) -> int:
        return len(self._points)

    def _radius_at(self, zoom: int) -> float:
        return self.radius / (self.extent * math.pow(2, zoom))

    def _cluster(self, level: _Level, zoom: int) -> List[_Node]:
        r = self._radius_at(zoom)
        out: List[_Node] = []
        for i, node in enumerate(level.nodes):
            if node.zoom <= zoom:
                continue
            node.zoom = zoom

            neighbor_ids = level.within(node.x, node.y, r)
            origin_count = node.num_points
            num_points = origin_count
            for nid in neighbor_ids:
                neighbor = level.nodes[nid]
                if neighbor.zoom > zoom:
                    num_points += neighbor.num_points

            if num_points > origin_count and num_points >= self.min_points:
                wx = node.x * origin_count
                wy = node.y * origin_count
                cluster_id = (i << _ZOOM_BITS) + (zoom + 1) + len(self._points)
                for nid in neighbor_ids:
                    neighbor = level.nodes[nid]
                    if neighbor.zoom <= zoom:
                        continue
                    neighbor.zoom = zoom
                    wx += neighbor.x * neighbor.num_points
                    wy += neighbor.y * neighbor.num_points
                    neighbor.parent_id = cluster_id
                node.parent_id = cluster_id
                out.append(
                    _Node(
                        x=wx / num_points,
                        y=wy / num_points,
                        zoom=math.inf,
                        point_index=-1,
                        num_points=num_points,
                        cluster_id=cluster_id,
                    )
                )
            else:
                out.append(node)
                if num_points > 1:
                    for nid in neighbor_ids:
                        neighbor = level.nodes[nid]
                        if neighbor.zoom <= zoom:
                            continue
                        neighbor.zoom = zoom
                        out.append(neighbor)
        return out

    def _origin(self, cluster_id: int) -> Tuple[int, int]:
        if not isinstance(cluster_id, int) or isinstance(cluster_id, bool):
            raise ClusterNotFoundError(cluster_id)
        offset = cluster_id - len(self._points)
        if offset < 0:
            raise ClusterNotFoundError(cluster_id)
        return offset >> _ZOOM_BITS, offset % (1 << _ZOOM_BITS)

    def _limit_zoom(self, zoom: float) -> int:
        return max(self.min_zoom, min(int(math.floor(zoom)), self.max_zoom + 1))

    def _to_node(self, node: _Node) -> ClusterNode:
        if node.cluster_id is None:
            return self._points[node.point_index]
        return Cluster(
            cluster_id=node.cluster_id,
            latitude=y_lat(node.y),
            longitude=x_lng(node.x),
            point_count=node.num_points,
            expansion_zoom=self.get_expansion_zoom(node.cluster_id),
        )

    def get_clusters(self, bbox: Union[BoundingBox, Sequence[float]], zoom: float) -> List[ClusterNode]:
        """Clusters and individual points visible in ``bbox`` at ``zoom``."""
        west, south, east, north = bbox.as_tuple() if isinstance(bbox, BoundingBox) else tuple(bbox)

        min_lng = ((west + 180) % 360 + 360) % 360 - 180
        min_lat = max(-90.0, min(90.0, south))
        max_lng = 180.0 if east == 180 else ((east + 180) % 360 + 360) % 360 - 180
        max_lat = max(-90.0, min(90.0, north))

        if east - west >= 360:
            min_lng, max_lng = -180.0, 180.0
        elif min_lng > max_lng:
            eastern = self.get_clusters((min_lng, min_lat, 180.0, max_lat), zoom)
            western = self.get_clusters((-180.0, min_lat, max_lng, max_lat), zoom)
            return eastern + western

        level = self._levels[self._limit_zoom(zoom)]
        ids = level.in_range(lng_x(min_lng), lat_y(max_lat), lng_x(max_lng), lat_y(min_lat))
        return [self._to_node(level.nodes[i]) for i in ids]

    def _child_nodes(self, cluster_id: int) -> List[_Node]:
        origin_id, origin_zoom = self._origin(cluster_id)
        level = self._levels.get(origin_zoom)
        if level is None or origin_id >= len(level.nodes):
            raise ClusterNotFoundError(cluster_id)
        origin = level.nodes[origin_id]
        r = self.radius / (self.extent * math.pow(2, origin_zoom - 1))
        children = [level.nodes[i] for i in level.within(origin.x, origin.y, r)]
        children = [child for child in children if child.parent_id == cluster_id]
        if not children:
            raise ClusterNotFoundError(cluster_id)
        return children

    def get_children(self, cluster_id: int) -> List[ClusterNode]:
        """Direct contents of a cluster, one zoom level down."""
        return [self._to_node(child) for child in self._child_nodes(cluster_id)]

    def get_leaves(self, cluster_id: int, limit: Optional[int] = None, offset: int = 0) -> List[ResolvedPoint]:
        leaves: List[ResolvedPoint] = []
        self._append_leaves(leaves, cluster_id, limit, offset, 0)
        return leaves

    def _append_leaves(
        self,
        result: List[ResolvedPoint],
        cluster_id: int,
        limit: Optional[int],
        offset: int,
        skipped: int,
    ) -> int:
        for child in self._child_nodes(cluster_id):
            if limit is not None and len(result) >= limit:
                break
            if child.cluster_id is not None:
                if skipped + child.num_points <= offset:
                    skipped += child.num_points
                else:
                    skipped = self._append_leaves(result, child.cluster_id, limit, offset, skipped)
            elif skipped < offset:
                skipped += 1
            else:
                result.append(self._points[child.point_index])
        return skipped

    def get_expansion_zoom(self, cluster_id: int) -> int:
        """Zoom at which this cluster first splits into several nodes."""
        expansion_zoom = self._origin(cluster_id)[1] - 1
        while expansion_zoom <= self.max_zoom:
            children = self._child_nodes(cluster_id)
            expansion_zoom += 1
            if len(children) != 1:
                break
            if children[0].cluster_id is None:
                break
            cluster_id = children[0].cluster_id
        return expansion_zoom
