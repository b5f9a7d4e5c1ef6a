"""Click handling for map clusters: ladder zoom or list view."""

import enum
import logging
from typing import Any, Callable, List, Optional, Sequence

from alumni_geo.mapping.cluster_index import ClusterIndex, ClusterNotFoundError
from alumni_geo.mapping.viewport import MOVE_END, MapView, ViewportClusterRenderer
from alumni_geo.models import Cluster, ResolvedPoint

logger = logging.getLogger(__name__)

# National, regional, state, city, street.
ZOOM_LADDER = (4, 8, 12, 16, 17)
ANIMATION_SECONDS = 0.5


class NavigationState(enum.Enum):
    IDLE = "idle"
    ANIMATING = "animating"
    LIST_VIEW = "list_view"


def next_ladder_zoom(current_zoom: float, ladder: Sequence[int] = ZOOM_LADDER) -> Optional[int]:
    for rung in ladder:
        if rung > current_zoom:
            return rung
    return None


def plan_zoom(
    current_zoom: float,
    natural_expansion_zoom: int,
    max_zoom: int,
    ladder: Sequence[int] = ZOOM_LADDER,
):
    """Return ``(target_zoom, show_list)`` for a click at ``current_zoom``."""
    target = next_ladder_zoom(current_zoom, ladder)
    if target is None or (len(ladder) > 1 and current_zoom >= ladder[-2]):
        target = natural_expansion_zoom
    target = min(target, max_zoom - 1)
    show_list = target >= max_zoom - 1 and current_zoom >= max_zoom - 2
    return target, show_list


class ClusterNavigationController:
    """State machine for cluster clicks.

    IDLE -> ANIMATING on a zoom step (back to IDLE on the next move end),
    IDLE -> LIST_VIEW when zooming further would not separate the points.
    LIST_VIEW is left only through ``dismiss_list`` or ``select_entry``.
    """

    def __init__(
        self,
        renderer: ViewportClusterRenderer,
        *,
        ladder: Sequence[int] = ZOOM_LADDER,
        on_navigate: Optional[Callable[[str], Any]] = None,
        animation_seconds: float = ANIMATION_SECONDS,
    ) -> None:
        if not ladder or list(ladder) != sorted(ladder):
            raise ValueError("zoom ladder must be a non-empty ascending sequence")
        self._renderer = renderer
        self._ladder = tuple(ladder)
        self._on_navigate = on_navigate
        self._animation_seconds = animation_seconds
        self._map_view: Optional[MapView] = None
        self.state = NavigationState.IDLE
        self.list_entries: List[ResolvedPoint] = []

    def attach(self, map_view: MapView) -> None:
        if self._map_view is not None:
            raise RuntimeError("controller is already attached to a map view")
        self._map_view = map_view
        map_view.on(MOVE_END, self._on_move_end)

    def detach(self) -> None:
        if self._map_view is not None:
            self._map_view.off(MOVE_END, self._on_move_end)
            self._map_view = None

    def _on_move_end(self, *_: Any) -> None:
        if self.state is NavigationState.ANIMATING:
            self.state = NavigationState.IDLE

    def on_cluster_click(self, cluster_id: int, latitude: float, longitude: float) -> NavigationState:
        index: Optional[ClusterIndex] = self._renderer.index
        map_view = self._map_view
        if index is None or map_view is None:
            logger.debug("Ignoring cluster click before the map is ready")
            return self.state
        if self.state is NavigationState.LIST_VIEW:
            return self.state

        try:
            natural_zoom = index.get_expansion_zoom(cluster_id)
        except ClusterNotFoundError:
            logger.info("Ignoring click on stale cluster id %s", cluster_id)
            return self.state

        current_zoom = map_view.get_zoom() or 0
        max_zoom = map_view.get_max_zoom()
        target_zoom, show_list = plan_zoom(current_zoom, natural_zoom, max_zoom, self._ladder)
        logger.debug(
            "Cluster %s click: current=%s natural=%s target=%s list=%s",
            cluster_id,
            current_zoom,
            natural_zoom,
            target_zoom,
            show_list,
        )

        if show_list:
            self.list_entries = self._collect_entries(index, cluster_id)
            self.state = NavigationState.LIST_VIEW
            logger.info("Showing list view for cluster %s with %d alumni", cluster_id, len(self.list_entries))
            return self.state

        self.state = NavigationState.ANIMATING
        map_view.set_view(
            (latitude, longitude),
            target_zoom,
            animate=True,
            duration=self._animation_seconds,
        )
        return self.state

    def click(self, cluster: Cluster) -> NavigationState:
        return self.on_cluster_click(cluster.cluster_id, cluster.latitude, cluster.longitude)

    @staticmethod
    def _collect_entries(index: ClusterIndex, cluster_id: int) -> List[ResolvedPoint]:
        entries: List[ResolvedPoint] = []
        for child in index.get_children(cluster_id):
            if isinstance(child, Cluster):
                entries.extend(index.get_leaves(child.cluster_id))
            else:
                entries.append(child)
        return entries

    def dismiss_list(self) -> None:
        if self.state is NavigationState.LIST_VIEW:
            self.state = NavigationState.IDLE
            self.list_entries = []

    def select_entry(self, alumni_id: Any) -> Optional[str]:
        """Navigate to one alumnus from the list view and close it."""
        if self.state is not NavigationState.LIST_VIEW:
            return None
        if not any(entry.alumni_id == alumni_id for entry in self.list_entries):
            logger.info("Ignoring selection of alumni %s not in the list view", alumni_id)
            return None
        path = f"/alumni/{alumni_id}"
        self.dismiss_list()
        if self._on_navigate is not None:
            self._on_navigate(path)
        return path
