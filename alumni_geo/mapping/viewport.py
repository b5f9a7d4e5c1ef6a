"""Viewport-driven cluster rendering."""

import logging
import math
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple

from alumni_geo.mapping.cluster_index import ClusterIndex
from alumni_geo.mapping.scheduling import DelayedTask, ReadinessGate
from alumni_geo.models import BoundingBox, ClusterNode

logger = logging.getLogger(__name__)

MOVE_END = "moveend"
DEFAULT_DEBOUNCE_SECONDS = 0.15


class MapView(Protocol):
    def get_bounds(self) -> BoundingBox:
        ...

    def get_zoom(self) -> float:
        ...

    def get_max_zoom(self) -> int:
        ...

    def set_view(self, center: Tuple[float, float], zoom: float, *, animate: bool = True, duration: float = 0.5) -> None:
        ...

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        ...

    def off(self, event: str, callback: Callable[..., Any]) -> None:
        ...


class IndexNotReadyError(RuntimeError):
    """Raised when a draw is attempted before the index or map is available."""


class ViewportClusterRenderer:
    """Keeps the draw list in sync with the map viewport.

    ``set_index`` is the dataset-change trigger and ``moveend`` the viewport
    trigger; neither rebuilds the index.
    """

    def __init__(self, *, debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS, loop=None) -> None:
        self._map_view: Optional[MapView] = None
        self._index: Optional[ClusterIndex] = None
        self._draw_list: List[ClusterNode] = []
        self._subscribers: List[Callable[[Sequence[ClusterNode]], None]] = []
        self._debounced = DelayedTask(debounce_seconds, self.draw, loop=loop)
        self._ready = ReadinessGate(("index", "map"))
        self._ready.when_ready(self.draw)

    @property
    def draw_list(self) -> List[ClusterNode]:
        return list(self._draw_list)

    @property
    def index(self) -> Optional[ClusterIndex]:
        return self._index

    @property
    def map_view(self) -> Optional[MapView]:
        return self._map_view

    @property
    def ready(self) -> ReadinessGate:
        return self._ready

    def attach(self, map_view: MapView) -> None:
        if self._map_view is not None:
            raise RuntimeError("renderer is already attached to a map view")
        self._map_view = map_view
        map_view.on(MOVE_END, self._on_move_end)
        logger.debug("Renderer attached to map view")
        self._ready.mark("map")

    def detach(self) -> None:
        self._debounced.cancel()
        if self._map_view is not None:
            self._map_view.off(MOVE_END, self._on_move_end)
            self._map_view = None
            logger.debug("Renderer detached from map view")

    def set_index(self, index: ClusterIndex) -> None:
        first = self._index is None
        self._index = index
        if first:
            self._ready.mark("index")
        elif self._ready.is_ready:
            self._schedule()

    def on_viewport_change(self, callback: Callable[[Sequence[ClusterNode]], None]) -> Callable[[], None]:
        """Subscribe to draw-list updates; returns an unsubscribe callable."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _on_move_end(self, *_: Any) -> None:
        if self._ready.is_ready:
            self._schedule()

    def _schedule(self) -> None:
        try:
            self._debounced.schedule()
        except RuntimeError:
            # No running loop: redraw synchronously.
            self.draw()

    def _compute(self) -> List[ClusterNode]:
        if self._map_view is None or self._index is None:
            raise IndexNotReadyError("map view or cluster index not ready")
        bounds = self._map_view.get_bounds()
        zoom = int(math.floor(self._map_view.get_zoom()))
        return self._index.get_clusters(bounds, zoom)

    def draw(self) -> bool:
        """Recompute the draw list now; returns False when the previous list is kept."""
        try:
            self._draw_list = self._compute()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cluster update failed: %s", exc)
            return False

        for callback in list(self._subscribers):
            try:
                callback(self.draw_list)
            except Exception:  # noqa: BLE001
                logger.exception("Viewport subscriber failed")
        return True
