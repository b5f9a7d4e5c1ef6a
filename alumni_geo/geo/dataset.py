"""Dataset load orchestration: context build, point resolution, index rebuild."""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from alumni_geo.etl.transform import to_location_row
from alumni_geo.geo.context import ResolutionService, build_resolution_context
from alumni_geo.geo.resolver import resolve_record
from alumni_geo.mapping.cluster_index import ClusterIndex
from alumni_geo.models import AlumniRecord, CuratedLocation, ResolutionContext, ResolvedPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatasetSnapshot:
    generation: int
    context: ResolutionContext
    records: Tuple[AlumniRecord, ...]
    points: Tuple[ResolvedPoint, ...]
    rows: Tuple[Dict[str, Any], ...]
    index: ClusterIndex = field(repr=False)


class DatasetLoader:
    """Owns the current resolution context and cluster index.

    Every load takes a new generation number. A build that finishes after a
    newer load has started is discarded.
    """

    def __init__(
        self,
        resolution_service: Optional[ResolutionService] = None,
        *,
        index_options: Optional[Dict[str, Any]] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self._resolution_service = resolution_service
        self._index_options = dict(index_options or {})
        self._executor = executor
        self._generation = 0
        self._lock = threading.Lock()
        self._snapshot: Optional[DatasetSnapshot] = None
        self._listeners: List[Callable[[DatasetSnapshot], None]] = []

    @property
    def snapshot(self) -> Optional[DatasetSnapshot]:
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._generation

    def add_listener(self, callback: Callable[[DatasetSnapshot], None]) -> None:
        self._listeners.append(callback)

    def _next_generation(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def build(
        self,
        curated: Sequence[CuratedLocation],
        alumni: Sequence[AlumniRecord],
        generation: int,
    ) -> DatasetSnapshot:
        records = tuple(alumni)
        context = build_resolution_context(curated, records, self._resolution_service)

        points: List[ResolvedPoint] = []
        rows: List[Dict[str, Any]] = []
        for record in records:
            point = resolve_record(record, context)
            rows.append(to_location_row(record, point))
            if point is not None:
                points.append(point)

        index = ClusterIndex(points, generation=generation, **self._index_options)
        logger.info(
            "Dataset generation %d built: alumni=%d mapped=%d",
            generation,
            len(records),
            len(points),
        )
        return DatasetSnapshot(
            generation=generation,
            context=context,
            records=records,
            points=tuple(points),
            rows=tuple(rows),
            index=index,
        )

    def _accept(self, snapshot: DatasetSnapshot) -> bool:
        with self._lock:
            if snapshot.generation != self._generation:
                logger.info(
                    "Discarding stale dataset generation %d (current %d)",
                    snapshot.generation,
                    self._generation,
                )
                return False
            self._snapshot = snapshot
        for callback in list(self._listeners):
            callback(snapshot)
        return True

    def load(self, curated: Sequence[CuratedLocation], alumni: Sequence[AlumniRecord]) -> Optional[DatasetSnapshot]:
        snapshot = self.build(curated, alumni, self._next_generation())
        return snapshot if self._accept(snapshot) else None

    def load_latest(self, curated: Sequence[CuratedLocation], alumni: Sequence[AlumniRecord]) -> DatasetSnapshot:
        """Load, falling back when superseded.

        A superseded build yields the newest accepted snapshot, or its own
        data while no build has been accepted yet.
        """
        snapshot = self.build(curated, alumni, self._next_generation())
        if self._accept(snapshot):
            return snapshot
        return self._snapshot or snapshot

    async def load_async(
        self,
        curated: Sequence[CuratedLocation],
        alumni: Sequence[AlumniRecord],
    ) -> Optional[DatasetSnapshot]:
        """Build off the event loop; returns None if superseded meanwhile."""
        generation = self._next_generation()
        loop = asyncio.get_running_loop()
        snapshot = await loop.run_in_executor(
            self._executor, self.build, tuple(curated), tuple(alumni), generation
        )
        return snapshot if self._accept(snapshot) else None
