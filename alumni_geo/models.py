"""Core data models shared by the resolution and clustering pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

SOURCE_CURATED = "curated"
SOURCE_EXTERNAL = "external"


@dataclass(frozen=True, slots=True)
class CuratedLocation:
    """A human-verified institution row from the curated location store."""

    standard_name: str
    aliases: Tuple[str, ...] = ()
    latitude: Any = None
    longitude: Any = None
    source: str = SOURCE_CURATED
    id: Optional[int] = None


@dataclass(frozen=True, slots=True)
class AlumniRecord:
    id: Any
    raw_institution_name: Optional[str] = None
    is_archived: bool = False
    first_name: str = ""
    last_name: str = ""
    cohort_year: Optional[int] = None
    tracking_status: str = "unknown"


@dataclass(frozen=True, slots=True)
class Location:
    latitude: float
    longitude: float
    source: str


@dataclass(frozen=True, slots=True)
class NameResolution:
    """One result returned by an external resolution service."""

    original_name: str
    standard_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    confidence: float = 0.0


@dataclass(frozen=True, slots=True)
class ResolutionContext:
    """Immutable lookup snapshot built once per dataset load.

    All three maps are keyed by normalized name. They are wrapped in
    read-only proxies on construction.
    """

    location_by_name: Mapping[str, Location] = field(default_factory=dict)
    resolved_standard_name_by_raw_name: Mapping[str, str] = field(default_factory=dict)
    direct_coordinates_by_raw_name: Mapping[str, Location] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in (
            "location_by_name",
            "resolved_standard_name_by_raw_name",
            "direct_coordinates_by_raw_name",
        ):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, MappingProxyType(dict(value)))


@dataclass(frozen=True, slots=True)
class ResolvedPoint:
    alumni_id: Any
    latitude: float
    longitude: float
    source: str
    properties: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False, repr=False)


@dataclass(frozen=True, slots=True)
class Cluster:
    cluster_id: int
    latitude: float
    longitude: float
    point_count: int
    expansion_zoom: int


ClusterNode = Union[Cluster, ResolvedPoint]


@dataclass(frozen=True, slots=True)
class BoundingBox:
    west: float
    south: float
    east: float
    north: float

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.west, self.south, self.east, self.north)


@dataclass(slots=True)
class UnmappedGroup:
    """Alumni sharing an institution name that could not be placed on the map."""

    college_name: str
    student_count: int = 0
    students: list = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collegeName": self.college_name,
            "studentCount": self.student_count,
            "students": list(self.students),
        }
