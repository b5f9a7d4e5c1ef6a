from alumni_geo.geo.context import build_resolution_context
from alumni_geo.geo.resolver import has_location_coords, resolve_record, resolve_to_location
from alumni_geo.models import AlumniRecord, CuratedLocation, Location, NameResolution, ResolutionContext


class StaticService:
    def __init__(self, resolutions):
        self.resolutions = resolutions

    def resolve_names(self, names):
        return [r for r in self.resolutions if r.original_name in names]


def test_scenario_alias_resolves_to_curated_location():
    curated = [CuratedLocation(standard_name="Example University", aliases=("Ex U",), latitude=10, longitude=20)]
    alumni = [AlumniRecord(id=1, raw_institution_name="ex u")]
    ctx = build_resolution_context(curated, alumni)

    assert resolve_to_location("ex u", ctx) == Location(latitude=10.0, longitude=20.0, source="curated")


def test_scenario_external_coordinates_used_without_curated_row():
    service = StaticService(
        [NameResolution(original_name="unlisted college", standard_name="Unlisted College", latitude=5, longitude=6)]
    )
    alumni = [AlumniRecord(id=2, raw_institution_name="Unlisted College")]
    ctx = build_resolution_context([], alumni, service)

    assert resolve_to_location("Unlisted College", ctx) == Location(latitude=5.0, longitude=6.0, source="external")


def test_curated_row_for_resolved_standard_name_beats_direct_coordinates():
    ctx = ResolutionContext(
        location_by_name={"state university": Location(1.0, 2.0, "curated")},
        resolved_standard_name_by_raw_name={"state u": "State University"},
        direct_coordinates_by_raw_name={"state u": Location(50.0, 60.0, "external")},
    )
    assert resolve_to_location("State U", ctx) == Location(1.0, 2.0, "curated")


def test_direct_coordinates_beat_raw_curated_lookup():
    ctx = ResolutionContext(
        location_by_name={"state u": Location(1.0, 2.0, "curated")},
        resolved_standard_name_by_raw_name={"state u": "Somewhere Else"},
        direct_coordinates_by_raw_name={"state u": Location(50.0, 60.0, "external")},
    )
    assert resolve_to_location("state u", ctx).source == "external"


def test_raw_name_falls_back_to_curated_table():
    ctx = ResolutionContext(location_by_name={"ex u": Location(10.0, 20.0, "curated")})
    assert resolve_to_location("  EX U ", ctx) == Location(10.0, 20.0, "curated")
    assert resolve_to_location("nowhere", ctx) is None


def test_resolution_is_pure():
    ctx = ResolutionContext(
        location_by_name={"a": Location(1.0, 1.0, "curated")},
        direct_coordinates_by_raw_name={"b": Location(2.0, 2.0, "external")},
    )
    for name in ("a", "b", "c", "", None):
        assert resolve_to_location(name, ctx) == resolve_to_location(name, ctx)


def test_missing_context_or_name_is_unresolved():
    assert resolve_to_location("Example University", None) is None
    assert resolve_to_location(None, ResolutionContext()) is None


def test_resolve_record_skips_non_college_names():
    ctx = ResolutionContext(location_by_name={"works at acme corp": Location(1.0, 1.0, "curated")})
    assert resolve_record(AlumniRecord(id=1, raw_institution_name="Works at Acme Corp"), ctx) is None


def test_resolve_record_builds_point_with_display_properties():
    ctx = ResolutionContext(location_by_name={"ex u": Location(10.0, 20.0, "curated")})
    record = AlumniRecord(id=7, raw_institution_name="Ex U", first_name="Ada", last_name="Lovelace", cohort_year=2020)
    point = resolve_record(record, ctx)

    assert (point.alumni_id, point.latitude, point.longitude, point.source) == (7, 10.0, 20.0, "curated")
    assert point.properties["lastName"] == "Lovelace"


def test_has_location_coords():
    assert has_location_coords(Location(1.0, 2.0, "curated"))
    assert not has_location_coords(None)
    assert not has_location_coords(Location(float("nan"), 2.0, "curated"))
