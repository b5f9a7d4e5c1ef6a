import pytest

from alumni_geo.geo.context import build_resolution_context
from alumni_geo.geo.unmapped import (
    INVALID_COLLEGE,
    MISSING_COLLEGE,
    UNMAPPED_COLLEGE,
    build_unmapped_analysis,
    build_unmapped_groups,
    should_count_as_unmapped,
)
from alumni_geo.models import AlumniRecord, CuratedLocation


def alum(alumni_id, college, archived=False, last="Doe"):
    return AlumniRecord(
        id=alumni_id,
        raw_institution_name=college,
        is_archived=archived,
        first_name=f"Student{alumni_id}",
        last_name=last,
        cohort_year=2021,
    )


@pytest.mark.parametrize("college", [None, "Unknown", "Example University", "Works at Acme Corp", "NA"])
@pytest.mark.parametrize("has_location", [True, False])
def test_archived_records_are_never_unmapped(college, has_location):
    assert not should_count_as_unmapped(alum(1, college, archived=True), has_location)


@pytest.mark.parametrize("college", ["Works at Acme Corp", "Military", "HVAC Tech", "na", "NA"])
def test_non_college_records_are_never_unmapped(college):
    assert not should_count_as_unmapped(alum(1, college), False)


def test_unknown_and_college_names_without_location_are_unmapped():
    assert should_count_as_unmapped(alum(1, "Unknown"), False)
    assert should_count_as_unmapped(alum(2, None), False)
    assert should_count_as_unmapped(alum(3, "Unlisted College"), False)
    assert not should_count_as_unmapped(alum(4, "Unlisted College"), True)


def test_scenario_non_college_excluded_from_report():
    records = [alum(1, "Works at Acme Corp"), alum(2, "Unlisted College"), alum(3, "Unlisted College")]
    groups = build_unmapped_groups(records, build_resolution_context([], records))

    assert [g.college_name for g in groups] == ["Unlisted College"]
    assert groups[0].student_count == 2


def test_groups_exclude_resolved_and_archived_and_sort_by_count():
    curated = [CuratedLocation(standard_name="Example University", aliases=("Ex U",), latitude=1, longitude=2)]
    records = [
        alum(1, "Ex U"),
        alum(2, "Rare College"),
        alum(3, "Common College"),
        alum(4, "Common College"),
        alum(5, "Common College", archived=True),
    ]
    ctx = build_resolution_context(curated, records)
    groups = build_unmapped_groups(records, ctx, sample_size=1)

    assert [g.to_dict()["collegeName"] for g in groups] == ["Common College", "Rare College"]
    assert groups[0].student_count == 2
    assert groups[0].students == [{"firstName": "Student3", "lastName": "Doe", "cohortYear": 2021}]


def test_unmapped_analysis_categories():
    records = [
        alum(1, None, last="Baker"),
        alum(2, "NA", last="Adams"),
        alum(3, "Works at Acme", last="Clark"),
        alum(4, "Lost College", last="Davis"),
        alum(5, "Lost College", archived=True, last="Evans"),
    ]
    analysis = build_unmapped_analysis(records, build_resolution_context([], records))

    assert analysis["total"] == 3
    assert [s["category"] for s in analysis["allStudents"]] == [INVALID_COLLEGE, MISSING_COLLEGE, UNMAPPED_COLLEGE]
    assert analysis["nonCollegeFiltered"] == 1
    assert analysis["nonCollegeExamples"] == ["Works at Acme"]

    with_archived = build_unmapped_analysis(records, build_resolution_context([], records), include_archived=True)
    assert len(with_archived["categories"][UNMAPPED_COLLEGE]) == 2
