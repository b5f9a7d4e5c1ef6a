"""Decide which unresolved alumni belong in the manual curation queue."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from alumni_geo.geo.names import is_non_college
from alumni_geo.geo.resolver import has_location_coords, resolve_to_location
from alumni_geo.models import AlumniRecord, ResolutionContext, UnmappedGroup

logger = logging.getLogger(__name__)

MISSING_COLLEGE = "missing_college"
INVALID_COLLEGE = "invalid_college"
UNMAPPED_COLLEGE = "unmapped_college"
NON_COLLEGE_EXAMPLE_LIMIT = 10


def should_count_as_unmapped(record: AlumniRecord, has_location: bool) -> bool:
    if record.is_archived:
        return False
    if has_location:
        return False
    college = (record.raw_institution_name or "unknown").strip().lower()
    if college == "unknown":
        return True
    return bool(college) and college != "na" and not is_non_college(college)


def _student_summary(record: AlumniRecord) -> Dict[str, Any]:
    return {
        "firstName": record.first_name,
        "lastName": record.last_name,
        "cohortYear": record.cohort_year,
    }


def _has_location(record: AlumniRecord, context: Optional[ResolutionContext]) -> bool:
    if not record.raw_institution_name or is_non_college(record.raw_institution_name):
        return False
    return has_location_coords(resolve_to_location(record.raw_institution_name, context))


def build_unmapped_groups(
    records: Iterable[AlumniRecord],
    context: Optional[ResolutionContext],
    sample_size: Optional[int] = None,
) -> List[UnmappedGroup]:
    """Group curation-worthy alumni by their raw institution name."""
    groups: Dict[str, UnmappedGroup] = {}
    for record in records:
        if not should_count_as_unmapped(record, _has_location(record, context)):
            continue
        college_name = (record.raw_institution_name or "").strip() or "Unknown"
        group = groups.get(college_name)
        if group is None:
            group = groups[college_name] = UnmappedGroup(college_name=college_name)
        group.student_count += 1
        if sample_size is None or len(group.students) < sample_size:
            group.students.append(_student_summary(record))

    ordered = sorted(groups.values(), key=lambda g: (-g.student_count, g.college_name.lower()))
    logger.info("Built %d unmapped groups", len(ordered))
    return ordered


def build_unmapped_analysis(
    records: Iterable[AlumniRecord],
    context: Optional[ResolutionContext],
    include_archived: bool = False,
) -> Dict[str, Any]:
    """Categorise every record that cannot be placed on the map."""
    students: List[Dict[str, Any]] = []
    non_college_count = 0
    non_college_examples: List[str] = []

    for record in records:
        if record.is_archived and not include_archived:
            continue
        college = (record.raw_institution_name or "").strip()
        entry = {"id": record.id, **_student_summary(record), "college": college or None}

        if not college:
            students.append({**entry, "reason": "No college information provided", "category": MISSING_COLLEGE})
            continue
        if college.lower() == "na":
            students.append(
                {**entry, "reason": 'College listed as "NA" - needs clarification', "category": INVALID_COLLEGE}
            )
            continue
        if is_non_college(college):
            non_college_count += 1
            if len(non_college_examples) < NON_COLLEGE_EXAMPLE_LIMIT:
                non_college_examples.append(college)
            continue
        if not has_location_coords(resolve_to_location(college, context)):
            students.append(
                {
                    **entry,
                    "reason": f'College "{college}" cannot be resolved to coordinates',
                    "category": UNMAPPED_COLLEGE,
                }
            )

    students.sort(key=lambda s: (s["lastName"] or "").lower())
    categories = {
        name: [s for s in students if s["category"] == name]
        for name in (MISSING_COLLEGE, INVALID_COLLEGE, UNMAPPED_COLLEGE)
    }
    logger.info(
        "Unmapped analysis: total=%d non_college_filtered=%d",
        len(students),
        non_college_count,
    )
    return {
        "total": len(students),
        "categories": categories,
        "allStudents": students,
        "nonCollegeFiltered": non_college_count,
        "nonCollegeExamples": non_college_examples,
    }
