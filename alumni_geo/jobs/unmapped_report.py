"""CLI job printing the unmapped-colleges report for manual curation."""

import argparse
import json
import logging
import sys
from typing import List, Optional, TextIO

from alumni_geo.core.config import get_settings
from alumni_geo.core.db import fetch_alumni, fetch_curated_locations
from alumni_geo.geo.context import build_resolution_context
from alumni_geo.geo.unmapped import build_unmapped_groups
from alumni_geo.models import UnmappedGroup
from alumni_geo.vendors.registry import get_resolution_service

logger = logging.getLogger(__name__)


def run_unmapped_report(*, sample_size: Optional[int], min_students: int) -> List[UnmappedGroup]:
    settings = get_settings()
    curated = fetch_curated_locations()
    alumni = fetch_alumni()
    logger.info("Building unmapped report: curated=%d alumni=%d", len(curated), len(alumni))

    context = build_resolution_context(curated, alumni, get_resolution_service(settings))
    groups = build_unmapped_groups(alumni, context, sample_size=sample_size)
    return [group for group in groups if group.student_count >= min_students]


def write_report(groups: List[UnmappedGroup], out: TextIO) -> None:
    json.dump([group.to_dict() for group in groups], out, ensure_ascii=False, indent=2)
    out.write("\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Report institution names that need manual curation")
    parser.add_argument("--sample-size", dest="sample_size", type=int, help="Students listed per group")
    parser.add_argument(
        "--min-students",
        dest="min_students",
        type=int,
        default=1,
        help="Only report names shared by at least this many alumni",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args(argv)
    groups = run_unmapped_report(sample_size=args.sample_size, min_students=args.min_students)
    write_report(groups, sys.stdout)
    logger.info("Reported %d unmapped institution names", len(groups))


if __name__ == "__main__":
    main()
