#!/usr/bin/env python3
"""Compare the stored applications of two scraper databases.

Dumps the ``data`` table of each database, ordered by council reference, to
YAML and reports whether the two result sets are identical. Useful when
checking a scraper change against a previous run.

Usage:
    python scripts/compare_results.py BASELINE.sqlite CANDIDATE.sqlite [--output-dir DIR]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from src.epathway_scraper.database import DevelopmentApplicationDatabase

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Differs between runs on different days.
VOLATILE_COLUMNS = ("date_scraped",)


def load_results(db_path: Path, *, ignore_volatile: bool = True) -> List[Dict[str, Any]]:
    with DevelopmentApplicationDatabase(db_path, read_only=True) as db:
        if not db.has_data_table:
            logger.warning(f"No data table in {db_path}")
            return []
        records = db.get_all_records()
    if ignore_volatile:
        for record in records:
            for column in VOLATILE_COLUMNS:
                record.pop(column, None)
    return records


def write_results(records: List[Dict[str, Any]], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(records, handle, sort_keys=True, allow_unicode=True)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Compare two scraper databases")
    parser.add_argument("baseline", type=Path, help="Database produced by the reference run")
    parser.add_argument("candidate", type=Path, help="Database produced by the run under test")
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Write results_baseline.yml and results_candidate.yml here",
    )
    parser.add_argument(
        "--include-scrape-date",
        action="store_true",
        help="Also compare date_scraped",
    )
    args = parser.parse_args(argv)

    for path in (args.baseline, args.candidate):
        if not path.exists():
            logger.error(f"Database not found: {path}")
            return 1

    ignore_volatile = not args.include_scrape_date
    baseline = load_results(args.baseline, ignore_volatile=ignore_volatile)
    candidate = load_results(args.candidate, ignore_volatile=ignore_volatile)
    logger.info(f"Baseline has {len(baseline)} applications, candidate has {len(candidate)}")

    if args.output_dir:
        write_results(baseline, args.output_dir / "results_baseline.yml")
        write_results(candidate, args.output_dir / "results_candidate.yml")
        logger.info(f"Wrote results to {args.output_dir}")

    if baseline == candidate:
        print("Succeeded")
        return 0

    baseline_refs = {record["council_reference"] for record in baseline}
    candidate_refs = {record["council_reference"] for record in candidate}
    for reference in sorted(baseline_refs - candidate_refs):
        logger.warning(f"Missing from candidate: {reference}")
    for reference in sorted(candidate_refs - baseline_refs):
        logger.warning(f"Only in candidate: {reference}")
    print("Failed")
    return 1


if __name__ == "__main__":
    sys.exit(main())
