#!/usr/bin/env python3
"""Seed the demo CSVs as globally readable demo files.

Run from the repo root:
    python -m data.seed_demo_files --csv-dir path/to/hr_csvs

The folder must hold at least one of DEMO_FILES.

Existing demo files (and their rows) are removed first, so the script can be
re-run after the CSVs change.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from backend.app.db.files import DEMO_USER_ID, FileRepository
from backend.app.db.ingest import profile_rows, read_csv_rows


logger = logging.getLogger("seed_demo_files")

DEMO_FILES: List[str] = [
    "employee_data.csv",
    "training_and_development_data.csv",
    "employee_engagement_survey_data.csv",
    "recruitment_data.csv",
]


def find_demo_csvs(csv_dir: Path) -> List[Path]:
    """Demo CSVs present in csv_dir; raises before anything is deleted when there are none."""
    if not csv_dir.is_dir():
        raise FileNotFoundError(f"CSV folder not found: {csv_dir}")

    found: List[Path] = []
    for name in DEMO_FILES:
        path = csv_dir / name
        if path.exists():
            found.append(path)
        else:
            logger.warning("Missing %s, skipping", path)
    if not found:
        raise FileNotFoundError(f"None of {', '.join(DEMO_FILES)} found in {csv_dir}")
    return found


async def seed(csv_dir: Path, dsn: Optional[str] = None) -> int:
    paths = find_demo_csvs(csv_dir)
    repo = FileRepository(dsn)
    await repo.ensure_schema()

    cleared = await repo.delete_demo_files()
    logger.info("Cleared %d old demo files", cleared)

    seeded = 0
    for path in paths:
        name = path.name
        columns, rows = read_csv_rows(path)
        if not rows:
            logger.warning("%s has no rows, skipping", name)
            continue
        column_types, sample_values = profile_rows(columns, rows)

        uploaded = await repo.create(
            user_id=DEMO_USER_ID,
            file_name=name,
            columns=columns,
            column_types=column_types,
            sample_values=sample_values,
            rows=rows,
            is_demo=True,
        )
        logger.info("%s: %d rows, %d columns -> %s", name, len(rows), len(columns), uploaded.id)
        seeded += 1
    return seeded


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--csv-dir", type=str, required=True, help="Folder holding the demo CSVs")
    ap.add_argument("--dsn", type=str, default=None, help="Override DATABASE_URL")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    try:
        count = asyncio.run(seed(Path(args.csv_dir), args.dsn))
    except FileNotFoundError as exc:
        ap.error(str(exc))
    print(f"Seeded {count} demo files")


if __name__ == "__main__":
    main()
