#!/usr/bin/env python
"""Rebuild usher aggregates from gig ratings.

Uses the same recompute the API runs after every rating, so a backfill can never
disagree with live writes.
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import select

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from gigshift.db import SessionLocal
from gigshift.logging_utils import setup_json_logging
from gigshift.models import GigRating
from gigshift.services.ratings import recompute_aggregate


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--usher-id", type=int, action="append", dest="usher_ids", help="Limit to these ushers.")
    args = parser.parse_args(argv)

    setup_json_logging(service="recompute_aggregates")
    with SessionLocal() as db:
        usher_ids = args.usher_ids or list(db.scalars(select(GigRating.usher_id).distinct().order_by(GigRating.usher_id)))
        results = []
        for usher_id in usher_ids:
            aggregate = recompute_aggregate(db, usher_id=usher_id)
            results.append(
                {
                    "usher_id": usher_id,
                    "overall_rating": aggregate.overall_rating,
                    "total_ratings_count": aggregate.total_ratings_count,
                }
            )

    print(
        json.dumps(
            {
                "generated_at_utc": datetime.now(timezone.utc).isoformat(),
                "recomputed": len(results),
                "ushers": results,
            },
            ensure_ascii=False,
            indent=2,
        )
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
