#!/usr/bin/env python
"""Read-only consistency report for the attendance and rating tables."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine, text


EXPECTED_HEAD = "0002_domain_events_outbox"


def load_env_if_exists() -> None:
    env_file = Path(".env")
    if not env_file.exists():
        return
    for raw_line in env_file.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


def run() -> dict:
    load_env_if_exists()
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL not found (.env or env vars).")

    engine = create_engine(database_url)
    report: dict = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "checks": [],
    }

    def add(name: str, status: str, details: dict) -> None:
        report["checks"].append({"name": name, "status": status, "details": details})

    def sample(conn, sql: str) -> list:
        return [list(row) for row in conn.execute(text(sql)).fetchall()]

    with engine.connect() as conn:
        current_versions = [row[0] for row in conn.execute(text("select version_num from alembic_version")).fetchall()]
        add(
            "migration_up_to_date",
            "ok" if EXPECTED_HEAD in current_versions else "warn",
            {"expected_head": EXPECTED_HEAD, "current": current_versions},
        )

        checkout_without_checkin = sample(
            conn,
            """
            select id from shifts
            where check_out_verified = true and check_in_verified = false
            limit 20
            """,
        )
        add(
            "shift_checkout_without_checkin",
            "fail" if checkout_without_checkin else "ok",
            {"sample_ids": [row[0] for row in checkout_without_checkin]},
        )

        hours_over_duration = sample(
            conn,
            """
            select s.id, s.hours_worked, g.duration_hours
            from shifts s
            join gigs g on g.id = s.gig_id
            where s.hours_worked > g.duration_hours
            limit 20
            """,
        )
        add(
            "shift_hours_over_duration",
            "fail" if hours_over_duration else "ok",
            {"rows": hours_over_duration},
        )

        expired_window_mismatch = sample(
            conn,
            """
            select q.id, q.expires_at, g.start_datetime
            from qr_sessions q
            join gigs g on g.id = q.gig_id
            where q.expires_at <> g.start_datetime + interval '10 minutes'
            limit 20
            """,
        )
        add(
            "qr_session_expiry_mismatch",
            "warn" if expired_window_mismatch else "ok",
            {"rows": [[str(value) for value in row] for row in expired_window_mismatch]},
        )

        aggregate_drift = sample(
            conn,
            """
            select a.usher_id, a.overall_rating, round(avg(r.final_rating), 2) as expected,
                   a.total_ratings_count, count(r.id) as expected_count
            from usher_aggregates a
            join gig_ratings r on r.usher_id = a.usher_id
            group by a.usher_id, a.overall_rating, a.total_ratings_count
            having a.overall_rating <> round(avg(r.final_rating), 2)
                or a.total_ratings_count <> count(r.id)
            limit 20
            """,
        )
        add(
            "usher_aggregate_drift",
            "fail" if aggregate_drift else "ok",
            {"rows": [[str(value) for value in row] for row in aggregate_drift]},
        )

        failed_events = conn.execute(text("select count(*) from domain_events where status = 'FAILED'")).scalar()
        add("domain_events_failed", "warn" if failed_events else "ok", {"count": int(failed_events or 0)})

    return report


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
