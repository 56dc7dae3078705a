#!/usr/bin/env python
"""Exit non-zero when settings or the target database are not ready for this build."""
from __future__ import annotations

import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, text

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from gigshift.services.schema_guard import verify_runtime_schema
from gigshift.settings import Settings, get_settings


def _result(name: str, problems: list[str], **details: Any) -> dict[str, Any]:
    return {
        "name": name,
        "status": "fail" if problems else "ok",
        "problems": problems,
        "details": details,
    }


def check_runtime_settings() -> dict[str, Any]:
    settings = get_settings()
    problems: list[str] = []
    if settings.jwt_secret == Settings.model_fields["jwt_secret"].default:
        problems.append("JWT_SECRET_IS_DEFAULT")
    if settings.qr_session_window_minutes < 1:
        problems.append("QR_SESSION_WINDOW_TOO_SHORT")
    if not 1 <= settings.placeholder_brand_rating <= 5:
        problems.append("PLACEHOLDER_BRAND_RATING_OUT_OF_RANGE")
    return _result(
        "runtime_settings",
        problems,
        attendance_timezone=settings.attendance_timezone,
        checkout_grace_hours=settings.checkout_grace_hours,
    )


def check_database(database_url: str) -> dict[str, Any]:
    heads = ScriptDirectory.from_config(Config(str(ROOT_DIR / "alembic.ini"))).get_heads()
    engine = create_engine(database_url, pool_pre_ping=True)
    try:
        with engine.connect() as connection:
            versions = connection.execute(text("SELECT version_num FROM alembic_version")).scalars()
            applied = {str(version).strip() for version in versions if version is not None}
        schema_result = verify_runtime_schema(engine)
    finally:
        engine.dispose()

    problems: list[str] = []
    # Migration history must stay linear.
    if len(heads) > 1:
        problems.append("MULTIPLE_MIGRATION_HEADS")
    problems.extend(f"MIGRATION_NOT_APPLIED:{head}" for head in sorted(set(heads) - applied))
    problems.extend(schema_result.issues)
    return _result(
        "database_schema",
        problems,
        applied_versions=sorted(applied),
        schema_warnings=schema_result.warnings,
    )


def main() -> int:
    checks = [check_runtime_settings()]
    database_url = (os.getenv("DATABASE_URL") or "").strip()
    if database_url:
        checks.append(check_database(database_url))
    else:
        checks.append({"name": "database_schema", "status": "warn", "problems": ["DATABASE_URL_NOT_SET"], "details": {}})

    ok = all(check["status"] != "fail" for check in checks)
    summary = {"generated_at_utc": datetime.now(timezone.utc).isoformat(), "ok": ok, "checks": checks}
    print(json.dumps(summary, ensure_ascii=False, indent=2))
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
