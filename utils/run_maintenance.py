#!/usr/bin/env python3
"""

    Daily maintenance runner for the daily challenge server

    Copyright (C) 2025 Miðeind ehf.

    The Creative Commons Attribution-NonCommercial 4.0
    International Public License (CC-BY-NC 4.0) applies to this software.

    Runs the daily maintenance job outside of the web server: makes sure
    the active challenge has a game for the day and assigns a variant
    to every verified user. The job is idempotent and can be rerun.

    Usage:
        python utils/run_maintenance.py [YYYY-MM-DD]

    The date defaults to today in the challenge time zone.
    DATABASE_URL must point at the database.

"""

from __future__ import annotations

from typing import List, Optional

import argparse
import logging
import sys
import os
from datetime import date

base_path = os.path.dirname(__file__)  # Assumed to be in the /utils directory

# Add the ../src directory to the Python path
sys.path.append(os.path.join(base_path, "../src"))

from db import SessionManager  # noqa: E402
from maintenance import run_daily_maintenance  # noqa: E402


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run the daily maintenance job")
    parser.add_argument(
        "date",
        nargs="?",
        type=date.fromisoformat,
        help="Target date (YYYY-MM-DD); defaults to today",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )

    manager = SessionManager()
    try:
        with manager.request_context() as db:
            report = run_daily_maintenance(db, args.date)
    finally:
        manager.close()

    print(
        f"{report.date}: game {report.game_id or '-'}, "
        f"{report.users} users, {report.assigned} assigned, "
        f"{len(report.failed)} failed"
    )
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
