#!/usr/bin/env python3
"""

    Score recalculation utility for the daily challenge server

    Copyright (C) 2025 Miðeind ehf.

    The Creative Commons Attribution-NonCommercial 4.0
    International Public License (CC-BY-NC 4.0) applies to this software.

    Recomputes the score of stored submissions with the current scoring
    rules, for example after a fix to a game's data or to the scoring
    engine. Each submission is scored as of its own completion time.

    Usage:
        python utils/recalculate_scores.py --game-id GAME [--dry-run]
        python utils/recalculate_scores.py --user-id USER [--dry-run]

    At least one of --game-id and --user-id is required.

"""

from __future__ import annotations

from typing import List, Optional

import argparse
import logging
import sys
import os

base_path = os.path.dirname(__file__)  # Assumed to be in the /utils directory

# Add the ../src directory to the Python path
sys.path.append(os.path.join(base_path, "../src"))

from db import SessionManager  # noqa: E402
from maintenance import recalculate_scores  # noqa: E402


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Recalculate submission scores")
    parser.add_argument("--game-id", help="Only submissions for this game")
    parser.add_argument("--user-id", help="Only submissions by this user")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report the changes without writing them",
    )
    args = parser.parse_args(argv)
    if not args.game_id and not args.user_id:
        parser.error("at least one of --game-id and --user-id is required")

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )

    manager = SessionManager()
    try:
        with manager.request_context() as db:
            report = recalculate_scores(
                db, game_id=args.game_id, user_id=args.user_id, dry_run=args.dry_run
            )
    finally:
        manager.close()

    verb = "would change" if report.dry_run else "changed"
    print(f"{report.processed} submissions processed, {report.changed} {verb}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
