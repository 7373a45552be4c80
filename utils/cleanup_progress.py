#!/usr/bin/env python3
"""

    Progress cleanup utility for the daily challenge server

    Copyright (C) 2025 Miðeind ehf.

    The Creative Commons Attribution-NonCommercial 4.0
    International Public License (CC-BY-NC 4.0) applies to this software.

    Deletes saved in-progress game states for games that the user has
    already submitted.

    Usage:
        python utils/cleanup_progress.py [--dry-run]

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
from maintenance import cleanup_progress  # noqa: E402


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Delete progress records of submitted games"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the records without deleting them",
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
            count = cleanup_progress(db, dry_run=args.dry_run)
    finally:
        manager.close()

    print(f"{count} progress records {'to delete' if args.dry_run else 'deleted'}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
