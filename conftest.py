"""
Root pytest configuration.

The server modules live flat under src/ and import each other by their
top-level names (config, logic, db, ...), as they do when the app runs.
Put src/ first on the path so that the tests import them the same way.
"""

from __future__ import annotations

import os
import sys

SRC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)
