"""
Pytest configuration for the fleet deployment tests.

The project uses flat modules under src/; put that directory on sys.path so
tests import them the same way the console script does.
"""

import os
import sys

ROOT_DIR = os.path.dirname(__file__)
SRC_DIR = os.path.join(ROOT_DIR, "src")

if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)
