#!/usr/bin/env python3
"""
Luma Video AI fleet deployment tool.

    python3 main.py deploy prod v1.3.0
    python3 main.py rollback prod v1.2.3
    python3 main.py health-check staging

Runs straight from a source checkout: the local src/ directory is added to
sys.path. For production use, install the project and use the
``fleet-deploy`` console script.
"""

import os
import sys

# Add src/ to path to import modules directly
REPO_ROOT = os.path.dirname(os.path.abspath(__file__))
SRC_PATH = os.path.join(REPO_ROOT, "src")
if SRC_PATH not in sys.path:
    sys.path.insert(0, SRC_PATH)

from cli import main

if __name__ == "__main__":
    sys.exit(main())
