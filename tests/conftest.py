"""Pytest configuration for the cio test suite."""

import sys
from pathlib import Path

# Add the repo root to path for cio imports
sys.path.insert(0, str(Path(__file__).parent.parent))
