#!/usr/bin/env python3
"""
Main media import script entry point.

This provides a simple `python import_media.py` interface for users.
"""

import sys
from pathlib import Path

# Add src to Python path to allow imports
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from pim_sync.cli.media_cli import media_app

if __name__ == "__main__":
    media_app()
