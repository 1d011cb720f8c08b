#!/usr/bin/env python3
"""
Main product import script entry point.

This provides a simple `python import_products.py` interface for users.
"""

import sys
from pathlib import Path

# Add src to Python path to allow imports
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from pim_sync.cli.product_cli import product_app

if __name__ == "__main__":
    product_app()
