"""
Command-line interface modules for product and media imports.

This package provides typer applications with progress tracking and a
summary of each import run.
"""

from .product_cli import product_app
from .media_cli import media_app

__all__ = [
    "product_app",
    "media_app",
]
