"""
PIM Sync

Imports products from Shopify and product media from Google Drive into a
Supabase-backed product catalog, with rate-limited, retrying API access and
per-item failure isolation.
"""

__version__ = "1.0.0"
__author__ = "PIM Sync"

from .imports.manager import ImportManager
from .imports.pipeline import ImportRunReport
from .config import MediaImportConfig, ProductImportConfig

__all__ = [
    "ImportManager",
    "ImportRunReport",
    "MediaImportConfig",
    "ProductImportConfig",
    "__version__",
]
