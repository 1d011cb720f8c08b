"""
Import pipelines for products and media.
"""

from .pipeline import ImportPipeline, ImportRunReport, ItemOutcome
from .media_import import MediaImportPipeline
from .product_import import ProductImportPipeline
from .manager import ImportManager, ImportPermissionError, admin_only

__all__ = [
    "ImportPipeline",
    "ImportRunReport",
    "ItemOutcome",
    "MediaImportPipeline",
    "ProductImportPipeline",
    "ImportManager",
    "ImportPermissionError",
    "admin_only",
]
