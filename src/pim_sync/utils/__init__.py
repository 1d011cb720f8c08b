"""
Utility modules for PIM import operations.

This package contains shared utilities including rate limiting, the
Shopify API client, cursor pagination and logging.
"""

from .rate_limiter import RateLimiter, RateLimitConfig
from .api_client import ShopifyAPIClient, RetryingRequestExecutor, create_shopify_client
from .pagination import PagedFetcher, Page
from .logger import setup_logger

__all__ = [
    "RateLimiter",
    "RateLimitConfig",
    "ShopifyAPIClient",
    "RetryingRequestExecutor",
    "create_shopify_client",
    "PagedFetcher",
    "Page",
    "setup_logger",
]
