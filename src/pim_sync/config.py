"""
Configuration management for PIM import operations.

This module provides dataclasses for managing configuration settings,
environment variable loading, and validation of required parameters.
"""

import os
from dataclasses import dataclass, field, fields
from typing import List, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DUPLICATE_POLICIES = ("snapshot", "skip_existing")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_first(*names: str, default: str = "") -> str:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [part.strip().upper() for part in raw.split(",") if part.strip()]


def clean_prefix(prefix: Optional[str]) -> str:
    """Strip leading and trailing slashes from a storage path prefix."""
    if not prefix:
        return ""
    return prefix.strip().strip("/")


def _validate_supabase(config) -> None:
    if not config.supabase_url:
        raise ValueError("SUPABASE_URL is required. Please set it in your .env file.")

    if not config.supabase_url.startswith(("https://", "http://")):
        raise ValueError("SUPABASE_URL must be an http(s) URL")

    if not config.supabase_key:
        raise ValueError(
            "SUPABASE_SERVICE_ROLE_KEY is required. Please set it in your .env file."
        )


def _validate_common(config) -> None:
    if config.max_reported_errors < 0:
        raise ValueError("MAX_REPORTED_ERRORS must be non-negative")

    if config.log_max_size <= 0:
        raise ValueError("LOG_MAX_SIZE must be positive")


@dataclass
class ProductImportConfig:
    """Configuration for importing products from Shopify."""

    # Shopify Admin API
    shopify_store_domain: str = field(default_factory=lambda: os.getenv("SHOPIFY_STORE_DOMAIN", ""))
    shopify_access_token: str = field(default_factory=lambda: os.getenv("SHOPIFY_ACCESS_TOKEN", ""))
    shopify_api_version: str = field(default_factory=lambda: os.getenv("SHOPIFY_API_VERSION", "2024-01"))

    # Import Settings
    page_size: int = field(default_factory=lambda: int(os.getenv("SHOPIFY_PAGE_SIZE", "50")))
    estimated_query_cost: float = field(default_factory=lambda: float(os.getenv("SHOPIFY_ESTIMATED_QUERY_COST", "100")))
    import_statuses: List[str] = field(default_factory=lambda: _env_list("SHOPIFY_IMPORT_STATUSES"))

    # Retry Configuration
    max_retries: int = field(default_factory=lambda: int(os.getenv("MAX_RETRIES", "3")))
    throttle_retry_delay: float = field(default_factory=lambda: float(os.getenv("THROTTLE_RETRY_DELAY", "2")))
    http_timeout: float = field(default_factory=lambda: float(os.getenv("HTTP_TIMEOUT", "30")))

    # Supabase
    supabase_url: str = field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    supabase_key: str = field(default_factory=lambda: _env_first("SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_KEY"))

    # Reporting
    max_reported_errors: int = field(default_factory=lambda: int(os.getenv("MAX_REPORTED_ERRORS", "200")))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE"))
    log_max_size: int = field(default_factory=lambda: int(os.getenv("LOG_MAX_SIZE", "10485760")))  # 10MB
    log_backup_count: int = field(default_factory=lambda: int(os.getenv("LOG_BACKUP_COUNT", "5")))

    # Development
    debug: bool = field(default_factory=lambda: _env_bool("DEBUG", "false"))
    verbose: bool = field(default_factory=lambda: _env_bool("VERBOSE", "false"))

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.shopify_store_domain = self.shopify_store_domain.strip()
        self.shopify_store_domain = self.shopify_store_domain.replace("https://", "").rstrip("/")
        self.validate()

    def validate(self) -> None:
        """Validate configuration settings."""
        if not self.shopify_store_domain or not self.shopify_access_token:
            raise ValueError(
                "Missing Shopify credentials. Set SHOPIFY_STORE_DOMAIN and SHOPIFY_ACCESS_TOKEN"
            )

        if not 1 <= self.page_size <= 250:
            raise ValueError("SHOPIFY_PAGE_SIZE must be between 1 and 250")

        if self.estimated_query_cost <= 0:
            raise ValueError("SHOPIFY_ESTIMATED_QUERY_COST must be positive")

        if self.max_retries < 1:
            raise ValueError("MAX_RETRIES must be at least 1")

        if self.throttle_retry_delay <= 0:
            raise ValueError("THROTTLE_RETRY_DELAY must be positive")

        if self.http_timeout <= 0:
            raise ValueError("HTTP_TIMEOUT must be positive")

        _validate_supabase(self)
        _validate_common(self)


@dataclass
class MediaImportConfig:
    """Configuration for importing media from Google Drive into Storj."""

    # Google Drive
    drive_folder_id: str = field(default_factory=lambda: os.getenv("GOOGLE_DRIVE_SKU_FOLDER_ID", ""))
    google_credentials_file: Optional[str] = field(default_factory=lambda: os.getenv("GOOGLE_APPLICATION_CREDENTIALS"))
    drive_retries: int = field(default_factory=lambda: int(os.getenv("DRIVE_RETRIES", "3")))

    # Storj (S3-compatible gateway)
    storage_bucket: str = field(default_factory=lambda: _env_first("STORJ_S3_BUCKET", "STORJ_BUCKET"))
    base_path: str = field(default_factory=lambda: clean_prefix(_env_first("STORJ_BASE_PATH", "STORJ_PATH_PREFIX")))
    storage_endpoint: str = field(default_factory=lambda: os.getenv("STORJ_S3_ENDPOINT", "https://gateway.storjshare.io"))
    storage_access_key_id: str = field(default_factory=lambda: os.getenv("STORJ_ACCESS_KEY_ID", ""))
    storage_secret_access_key: str = field(default_factory=lambda: os.getenv("STORJ_SECRET_ACCESS_KEY", ""))
    storage_region: str = field(default_factory=lambda: os.getenv("STORJ_REGION", "us-east-1"))

    # Import Settings
    duplicate_policy: str = field(default_factory=lambda: os.getenv("MEDIA_DUPLICATE_POLICY", "snapshot"))

    # Supabase
    supabase_url: str = field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    supabase_key: str = field(default_factory=lambda: _env_first("SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_KEY"))

    # Reporting
    max_reported_errors: int = field(default_factory=lambda: int(os.getenv("MAX_REPORTED_ERRORS", "200")))

    # Logging (same as product import)
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE"))
    log_max_size: int = field(default_factory=lambda: int(os.getenv("LOG_MAX_SIZE", "10485760")))
    log_backup_count: int = field(default_factory=lambda: int(os.getenv("LOG_BACKUP_COUNT", "5")))

    # Development (same as product import)
    debug: bool = field(default_factory=lambda: _env_bool("DEBUG", "false"))
    verbose: bool = field(default_factory=lambda: _env_bool("VERBOSE", "false"))

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.base_path = clean_prefix(self.base_path)
        self.validate()

    def validate(self) -> None:
        """Validate configuration settings."""
        if not self.drive_folder_id:
            raise ValueError("folderId is required (or set GOOGLE_DRIVE_SKU_FOLDER_ID)")

        if not self.storage_bucket:
            raise ValueError("bucket is required (set STORJ_S3_BUCKET or STORJ_BUCKET)")

        if self.duplicate_policy not in DUPLICATE_POLICIES:
            raise ValueError(
                f"MEDIA_DUPLICATE_POLICY must be one of: {', '.join(DUPLICATE_POLICIES)}"
            )

        if self.drive_retries < 0:
            raise ValueError("DRIVE_RETRIES must be non-negative")

        _validate_supabase(self)
        _validate_common(self)


def _build(config_cls, overrides: dict):
    known = {f.name for f in fields(config_cls)}
    for key in overrides:
        if key not in known:
            raise ValueError(f"Unknown configuration key: {key}")

    # Overrides go through the constructor so validation sees them
    return config_cls(**overrides)


def get_product_import_config(**overrides) -> ProductImportConfig:
    """
    Get product import configuration with optional overrides.

    Args:
        **overrides: Configuration values to override

    Returns:
        ProductImportConfig instance
    """
    return _build(ProductImportConfig, overrides)


def get_media_import_config(**overrides) -> MediaImportConfig:
    """
    Get media import configuration with optional overrides.

    Args:
        **overrides: Configuration values to override

    Returns:
        MediaImportConfig instance
    """
    return _build(MediaImportConfig, overrides)
