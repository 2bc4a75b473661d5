"""
Core engine components for Creative Library.

This module contains the asset repository, version grouping, bulk editing,
thumbnail generation and the application facade that ties them together.
"""

from .errors import (
    AssetLibraryError,
    NotFoundError,
    InvalidStateError,
    ConflictError,
    ValidationError,
)
from .fields import MetadataField, AssetRecord, AssetFilters
from .asset_repository import AssetRepository
from .version_manager import VersionGroupManager, VersionCreated
from .bulk_editor import BulkMutationExecutor, BulkUpdateResult, BulkItemError
from .thumbnail_manager import ThumbnailManager
from .library import AssetLibrary

__all__ = [
    "AssetLibraryError",
    "NotFoundError",
    "InvalidStateError",
    "ConflictError",
    "ValidationError",
    "MetadataField",
    "AssetRecord",
    "AssetFilters",
    "AssetRepository",
    "VersionGroupManager",
    "VersionCreated",
    "BulkMutationExecutor",
    "BulkUpdateResult",
    "BulkItemError",
    "ThumbnailManager",
    "AssetLibrary",
]
