"""
Database module for Creative Library.

This module handles the asset table, its auxiliary custom-field tables,
connection lifecycle and schema migrations.
"""

from .models import (
    Base,
    Asset,
    CustomField,
    AssetCustomValue,
)
from .connection import DatabaseManager, database_retry, init_database

__all__ = [
    "Base",
    "Asset",
    "CustomField",
    "AssetCustomValue",
    "DatabaseManager",
    "database_retry",
    "init_database",
]
