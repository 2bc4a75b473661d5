"""
File system utilities for Creative Library.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class FileUtils:
    """Utility functions for file system operations."""

    @staticmethod
    def format_bytes(size_bytes: int) -> str:
        """
        Format bytes into human readable string.

        Args:
            size_bytes: Size in bytes

        Returns:
            Formatted string (e.g., "1.5 MB")
        """
        if size_bytes == 0:
            return "0 B"

        size_names = ["B", "KB", "MB", "GB", "TB"]
        i = 0

        while size_bytes >= 1024 and i < len(size_names) - 1:
            size_bytes /= 1024.0
            i += 1

        return f"{size_bytes:.1f} {size_names[i]}"

    @staticmethod
    def safe_filename(filename: str, replacement: str = '_') -> str:
        """
        Create a safe filename by replacing invalid characters.

        Args:
            filename: Original filename
            replacement: Character to replace invalid chars with

        Returns:
            Safe filename
        """
        # Characters that are invalid in filenames
        invalid_chars = '<>:"/\\|?*'

        safe_name = filename
        for char in invalid_chars:
            safe_name = safe_name.replace(char, replacement)

        # Remove leading/trailing spaces and dots
        safe_name = safe_name.strip(' .')

        if not safe_name:
            safe_name = 'unnamed'

        return safe_name

    @staticmethod
    def ensure_directory(directory: Path) -> bool:
        """
        Ensure a directory exists, creating it if necessary.

        Returns:
            True if directory exists or was created successfully
        """
        try:
            directory.mkdir(parents=True, exist_ok=True)
            return True
        except OSError as e:
            logger.error(f"Error creating directory {directory}: {e}")
            return False

    @staticmethod
    def get_directory_size(directory: Path, pattern: str = '*') -> int:
        """
        Calculate total size of files in a directory.

        Args:
            directory: Directory path
            pattern: Glob pattern restricting which files count

        Returns:
            Total size in bytes
        """
        total_size = 0

        try:
            for file_path in directory.rglob(pattern):
                if file_path.is_file():
                    total_size += file_path.stat().st_size
        except OSError as e:
            logger.error(f"Error calculating directory size for {directory}: {e}")

        return total_size

    @staticmethod
    def version_path(root_path: str, version_no: int, token: Optional[str] = None) -> str:
        """
        Derive the stored path for a new version of ``root_path``.

        The result sits next to the root file and looks like
        ``<stem>_v<version_no>_<token><suffix>``. ``token`` defaults to eight
        random hex characters.
        """
        root = Path(root_path)
        token = token or uuid.uuid4().hex[:8]
        stem = FileUtils.safe_filename(root.stem)
        return str(root.with_name(f"{stem}_v{version_no}_{token}{root.suffix}"))

    @staticmethod
    def resolve_vault_path(vault_directory: Union[str, Path], stored_path: str) -> Path:
        """Map a stored asset path to a file on disk; relative paths live in the vault."""
        path = Path(stored_path)
        if path.is_absolute():
            return path
        return Path(vault_directory) / path
