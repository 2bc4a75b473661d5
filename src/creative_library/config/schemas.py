"""
Configuration schema validation for Creative Library.
"""

from typing import Dict, Any
from pathlib import Path


SORTABLE_FIELDS = ["created_at", "year", "advertiser", "niche", "shares"]
SORT_ORDERS = ["asc", "desc"]


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


class ConfigSchema:
    """Configuration schema validator."""

    @staticmethod
    def validate_config(config: Dict[str, Any]) -> None:
        """Validate complete configuration dictionary."""
        ConfigSchema._validate_paths(config.get("paths", {}))
        ConfigSchema._validate_database(config.get("database", {}))
        ConfigSchema._validate_thumbnails(config.get("thumbnails", {}))
        ConfigSchema._validate_external_tool("ffmpeg", config.get("ffmpeg", {}))
        ConfigSchema._validate_external_tool("imagemagick", config.get("imagemagick", {}))
        ConfigSchema._validate_library(config.get("library", {}))
        ConfigSchema._validate_logging(config.get("logging", {}))

    @staticmethod
    def _validate_paths(paths: Dict[str, Any]) -> None:
        """Validate paths configuration."""
        required_paths = ["data_directory", "vault_directory"]

        for path_key in required_paths:
            if path_key not in paths:
                raise ConfigValidationError(f"Missing required path: {path_key}")

            if not isinstance(paths[path_key], str) or not paths[path_key].strip():
                raise ConfigValidationError(f"Path {path_key} must be a non-empty string")

    @staticmethod
    def _validate_database(database: Dict[str, Any]) -> None:
        """Validate database configuration."""
        if "path" in database:
            db_path = database["path"]
            if not isinstance(db_path, str):
                raise ConfigValidationError("database path must be a string")

            # Validate parent directory exists or can be created
            try:
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            except (OSError, PermissionError) as e:
                raise ConfigValidationError(f"Cannot access database directory: {e}")

        if "max_backups" in database:
            max_backups = database["max_backups"]
            if not isinstance(max_backups, int) or max_backups < 0:
                raise ConfigValidationError("max_backups must be a non-negative integer")

        if "session_wait_timeout" in database:
            timeout = database["session_wait_timeout"]
            if not isinstance(timeout, (int, float)) or timeout <= 0:
                raise ConfigValidationError("session_wait_timeout must be a positive number")

    @staticmethod
    def _validate_thumbnails(thumbnails: Dict[str, Any]) -> None:
        """Validate thumbnail configuration."""
        if "size" in thumbnails:
            size = thumbnails["size"]
            if not isinstance(size, int) or size < 32 or size > 1024:
                raise ConfigValidationError("thumbnail size must be between 32 and 1024")

        if "video_time_offset" in thumbnails:
            offset = thumbnails["video_time_offset"]
            if not isinstance(offset, (int, float)) or not 0 <= offset < 1:
                raise ConfigValidationError("video_time_offset must be a fraction between 0 and 1")

        if "max_concurrent_workers" in thumbnails:
            workers = thumbnails["max_concurrent_workers"]
            if not isinstance(workers, int) or workers < 1 or workers > 16:
                raise ConfigValidationError("max_concurrent_workers must be between 1 and 16")

    @staticmethod
    def _validate_external_tool(name: str, tool: Dict[str, Any]) -> None:
        """Validate an external converter (ffmpeg, imagemagick) section."""
        if "executable_path" in tool and not isinstance(tool["executable_path"], str):
            raise ConfigValidationError(f"{name} executable_path must be a string")

        if "timeout" in tool:
            timeout = tool["timeout"]
            if not isinstance(timeout, (int, float)) or timeout <= 0:
                raise ConfigValidationError(f"{name} timeout must be a positive number")

    @staticmethod
    def _validate_library(library: Dict[str, Any]) -> None:
        """Validate library listing defaults."""
        if "default_sort_by" in library and library["default_sort_by"] not in SORTABLE_FIELDS:
            raise ConfigValidationError(f"default_sort_by must be one of: {SORTABLE_FIELDS}")

        if "default_sort_order" in library and library["default_sort_order"] not in SORT_ORDERS:
            raise ConfigValidationError(f"default_sort_order must be one of: {SORT_ORDERS}")

    @staticmethod
    def _validate_logging(logging_config: Dict[str, Any]) -> None:
        """Validate logging configuration."""
        if "level" in logging_config:
            level = logging_config["level"]
            valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            if level not in valid_levels:
                raise ConfigValidationError(f"logging level must be one of: {valid_levels}")


def validate_user_config(config: Dict[str, Any]) -> None:
    """Validate user-specific configuration."""
    if "user_id" in config:
        user_id = config["user_id"]
        if not isinstance(user_id, str) or not user_id.strip():
            raise ConfigValidationError("user_id must be a non-empty string")
